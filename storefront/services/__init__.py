"""Domain services for the order lifecycle."""
