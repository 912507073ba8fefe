"""
Configuration settings for the Storefront order service.
Loads from environment variables with validation.
"""

from pydantic_settings import BaseSettings
from functools import lru_cache


DEV_SECRET_KEY = "dev-insecure-secret"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Application
    APP_NAME: str = "Storefront Orders"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    FRONTEND_URL: str = "http://localhost:3000"
    SECRET_KEY: str = DEV_SECRET_KEY

    # Database
    DATABASE_URL: str
    REDIS_URL: str = "redis://localhost:6379"
    STORE_RETRY_ATTEMPTS: int = 3

    # Catalog service (product name/price snapshots at checkout)
    CATALOG_URL: str = "http://localhost:8001"
    CATALOG_TIMEOUT_SECONDS: float = 5.0

    # Notifications
    NOTIFICATION_WEBHOOK_URL: str | None = None

    # Checkout
    DEFAULT_SHIPPING_COST: int = 0
    ORDER_NUMBER_PREFIX: str = "ORD"
    CURRENCY_LABEL: str = "DA"
    IDEMPOTENCY_TTL_HOURS: int = 24

    def validate_production_settings(self):
        """Validate critical settings for production deployment."""
        if not self.DEBUG and self.SECRET_KEY == DEV_SECRET_KEY:
            raise ValueError(
                "SECRET_KEY must be set in production. "
                "Generate with: python -c \"import secrets; print(secrets.token_urlsafe(48))\""
            )

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache()
def get_settings() -> Settings:
    """Cached settings loader with production validation."""
    settings = Settings()
    if not settings.DEBUG:
        settings.validate_production_settings()
    return settings
