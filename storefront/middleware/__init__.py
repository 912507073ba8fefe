"""Middleware package for FastAPI."""

from .idempotency import (
    IdempotencyMiddleware,
    get_idempotency_middleware,
    guest_scope,
    IdempotencyError,
    IdempotencyInProgressError,
)

__all__ = [
    "IdempotencyMiddleware",
    "get_idempotency_middleware",
    "guest_scope",
    "IdempotencyError",
    "IdempotencyInProgressError",
]
