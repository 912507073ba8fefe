"""
Router Dependencies
====================

Shared FastAPI dependencies that wire the storefront service to its
external collaborators.
"""

from functools import lru_cache

from storefront.config import get_settings
from storefront.middleware.idempotency import IdempotencyMiddleware, get_idempotency_middleware
from storefront.services.catalog import HttpCatalogClient
from storefront.services.notifications import NotificationService
from storefront.services.storefront import Storefront


@lru_cache()
def get_storefront() -> Storefront:
    """Process-wide Storefront bound to the configured catalog and notifier."""
    settings = get_settings()
    return Storefront(
        catalog=HttpCatalogClient(settings.CATALOG_URL, timeout=settings.CATALOG_TIMEOUT_SECONDS),
        notifier=NotificationService(webhook_url=settings.NOTIFICATION_WEBHOOK_URL),
    )


def get_idempotency() -> IdempotencyMiddleware:
    return get_idempotency_middleware()
