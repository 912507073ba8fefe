"""
SQLAlchemy Models for the Storefront order service.

This package is organized by domain:
- base.py: Base class and mixins
- order.py: Order and line item models
- promo.py: Promo codes and their usage budget
- address.py: Standing addresses owned by an account
- region.py: Shipping regions and their fees

All models are re-exported from this module.
"""

from storefront.models.base import Base, UUIDMixin, TimestampMixin, utcnow

from storefront.models.order import Order, OrderItem, OrderStatus
from storefront.models.promo import PromoCode, DiscountType
from storefront.models.address import Address
from storefront.models.region import ShippingRegion


__all__ = [
    # Base
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "utcnow",

    # Orders
    "Order",
    "OrderItem",
    "OrderStatus",

    # Promotions
    "PromoCode",
    "DiscountType",

    # Accounts
    "Address",

    # Shipping
    "ShippingRegion",
]
