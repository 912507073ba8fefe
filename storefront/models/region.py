"""
Shipping region model - administrative divisions with a flat shipping fee.
"""

from sqlalchemy import String, Integer, Boolean
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base, UUIDMixin, TimestampMixin


class ShippingRegion(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "shipping_regions"

    code: Mapped[str] = mapped_column(String(10), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    shipping_cost: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    delivery_days: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
