"""
Promo code model - discount rules and their usage budget.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from sqlalchemy import String, DateTime, Integer, Boolean, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column

from storefront.models.base import Base, UUIDMixin, TimestampMixin


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class PromoCode(Base, UUIDMixin, TimestampMixin):
    """
    A redeemable discount code.

    Codes are stored upper-case. A null max_uses means unlimited; a null
    validity bound leaves that side of the window open.
    """
    __tablename__ = "promo_codes"

    code: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    discount_type: Mapped[str] = mapped_column(String(20), nullable=False)
    discount_value: Mapped[int] = mapped_column(Integer, nullable=False)
    min_order_amount: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    max_uses: Mapped[Optional[int]] = mapped_column(Integer)
    used_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    valid_from: Mapped[Optional[datetime]] = mapped_column(DateTime)
    valid_until: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        CheckConstraint("max_uses IS NULL OR used_count <= max_uses", name="ck_promo_usage_cap"),
        CheckConstraint("discount_value > 0", name="ck_promo_value_positive"),
    )

    @property
    def remaining_uses(self) -> Optional[int]:
        if self.max_uses is None:
            return None
        return max(self.max_uses - self.used_count, 0)
