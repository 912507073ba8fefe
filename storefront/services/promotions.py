"""
Promotion Validation Service.

Evaluates promo codes against an order subtotal and redeems their usage
budget at checkout.

Validation alone never touches used_count. Redemption is a single
conditional UPDATE whose row count decides the winner, so two checkouts
racing for the last use cannot both succeed.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, update, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.config import get_settings
from storefront.errors import (
    BelowMinimumError,
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    UsageExhaustedError,
    ValidationError,
)
from storefront.models import DiscountType, PromoCode, utcnow

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class PromoQuote:
    """Outcome of a successful validation."""
    code: str
    discount_type: str
    discount_value: int
    discount_amount: int


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def compute_discount(discount_type: str, discount_value: int, subtotal: int) -> int:
    """
    Percentage discounts round half up to the integer unit; fixed discounts
    are capped at the subtotal so the total can never go negative.
    """
    if discount_type == DiscountType.PERCENTAGE.value:
        return (subtotal * discount_value + 50) // 100
    if discount_type == DiscountType.FIXED.value:
        return min(discount_value, subtotal)
    raise ValueError(f"Unknown discount type: {discount_type}")


class PromotionValidator:
    """Checks a code against its window, usage budget and minimum order."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def validate(self, code: str, subtotal: int, now: Optional[datetime] = None) -> PromoQuote:
        """
        Validate a promo code for a given subtotal.

        Raises:
            ValidationError: code or subtotal missing or malformed.
            InvalidCodeError: unknown or inactive code.
            ExpiredError: current time outside [valid_from, valid_until].
            UsageExhaustedError: used_count has reached max_uses.
            BelowMinimumError: subtotal under min_order_amount.
        """
        normalized = normalize_code(code)
        if not normalized:
            raise ValidationError("Promo code is required", fields=["code"])
        if not isinstance(subtotal, int) or isinstance(subtotal, bool) or subtotal < 0:
            raise ValidationError("Subtotal must be a non-negative integer", fields=["subtotal"])

        promo = await self._get_active(normalized)
        if promo is None:
            raise InvalidCodeError(normalized)

        now = now or utcnow()
        if (promo.valid_from and now < promo.valid_from) or (promo.valid_until and now > promo.valid_until):
            raise ExpiredError(normalized)

        if promo.max_uses is not None and promo.used_count >= promo.max_uses:
            raise UsageExhaustedError(normalized)

        if subtotal < promo.min_order_amount:
            raise BelowMinimumError(normalized, promo.min_order_amount, settings.CURRENCY_LABEL)

        return PromoQuote(
            code=promo.code,
            discount_type=promo.discount_type,
            discount_value=promo.discount_value,
            discount_amount=compute_discount(promo.discount_type, promo.discount_value, subtotal),
        )

    async def redeem(self, code: str, now: Optional[datetime] = None) -> None:
        """
        Consume one use of the code.

        The eligibility predicate is repeated in the WHERE clause so the
        check and the increment are one atomic write.
        """
        normalized = normalize_code(code)
        now = now or utcnow()
        result = await self.session.execute(
            update(PromoCode)
            .where(
                PromoCode.code == normalized,
                PromoCode.is_active.is_(True),
                or_(PromoCode.max_uses.is_(None), PromoCode.used_count < PromoCode.max_uses),
                or_(PromoCode.valid_from.is_(None), PromoCode.valid_from <= now),
                or_(PromoCode.valid_until.is_(None), PromoCode.valid_until >= now),
            )
            .values(used_count=PromoCode.used_count + 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.warning(f"Promo redemption lost for {normalized}: usage budget exhausted")
            raise UsageExhaustedError(normalized)
        logger.info(f"🎟️ Redeemed promo code {normalized}")

    async def apply(self, code: str, subtotal: int, now: Optional[datetime] = None) -> PromoQuote:
        """Validate then redeem within the caller's transaction."""
        quote = await self.validate(code, subtotal, now=now)
        await self.redeem(code, now=now)
        return quote

    async def _get_active(self, code: str) -> Optional[PromoCode]:
        result = await self.session.execute(
            select(PromoCode)
            .where(PromoCode.code == code, PromoCode.is_active.is_(True))
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()


class PromoCodeRegistry:
    """Admin-side management of promo codes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        code: str,
        discount_type: str,
        discount_value: int,
        min_order_amount: int = 0,
        max_uses: Optional[int] = None,
        valid_from: Optional[datetime] = None,
        valid_until: Optional[datetime] = None,
        is_active: bool = True,
    ) -> PromoCode:
        normalized = normalize_code(code)
        if not normalized:
            raise ValidationError("Promo code is required", fields=["code"])
        if discount_type not in {t.value for t in DiscountType}:
            raise ValidationError(f"Unknown discount type: {discount_type}", fields=["type"])
        if discount_value <= 0:
            raise ValidationError("Discount value must be positive", fields=["value"])
        if discount_type == DiscountType.PERCENTAGE.value and discount_value > 100:
            raise ValidationError("Percentage discount cannot exceed 100", fields=["value"])
        if min_order_amount < 0:
            raise ValidationError("Minimum order amount cannot be negative", fields=["minOrder"])
        if max_uses is not None and max_uses < 1:
            raise ValidationError("Maximum uses must be at least 1", fields=["maxUses"])
        if valid_from and valid_until and valid_until < valid_from:
            raise ValidationError("Validity window ends before it starts", fields=["validUntil"])

        existing = await self.session.execute(select(PromoCode.id).where(PromoCode.code == normalized))
        if existing.scalar_one_or_none():
            raise ConflictError(f"Promo code already exists: {normalized}")

        promo = PromoCode(
            code=normalized,
            discount_type=discount_type,
            discount_value=discount_value,
            min_order_amount=min_order_amount,
            max_uses=max_uses,
            used_count=0,
            is_active=is_active,
            valid_from=valid_from,
            valid_until=valid_until,
        )
        self.session.add(promo)
        try:
            await self.session.flush()
        except IntegrityError as e:
            raise ConflictError(f"Promo code already exists: {normalized}") from e

        logger.info(f"Created promo code {normalized} ({discount_type} {discount_value})")
        return promo

    async def list_all(self) -> List[PromoCode]:
        result = await self.session.execute(select(PromoCode).order_by(PromoCode.created_at.desc()))
        return list(result.scalars().all())
