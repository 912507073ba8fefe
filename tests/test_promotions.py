"""
Tests for promo code validation and atomic redemption.
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from storefront.errors import (
    BelowMinimumError,
    ConflictError,
    ExpiredError,
    InvalidCodeError,
    UsageExhaustedError,
    ValidationError,
)
from storefront.models import PromoCode, utcnow
from storefront.services.promotions import (
    PromoCodeRegistry,
    PromoQuote,
    PromotionValidator,
    compute_discount,
)


async def _used_count(session_maker, code="SAVE10") -> int:
    async with session_maker() as s:
        result = await s.execute(select(PromoCode.used_count).where(PromoCode.code == code))
        return result.scalar_one()


def test_percentage_discount_rounds_half_up():
    assert compute_discount("percentage", 10, 5000) == 500
    assert compute_discount("percentage", 10, 5005) == 501
    assert compute_discount("percentage", 15, 999) == 150


def test_fixed_discount_is_capped_at_subtotal():
    assert compute_discount("fixed", 300, 5000) == 300
    assert compute_discount("fixed", 2000, 1500) == 1500


@pytest.mark.asyncio
async def test_validate_returns_discount(session, add_promo):
    await add_promo()

    quote = await PromotionValidator(session).validate("save10", 5000)

    assert quote.code == "SAVE10"
    assert quote.discount_type == "percentage"
    assert quote.discount_amount == 500


@pytest.mark.asyncio
async def test_validate_does_not_consume_usage(session, session_maker, add_promo):
    await add_promo(max_uses=1)

    for _ in range(3):
        await PromotionValidator(session).validate("SAVE10", 5000)
    await session.rollback()

    assert await _used_count(session_maker) == 0


@pytest.mark.asyncio
async def test_unknown_code_is_invalid(session, add_promo):
    await add_promo()
    with pytest.raises(InvalidCodeError):
        await PromotionValidator(session).validate("NOPE", 5000)


@pytest.mark.asyncio
async def test_inactive_code_is_invalid(session, add_promo):
    await add_promo(is_active=False)
    with pytest.raises(InvalidCodeError):
        await PromotionValidator(session).validate("SAVE10", 5000)


@pytest.mark.asyncio
async def test_code_outside_window_is_expired(session, add_promo):
    now = utcnow()
    await add_promo(code="OLD", valid_from=now - timedelta(days=10), valid_until=now - timedelta(days=1))
    await add_promo(code="SOON", valid_from=now + timedelta(days=1), valid_until=now + timedelta(days=10))

    validator = PromotionValidator(session)
    with pytest.raises(ExpiredError):
        await validator.validate("OLD", 5000)
    with pytest.raises(ExpiredError):
        await validator.validate("SOON", 5000)


@pytest.mark.asyncio
async def test_window_bounds_are_inclusive(session, add_promo):
    now = utcnow()
    await add_promo(valid_from=now, valid_until=now + timedelta(hours=1))

    quote = await PromotionValidator(session).validate("SAVE10", 5000, now=now)
    assert quote.discount_amount == 500


@pytest.mark.asyncio
async def test_exhausted_code_is_rejected(session, add_promo):
    await add_promo(max_uses=5, used_count=5)
    with pytest.raises(UsageExhaustedError):
        await PromotionValidator(session).validate("SAVE10", 5000)


@pytest.mark.asyncio
async def test_below_minimum_surfaces_the_minimum(session, add_promo):
    await add_promo(min_order_amount=1000)

    with pytest.raises(BelowMinimumError) as exc_info:
        await PromotionValidator(session).validate("SAVE10", 999)

    assert exc_info.value.minimum == 1000
    assert "1,000" in str(exc_info.value)


@pytest.mark.asyncio
async def test_missing_inputs_are_validation_errors(session):
    validator = PromotionValidator(session)
    with pytest.raises(ValidationError):
        await validator.validate("", 5000)
    with pytest.raises(ValidationError):
        await validator.validate("SAVE10", None)


@pytest.mark.asyncio
async def test_unlimited_code_never_exhausts(session, add_promo):
    await add_promo(max_uses=None, used_count=10_000)

    quote = await PromotionValidator(session).apply("SAVE10", 5000)

    assert quote.discount_amount == 500


@pytest.mark.asyncio
async def test_redeem_increments_until_cap(session_maker, add_promo):
    await add_promo(max_uses=2)

    for _ in range(2):
        async with session_maker() as s:
            await PromotionValidator(s).redeem("SAVE10")
            await s.commit()

    async with session_maker() as s:
        with pytest.raises(UsageExhaustedError):
            await PromotionValidator(s).redeem("SAVE10")

    assert await _used_count(session_maker) == 2


@pytest.mark.asyncio
async def test_concurrent_redemption_of_last_use(session_maker, add_promo):
    """Two checkouts racing for the final use: exactly one wins."""
    await add_promo(max_uses=3, used_count=2)

    async def checkout():
        async with session_maker() as s:
            quote = await PromotionValidator(s).apply("SAVE10", 5000)
            await s.commit()
            return quote

    results = await asyncio.gather(checkout(), checkout(), return_exceptions=True)

    assert sum(isinstance(r, PromoQuote) for r in results) == 1
    assert sum(isinstance(r, UsageExhaustedError) for r in results) == 1
    assert await _used_count(session_maker) == 3


@pytest.mark.asyncio
async def test_registry_normalizes_and_rejects_duplicates(session):
    registry = PromoCodeRegistry(session)

    promo = await registry.create(code="spring5", discount_type="fixed", discount_value=500)
    assert promo.code == "SPRING5"
    assert promo.used_count == 0

    with pytest.raises(ConflictError):
        await registry.create(code="SPRING5", discount_type="fixed", discount_value=200)


@pytest.mark.asyncio
async def test_registry_validates_values(session):
    registry = PromoCodeRegistry(session)

    with pytest.raises(ValidationError):
        await registry.create(code="BIG", discount_type="percentage", discount_value=150)
    with pytest.raises(ValidationError):
        await registry.create(code="ZERO", discount_type="fixed", discount_value=0)
    with pytest.raises(ValidationError):
        await registry.create(code="ODD", discount_type="bogo", discount_value=10)


@pytest.mark.asyncio
async def test_remaining_uses(add_promo):
    limited = await add_promo(code="LIMITED", max_uses=5, used_count=2)
    unlimited = await add_promo(code="OPEN", max_uses=None)

    assert limited.remaining_uses == 3
    assert unlimited.remaining_uses is None
