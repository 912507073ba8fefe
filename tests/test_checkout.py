"""
End-to-end checkout tests through the Storefront service.
"""

from unittest.mock import AsyncMock, patch

import httpx
import pytest
from sqlalchemy import select

from storefront.errors import (
    NotFoundError,
    StoreUnavailableError,
    UsageExhaustedError,
    ValidationError,
)
from storefront.models import Order, PromoCode
from storefront.services.notifications import NotificationService
from storefront.services.order_store import AddressSnapshot, OrderStore
from storefront.services.storefront import (
    CheckoutLine,
    CheckoutRequest,
    Storefront,
    requires_auth,
)


async def _count_orders(session_maker) -> int:
    async with session_maker() as s:
        result = await s.execute(select(Order.id))
        return len(result.scalars().all())


@pytest.mark.asyncio
async def test_guest_checkout_then_signup_reconciles(storefront, session_maker, address, add_promo, add_region):
    await add_promo(code="SAVE10", discount_type="percentage", discount_value=10, min_order_amount=1000, max_uses=100)
    await add_region(code="16", name="Alger", shipping_cost=400)

    result = await storefront.create_order(CheckoutRequest(
        lines=[CheckoutLine(product_id="food-1", quantity=2)],
        address=address,
        payment_method="cash_on_delivery",
        promo_code="save10",
        guest_phone="0555123456",
        client_subtotal=5000,
    ))

    order = result.order
    assert (order.subtotal, order.shipping, order.discount, order.total) == (5000, 400, 500, 4900)
    assert order.promo_code == "SAVE10"
    assert order.owner_id is None
    assert order.shipping_address["promo_code"] == "SAVE10"
    assert result.order_number == f"ORD-{order.id[:8].upper()}"

    async with session_maker() as s:
        promo = (await s.execute(select(PromoCode).where(PromoCode.code == "SAVE10"))).scalar_one()
    assert promo.used_count == 1

    # The shopper signs up with the same phone
    summary = await storefront.reconcile_guest_orders("user-1", phone="0555123456")
    assert summary.linked_count == 1
    assert summary.address_created is True

    orders = await storefront.list_account_orders("user-1")
    assert [o.id for o in orders] == [order.id]

    addresses = await storefront.list_account_addresses("user-1")
    assert len(addresses) == 1
    assert addresses[0].street == address.street
    assert addresses[0].region == address.region
    assert addresses[0].phone == address.phone
    assert addresses[0].is_default is True


@pytest.mark.asyncio
async def test_prices_come_from_the_catalog(storefront, address):
    result = await storefront.create_order(CheckoutRequest(
        lines=[CheckoutLine(product_id="toy-1", quantity=3), CheckoutLine(product_id="bed-1", quantity=1)],
        address=address,
        client_subtotal=1,
    ))

    assert result.order.subtotal == 3 * 700 + 8000
    assert [i.product_name for i in result.order.items] == ["Feather Wand", "Dog Bed"]
    assert result.order.shipping == 0


@pytest.mark.asyncio
async def test_unknown_product_is_rejected(storefront, session_maker, address):
    with pytest.raises(ValidationError) as exc_info:
        await storefront.create_order(CheckoutRequest(
            lines=[CheckoutLine(product_id="ghost", quantity=1)], address=address,
        ))

    assert "ghost" in str(exc_info.value)
    assert await _count_orders(session_maker) == 0


@pytest.mark.asyncio
async def test_missing_address_fields_are_listed(storefront, address):
    with pytest.raises(ValidationError) as exc_info:
        await storefront.create_order(CheckoutRequest(
            lines=[CheckoutLine(product_id="food-1", quantity=1)],
            address=AddressSnapshot(first_name="Amina"),
        ))

    assert set(exc_info.value.fields) == {"last_name", "phone", "street", "region"}


@pytest.mark.asyncio
async def test_exhausted_promo_leaves_no_order(storefront, session_maker, address, add_promo):
    await add_promo(max_uses=1, used_count=1)

    with pytest.raises(UsageExhaustedError):
        await storefront.create_order(CheckoutRequest(
            lines=[CheckoutLine(product_id="food-1", quantity=2)], address=address, promo_code="SAVE10",
        ))

    assert await _count_orders(session_maker) == 0


@pytest.mark.asyncio
async def test_failed_notification_does_not_fail_the_order(catalog, session_maker, address):
    storefront = Storefront(
        catalog=catalog,
        notifier=NotificationService(webhook_url="http://hooks.test/orders"),
        session_maker=session_maker,
    )

    with patch("httpx.AsyncClient.post", AsyncMock(side_effect=httpx.ConnectError("refused"))) as post:
        result = await storefront.create_order(CheckoutRequest(
            lines=[CheckoutLine(product_id="food-1", quantity=1)], address=address,
        ))

    # order_confirmed and the confirmation email both attempted delivery
    assert post.await_count == 2
    assert result.total == 2500
    assert await _count_orders(session_maker) == 1


def test_requires_auth_matrix():
    guest = Order(owner_id=None)
    owned = Order(owner_id="user-1")

    assert requires_auth(guest, None) is True
    assert requires_auth(owned, None) is True
    assert requires_auth(guest, "user-1") is False
    assert requires_auth(owned, "user-1") is False
    assert requires_auth(owned, "user-2") is True


@pytest.mark.asyncio
async def test_track_order(storefront, address):
    result = await storefront.create_order(CheckoutRequest(
        lines=[CheckoutLine(product_id="food-1", quantity=1)], address=address,
    ))

    anonymous = await storefront.track_order(result.order_id)
    signed_in = await storefront.track_order(result.order_id, caller_id="user-9")

    assert anonymous.is_guest is True
    assert anonymous.requires_auth is True
    assert signed_in.requires_auth is False

    with pytest.raises(NotFoundError):
        await storefront.track_order("missing")
    with pytest.raises(ValidationError):
        await storefront.track_order("")


@pytest.mark.asyncio
async def test_account_cannot_read_someone_elses_order(storefront, address):
    result = await storefront.create_order(CheckoutRequest(
        lines=[CheckoutLine(product_id="food-1", quantity=1)], address=address, owner_id="user-1",
    ))

    assert (await storefront.get_account_order("user-1", result.order_id)).id == result.order_id
    with pytest.raises(NotFoundError):
        await storefront.get_account_order("user-2", result.order_id)


@pytest.mark.asyncio
async def test_link_orders_requires_ids(storefront):
    with pytest.raises(ValidationError):
        await storefront.link_orders("user-1", [])


@pytest.mark.asyncio
async def test_store_outage_is_retried(storefront):
    flaky = AsyncMock(side_effect=[StoreUnavailableError("connection reset"), []])

    with patch.object(OrderStore, "list_orders", flaky):
        orders = await storefront.list_orders()

    assert orders == []
    assert flaky.await_count == 2


@pytest.mark.asyncio
async def test_caller_errors_are_not_retried(storefront):
    failing = AsyncMock(side_effect=ValidationError("bad status"))

    with patch.object(OrderStore, "list_orders", failing):
        with pytest.raises(ValidationError):
            await storefront.list_orders(status="bogus")

    assert failing.await_count == 1


@pytest.mark.asyncio
async def test_admin_status_update_through_storefront(storefront, address):
    result = await storefront.create_order(CheckoutRequest(
        lines=[CheckoutLine(product_id="food-1", quantity=1)], address=address,
    ))

    updated = await storefront.update_order_status(result.order_id, status="processing", tracking_number="YAL-9")

    assert updated.status == "processing"
    assert updated.tracking_number == "YAL-9"
    assert [o.id for o in await storefront.list_orders(status="processing")] == [result.order_id]


@pytest.mark.asyncio
async def test_checkout_sends_confirmation_email(catalog, session_maker, address):
    notifier = NotificationService()
    storefront = Storefront(catalog=catalog, notifier=notifier, session_maker=session_maker)

    with patch.object(notifier, "email_sent", AsyncMock(return_value=True)) as email_sent:
        result = await storefront.create_order(CheckoutRequest(
            lines=[CheckoutLine(product_id="food-1", quantity=1)], address=address,
        ))

    email_sent.assert_awaited_once_with("amina@example.com", f"Order confirmation {result.order_number}")


@pytest.mark.asyncio
async def test_checkout_without_email_sends_no_confirmation(catalog, session_maker, address):
    notifier = NotificationService()
    storefront = Storefront(catalog=catalog, notifier=notifier, session_maker=session_maker)
    address.email = None

    with patch.object(notifier, "email_sent", AsyncMock(return_value=True)) as email_sent:
        await storefront.create_order(CheckoutRequest(
            lines=[CheckoutLine(product_id="food-1", quantity=1)], address=address, guest_phone="0555123456",
        ))

    email_sent.assert_not_awaited()
