"""
Storefront Service
==================

Boundary surface of the order lifecycle. Each public method is one unit
of work: it opens its own session, commits on success, and is retried
with backoff only when the data store is unavailable.

Usage:
    storefront = Storefront(catalog=HttpCatalogClient(url), notifier=NotificationService())
    result = await storefront.create_order(CheckoutRequest(...))
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.config import get_settings
from storefront.database import session_scope, store_retry
from storefront.errors import NotFoundError, ValidationError
from storefront.models import Address, Order, PromoCode, ShippingRegion
from storefront.services.addresses import AddressSynthesizer
from storefront.services.catalog import CatalogClient
from storefront.services.notifications import NotificationService
from storefront.services.order_store import (
    AddressSnapshot,
    GuestContact,
    LineSnapshot,
    OrderStore,
    subtotal_of,
)
from storefront.services.promotions import PromoCodeRegistry, PromotionValidator, PromoQuote
from storefront.services.reconciliation import IdentityReconciler, ReconciliationSummary
from storefront.services.shipping import ShippingRegions
from storefront.services.workflow import OrderWorkflow

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class CheckoutLine:
    product_id: str
    quantity: int


@dataclass
class CheckoutRequest:
    lines: List[CheckoutLine]
    address: AddressSnapshot
    payment_method: Optional[str] = None
    promo_code: Optional[str] = None
    owner_id: Optional[str] = None
    guest_email: Optional[str] = None
    guest_phone: Optional[str] = None
    # Advisory display values from the client; never trusted.
    client_subtotal: Optional[int] = None


@dataclass
class CheckoutResult:
    order: Order
    order_number: str

    @property
    def order_id(self) -> str:
        return self.order.id

    @property
    def total(self) -> int:
        return self.order.total


@dataclass
class TrackingView:
    order: Order
    requires_auth: bool
    is_guest: bool = field(init=False)

    def __post_init__(self):
        self.is_guest = self.order.is_guest


def requires_auth(order: Order, caller_id: Optional[str]) -> bool:
    """An authenticated caller may view an order they own or a guest order."""
    if caller_id is None:
        return True
    return not (order.owner_id is None or order.owner_id == caller_id)


class Storefront:

    def __init__(
        self,
        catalog: CatalogClient,
        notifier: Optional[NotificationService] = None,
        session_maker: Optional[async_sessionmaker[AsyncSession]] = None,
    ):
        self.catalog = catalog
        self.notifier = notifier or NotificationService()
        self.session_maker = session_maker

    def order_number(self, order: Order) -> str:
        return order.order_number(settings.ORDER_NUMBER_PREFIX)

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------

    @store_retry()
    async def create_order(self, request: CheckoutRequest) -> CheckoutResult:
        if not request.lines:
            raise ValidationError("Order must contain at least one line", fields=["items"])
        missing = request.address.missing_fields()
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

        lines = await self._price_lines(request.lines)
        subtotal = subtotal_of(lines)

        async with session_scope(self.session_maker) as session:
            shipping = await ShippingRegions(session, settings.DEFAULT_SHIPPING_COST).resolve_cost(
                request.address.region
            )

            discount = 0
            promo_code = None
            if request.promo_code and request.promo_code.strip():
                quote = await PromotionValidator(session).apply(request.promo_code, subtotal)
                discount = quote.discount_amount
                promo_code = quote.code

            order = await OrderStore(session).create(
                lines=lines,
                address=request.address,
                payment_method=request.payment_method,
                owner_id=request.owner_id,
                guest_contact=GuestContact(email=request.guest_email, phone=request.guest_phone),
                shipping=shipping,
                discount=discount,
                promo_code=promo_code,
                client_subtotal=request.client_subtotal,
            )

        result = CheckoutResult(order=order, order_number=self.order_number(order))
        await self.notifier.order_confirmed(order, result.order_number)
        recipient = order.guest_email or request.address.email
        if recipient:
            await self.notifier.email_sent(recipient, f"Order confirmation {result.order_number}")
        return result

    async def _price_lines(self, lines: List[CheckoutLine]) -> List[LineSnapshot]:
        for line in lines:
            if not line.product_id:
                raise ValidationError("Every line needs a product id", fields=["items"])
            if not isinstance(line.quantity, int) or line.quantity < 1:
                raise ValidationError(f"Quantity must be at least 1 for product {line.product_id}", fields=["items"])

        products = await self.catalog.get_products(line.product_id for line in lines)
        unknown = [line.product_id for line in lines if line.product_id not in products]
        if unknown:
            raise ValidationError(f"Unknown products: {', '.join(unknown)}", fields=["items"])

        return [
            LineSnapshot(
                product_id=line.product_id,
                product_name=products[line.product_id].name,
                unit_price=products[line.product_id].price,
                quantity=line.quantity,
            )
            for line in lines
        ]

    @store_retry()
    async def validate_promo(self, code: str, subtotal: int) -> PromoQuote:
        async with session_scope(self.session_maker) as session:
            return await PromotionValidator(session).validate(code, subtotal)

    @store_retry()
    async def list_shipping_regions(self) -> List[ShippingRegion]:
        async with session_scope(self.session_maker) as session:
            return await ShippingRegions(session).list_active()

    # ------------------------------------------------------------------
    # Tracking and accounts
    # ------------------------------------------------------------------

    @store_retry()
    async def track_order(self, order_id: str, caller_id: Optional[str] = None) -> TrackingView:
        if not order_id:
            raise ValidationError("Missing order id", fields=["id"])
        async with session_scope(self.session_maker) as session:
            order = await OrderStore(session).get(order_id)
        view = TrackingView(order=order, requires_auth=requires_auth(order, caller_id))
        logger.debug(
            f"Track {order_id}: caller={caller_id} guest={view.is_guest} requires_auth={view.requires_auth}"
        )
        return view

    @store_retry()
    async def reconcile_guest_orders(
        self,
        owner_id: str,
        phone: Optional[str] = None,
        order_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> ReconciliationSummary:
        async with session_scope(self.session_maker) as session:
            return await IdentityReconciler(session).reconcile(owner_id, phone=phone, order_id=order_id, email=email)

    @store_retry()
    async def link_orders(self, owner_id: str, order_ids: List[str]) -> ReconciliationSummary:
        if not order_ids:
            raise ValidationError("No order IDs provided", fields=["orderIds"])
        async with session_scope(self.session_maker) as session:
            return await IdentityReconciler(session).link_orders(owner_id, order_ids)

    @store_retry()
    async def list_account_orders(self, owner_id: str) -> List[Order]:
        async with session_scope(self.session_maker) as session:
            return await OrderStore(session).list_by_owner(owner_id)

    @store_retry()
    async def get_account_order(self, owner_id: str, order_id: str) -> Order:
        async with session_scope(self.session_maker) as session:
            order = await OrderStore(session).get(order_id)
        if order.owner_id not in (None, owner_id):
            raise NotFoundError("Order", order_id)
        return order

    @store_retry()
    async def list_account_addresses(self, owner_id: str) -> List[Address]:
        async with session_scope(self.session_maker) as session:
            return await AddressSynthesizer(session).list_for_owner(owner_id)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    @store_retry()
    async def update_order_status(
        self,
        order_id: str,
        status: Optional[str] = None,
        tracking_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        async with session_scope(self.session_maker) as session:
            return await OrderWorkflow(session).update(
                order_id, status=status, tracking_number=tracking_number, notes=notes
            )

    @store_retry()
    async def get_order(self, order_id: str) -> Order:
        async with session_scope(self.session_maker) as session:
            return await OrderStore(session).get(order_id)

    @store_retry()
    async def list_orders(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[Order]:
        async with session_scope(self.session_maker) as session:
            return await OrderStore(session).list_orders(status=status, limit=limit, offset=offset)

    @store_retry()
    async def create_promo_code(self, **fields) -> PromoCode:
        async with session_scope(self.session_maker) as session:
            return await PromoCodeRegistry(session).create(**fields)

    @store_retry()
    async def list_promo_codes(self) -> List[PromoCode]:
        async with session_scope(self.session_maker) as session:
            return await PromoCodeRegistry(session).list_all()
