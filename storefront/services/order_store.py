"""
Order Store
===========

Owns persistence of orders and their line items.

Orders are written together with their lines in one flush, so a caller
never observes an order row without lines. Ownership is assigned with a
compare-and-set (`WHERE owner_id IS NULL`), never with read-then-write.
Status legality is not checked here; see services.workflow.
"""

import logging
from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.errors import (
    ConflictError,
    MoneyInvariantError,
    NotFoundError,
    ValidationError,
)
from storefront.models import Order, OrderItem, OrderStatus, utcnow

logger = logging.getLogger(__name__)

REQUIRED_ADDRESS_FIELDS = ("first_name", "last_name", "phone", "street", "region")


@dataclass
class AddressSnapshot:
    """Shipping address as captured at checkout."""
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    street: str = ""
    region: str = ""
    email: Optional[str] = None
    municipality: Optional[str] = None
    city: Optional[str] = None
    postal_code: Optional[str] = None
    promo_code: Optional[str] = None

    def missing_fields(self) -> List[str]:
        return [name for name in REQUIRED_ADDRESS_FIELDS if not (getattr(self, name) or "").strip()]

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AddressSnapshot":
        data = data or {}
        known = {k: data.get(k) for k in cls.__dataclass_fields__ if data.get(k) is not None}
        return cls(**known)


@dataclass
class GuestContact:
    email: Optional[str] = None
    phone: Optional[str] = None


@dataclass
class LineSnapshot:
    """A line item with the catalog name and unit price frozen."""
    product_id: str
    product_name: str
    unit_price: int
    quantity: int


@dataclass
class MoneyBreakdown:
    subtotal: int
    shipping: int = 0
    discount: int = 0
    total: int = field(init=False)

    def __post_init__(self):
        self.total = self.subtotal + self.shipping - self.discount
        assert_money_balanced(self.subtotal, self.shipping, self.discount, self.total)


def assert_money_balanced(subtotal: int, shipping: int, discount: int, total: int) -> None:
    """Fail loudly on any money inconsistency. Never self-corrects."""
    values = (subtotal, shipping, discount, total)
    if any(not isinstance(v, int) or isinstance(v, bool) or v < 0 for v in values):
        raise MoneyInvariantError(subtotal, shipping, discount, total)
    if total != subtotal + shipping - discount:
        raise MoneyInvariantError(subtotal, shipping, discount, total)


def subtotal_of(lines: List[LineSnapshot]) -> int:
    return sum(line.unit_price * line.quantity for line in lines)


class OrderStore:
    """Create/read/update operations on orders with optimistic guards."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        lines: List[LineSnapshot],
        address: AddressSnapshot,
        payment_method: Optional[str],
        owner_id: Optional[str] = None,
        guest_contact: Optional[GuestContact] = None,
        shipping: int = 0,
        discount: int = 0,
        promo_code: Optional[str] = None,
        client_subtotal: Optional[int] = None,
    ) -> Order:
        """
        Persist a new pending order with its lines.

        The subtotal is always recomputed from the line snapshots; a
        client-supplied subtotal is only compared and logged.
        """
        if not lines:
            raise ValidationError("Order must contain at least one line", fields=["items"])
        for line in lines:
            if not isinstance(line.quantity, int) or line.quantity < 1:
                raise ValidationError(f"Quantity must be at least 1 for product {line.product_id}", fields=["items"])
            if not isinstance(line.unit_price, int) or line.unit_price < 0:
                raise ValidationError(f"Invalid price for product {line.product_id}", fields=["items"])

        missing = address.missing_fields()
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

        subtotal = subtotal_of(lines)
        if client_subtotal is not None and client_subtotal != subtotal:
            logger.warning(
                f"Client subtotal {client_subtotal} differs from computed {subtotal}; using computed value"
            )

        money = MoneyBreakdown(subtotal=subtotal, shipping=shipping, discount=discount)

        guest_email = guest_phone = None
        if owner_id is None:
            contact = guest_contact or GuestContact()
            guest_email = (contact.email or address.email or "").strip() or None
            guest_phone = (contact.phone or address.phone or "").strip() or None
            if not guest_email and not guest_phone:
                raise ValidationError("Guest orders need an email or phone", fields=["phone", "guestEmail"])

        snapshot = address.to_dict()
        snapshot["promo_code"] = promo_code

        order = Order(
            owner_id=owner_id,
            guest_email=guest_email,
            guest_phone=guest_phone,
            status=OrderStatus.PENDING.value,
            subtotal=money.subtotal,
            shipping=money.shipping,
            discount=money.discount,
            total=money.total,
            payment_method=payment_method,
            promo_code=promo_code,
            shipping_address=snapshot,
            items=[
                OrderItem(
                    product_id=line.product_id,
                    product_name=line.product_name,
                    product_price=line.unit_price,
                    quantity=line.quantity,
                    position=position,
                )
                for position, line in enumerate(lines)
            ],
        )
        self.session.add(order)
        await self.session.flush()

        logger.info(
            f"📦 Created order {order.id} ({'guest' if owner_id is None else 'owner ' + owner_id}) "
            f"lines={len(lines)} total={money.total}"
        )
        return order

    async def get(self, order_id: str) -> Order:
        """Fetch an order with its lines, or raise NotFoundError."""
        result = await self.session.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order", order_id)
        return order

    async def list_by_owner(self, owner_id: str, oldest_first: bool = False) -> List[Order]:
        order_by = Order.created_at.asc() if oldest_first else Order.created_at.desc()
        result = await self.session.execute(
            select(Order)
            .where(Order.owner_id == owner_id)
            .order_by(order_by)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_by_guest_contact(self, email: Optional[str] = None, phone: Optional[str] = None) -> List[Order]:
        """Orders whose guest email (case-insensitive) or guest phone matches."""
        clauses = []
        if email and email.strip():
            clauses.append(func.lower(Order.guest_email) == email.strip().lower())
        if phone and phone.strip():
            clauses.append(Order.guest_phone == phone.strip())
        if not clauses:
            raise ValidationError("Email or phone is required", fields=["email", "phone"])

        result = await self.session.execute(
            select(Order)
            .where(or_(*clauses))
            .order_by(Order.created_at.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_orders(self, status: Optional[str] = None, limit: int = 50, offset: int = 0) -> List[Order]:
        query = select(Order)
        if status:
            query = query.where(Order.status == status)
        result = await self.session.execute(
            query.order_by(Order.created_at.desc()).limit(limit).offset(offset)
        )
        return list(result.scalars().all())

    async def update_status(
        self,
        order_id: str,
        status: Optional[str] = None,
        tracking_number: Optional[str] = None,
        notes: Optional[str] = None,
        expected_status: Optional[str] = None,
    ) -> Order:
        """
        Partial update. Fields left as None are untouched.

        When expected_status is given the write only applies if the stored
        status still equals it; otherwise ConflictError is raised.
        """
        values: Dict[str, Any] = {"updated_at": utcnow()}
        if status is not None:
            values["status"] = status
        if tracking_number is not None:
            values["tracking_number"] = tracking_number
        if notes is not None:
            values["notes"] = notes

        stmt = update(Order).where(Order.id == order_id)
        if expected_status is not None:
            stmt = stmt.where(Order.status == expected_status)

        result = await self.session.execute(
            stmt.values(**values).execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            current = await self.get(order_id)
            raise ConflictError(
                f"Order {order_id} changed concurrently: expected status {expected_status}, found {current.status}"
            )

        order = await self.get(order_id)
        assert_money_balanced(order.subtotal, order.shipping, order.discount, order.total)
        return order

    async def reassign_owner(self, order_id: str, owner_id: str) -> Tuple[Order, bool]:
        """
        Assign an owner to a guest order.

        Returns (order, linked). Already-owned orders are left untouched and
        reported with linked=False; this is not an error.
        """
        result = await self.session.execute(
            update(Order)
            .where(Order.id == order_id, Order.owner_id.is_(None))
            .values(owner_id=owner_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        linked = result.rowcount == 1
        order = await self.get(order_id)
        if linked:
            logger.info(f"🔗 Linked order {order_id} to owner {owner_id}")
        return order, linked

    async def reassign_by_phone(self, phone: str, owner_id: str) -> int:
        """Link every ownerless order whose guest phone equals `phone` exactly."""
        result = await self.session.execute(
            update(Order)
            .where(Order.guest_phone == phone, Order.owner_id.is_(None))
            .values(owner_id=owner_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    async def reassign_by_email(self, email: str, owner_id: str) -> int:
        """Link every ownerless order whose guest email matches, ignoring case."""
        result = await self.session.execute(
            update(Order)
            .where(func.lower(Order.guest_email) == email.strip().lower(), Order.owner_id.is_(None))
            .values(owner_id=owner_id, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0
