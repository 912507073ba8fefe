"""
Order status workflow.

    pending -> processing -> shipped -> delivered
    pending | processing -> cancelled

delivered and cancelled are terminal. Tracking number and notes can be
set independently of any status change.
"""

import logging
from typing import Dict, FrozenSet, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.errors import ConflictError, IllegalTransitionError, ValidationError
from storefront.models import Order, OrderStatus
from storefront.services.order_store import OrderStore

logger = logging.getLogger(__name__)

S = OrderStatus

TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    S.PENDING: frozenset({S.PROCESSING, S.CANCELLED}),
    S.PROCESSING: frozenset({S.SHIPPED, S.CANCELLED}),
    S.SHIPPED: frozenset({S.DELIVERED}),
    S.DELIVERED: frozenset(),
    S.CANCELLED: frozenset(),
}


def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value.strip().lower())
    except (ValueError, AttributeError):
        raise ValidationError(f"Unknown order status: {value}", fields=["status"])


def can_transition(current: OrderStatus, requested: OrderStatus) -> bool:
    return requested in TRANSITIONS[current]


class OrderWorkflow:
    """Admin-facing mutations of status, tracking number and notes."""

    def __init__(self, session: AsyncSession):
        self.store = OrderStore(session)

    async def update(
        self,
        order_id: str,
        status: Optional[str] = None,
        tracking_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        order = await self.store.get(order_id)
        try:
            current = OrderStatus(order.status)
        except ValueError:
            logger.error(f"Order {order_id} has unrecognised stored status {order.status!r}")
            raise ConflictError(f"Order {order_id} has an unrecognised status: {order.status}")

        new_status = None
        if status is not None:
            requested = parse_status(status)
            # Re-sending the current status is not a transition.
            if requested != current:
                if not can_transition(current, requested):
                    raise IllegalTransitionError(current.value, requested.value)
                new_status = requested.value

        updated = await self.store.update_status(
            order_id,
            status=new_status,
            tracking_number=tracking_number,
            notes=notes,
            expected_status=current.value if new_status else None,
        )

        if new_status:
            logger.info(f"🚚 Order {order_id}: {current.value} -> {new_status}")
        return updated
