"""
Identity Reconciliation Service
===============================

Merges guest orders into an authenticated account.

Match strategies run in a fixed order, each strictly additive:

1. explicit order id
2. guest phone (exact)
3. guest email (case-insensitive) taken from the identity provider

Every strategy goes through the compare-and-set in OrderStore, so an order
is linked at most once no matter how many strategies or concurrent calls
match it. Each strategy commits on its own; a failing strategy is recorded
in the summary and does not undo earlier links.
"""

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.errors import OwnershipConflictError, StorefrontError
from storefront.services.addresses import AddressSynthesizer
from storefront.services.order_store import OrderStore

logger = logging.getLogger(__name__)


@dataclass
class StrategyResult:
    strategy: str
    linked: int = 0
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ReconciliationSummary:
    owner_id: str
    strategies: List[StrategyResult] = field(default_factory=list)
    address_created: bool = False
    address_error: Optional[str] = None

    @property
    def linked_count(self) -> int:
        return sum(s.linked for s in self.strategies)

    @property
    def partial(self) -> bool:
        return any(not s.ok for s in self.strategies) or self.address_error is not None


class IdentityReconciler:
    """Links guest orders to `owner_id` and seeds a standing address."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.orders = OrderStore(session)
        self.addresses = AddressSynthesizer(session)

    async def reconcile(
        self,
        owner_id: str,
        phone: Optional[str] = None,
        order_id: Optional[str] = None,
        email: Optional[str] = None,
    ) -> ReconciliationSummary:
        summary = ReconciliationSummary(owner_id=owner_id)
        phone = (phone or "").strip() or None
        email = (email or "").strip() or None

        logger.info(f"[RECONCILE] owner={owner_id} order_id={order_id} phone={phone} email={email}")

        if order_id:
            summary.strategies.append(
                await self._run("order_id", lambda: self._link_explicit(order_id, owner_id))
            )
        if phone:
            summary.strategies.append(
                await self._run("phone", lambda: self.orders.reassign_by_phone(phone, owner_id))
            )
        if email:
            summary.strategies.append(
                await self._run("email", lambda: self.orders.reassign_by_email(email, owner_id))
            )

        # Runs even when nothing was linked; the synthesizer guards duplicates.
        try:
            result = await self.addresses.synthesize_from_earliest_order(owner_id, fallback_phone=phone)
            await self.session.commit()
            summary.address_created = result.created
        except (StorefrontError, SQLAlchemyError) as e:
            await self.session.rollback()
            summary.address_error = str(e)
            logger.warning(f"[RECONCILE] Address synthesis failed for {owner_id}: {e}")

        logger.info(
            f"[RECONCILE] Completed for {owner_id}: linked={summary.linked_count} "
            f"address_created={summary.address_created} partial={summary.partial}"
        )
        return summary

    async def link_orders(self, owner_id: str, order_ids: List[str]) -> ReconciliationSummary:
        """Link a batch of explicit order ids, one compare-and-set each."""
        summary = ReconciliationSummary(owner_id=owner_id)
        for order_id in dict.fromkeys(order_ids):
            summary.strategies.append(
                await self._run("order_id", lambda oid=order_id: self._link_explicit(oid, owner_id))
            )
        return summary

    async def _link_explicit(self, order_id: str, owner_id: str) -> int:
        order, linked = await self.orders.reassign_owner(order_id, owner_id)
        if linked:
            return 1
        if order.owner_id != owner_id:
            raise OwnershipConflictError(order_id)
        return 0

    async def _run(self, name: str, step: Callable[[], Awaitable[int]]) -> StrategyResult:
        try:
            linked = await step()
            await self.session.commit()
        except (StorefrontError, SQLAlchemyError) as e:
            await self.session.rollback()
            logger.warning(f"[RECONCILE] Strategy {name} failed: {e}")
            return StrategyResult(strategy=name, error=str(e))

        logger.info(f"[RECONCILE] Strategy {name} linked {linked} order(s)")
        return StrategyResult(strategy=name, linked=linked)
