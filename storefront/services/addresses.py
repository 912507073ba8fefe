"""
Address Synthesizer.

Materializes a standing address for an account from the shipping snapshot
of its earliest order. Runs after guest-order reconciliation.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models import Address, Order
from storefront.services.order_store import AddressSnapshot

logger = logging.getLogger(__name__)


@dataclass
class SynthesisResult:
    address: Optional[Address] = None
    skipped_reason: Optional[str] = None

    @property
    def created(self) -> bool:
        return self.address is not None


class AddressSynthesizer:
    """
    Creates at most one synthesized address per owner.

    An owner that already has any standing address is skipped. The unique
    partial index on default addresses closes the race between two
    concurrent syntheses; the loser reports a skip.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def synthesize_from_earliest_order(self, owner_id: str, fallback_phone: Optional[str] = None) -> SynthesisResult:
        if await self._has_address(owner_id):
            logger.debug(f"Owner {owner_id} already has an address; skipping synthesis")
            return SynthesisResult(skipped_reason="existing_address")

        snapshot = await self._earliest_snapshot(owner_id)
        if snapshot is None:
            return SynthesisResult(skipped_reason="no_orders")

        address = Address(
            owner_id=owner_id,
            first_name=snapshot.first_name or "",
            last_name=snapshot.last_name or "",
            phone=snapshot.phone or fallback_phone or "",
            email=snapshot.email,
            street=snapshot.street or "",
            municipality=snapshot.municipality,
            city=snapshot.city,
            region=snapshot.region,
            postal_code=snapshot.postal_code,
            is_default=True,
        )

        try:
            async with self.session.begin_nested():
                self.session.add(address)
        except IntegrityError:
            logger.info(f"Concurrent synthesis already created an address for {owner_id}")
            return SynthesisResult(skipped_reason="existing_address")

        logger.info(f"🏠 Synthesized default address {address.id} for owner {owner_id}")
        return SynthesisResult(address=address)

    async def list_for_owner(self, owner_id: str) -> List[Address]:
        result = await self.session.execute(
            select(Address)
            .where(Address.owner_id == owner_id)
            .order_by(Address.is_default.desc(), Address.created_at.asc())
        )
        return list(result.scalars().all())

    async def _has_address(self, owner_id: str) -> bool:
        result = await self.session.execute(
            select(Address.id).where(Address.owner_id == owner_id).limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _earliest_snapshot(self, owner_id: str) -> Optional[AddressSnapshot]:
        result = await self.session.execute(
            select(Order.shipping_address)
            .where(Order.owner_id == owner_id)
            .order_by(Order.created_at.asc())
        )
        for shipping_address in result.scalars():
            if shipping_address:
                return AddressSnapshot.from_dict(shipping_address)
        return None
