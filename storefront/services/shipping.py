"""Shipping fee lookup by administrative region."""

import logging
from typing import List

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models import ShippingRegion

logger = logging.getLogger(__name__)


class ShippingRegions:

    def __init__(self, session: AsyncSession, default_cost: int = 0):
        self.session = session
        self.default_cost = default_cost

    async def resolve_cost(self, region: str) -> int:
        """Fee for the region matched by code or name; the default when unknown."""
        key = (region or "").strip()
        if not key:
            return self.default_cost

        result = await self.session.execute(
            select(ShippingRegion.shipping_cost)
            .where(
                ShippingRegion.is_active.is_(True),
                or_(ShippingRegion.code == key, func.lower(ShippingRegion.name) == key.lower()),
            )
            .limit(1)
        )
        cost = result.scalar_one_or_none()
        if cost is None:
            logger.warning(f"No active shipping region for '{key}'; using default cost {self.default_cost}")
            return self.default_cost
        return cost

    async def list_active(self) -> List[ShippingRegion]:
        result = await self.session.execute(
            select(ShippingRegion)
            .where(ShippingRegion.is_active.is_(True))
            .order_by(ShippingRegion.name)
        )
        return list(result.scalars().all())
