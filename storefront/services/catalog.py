"""
Catalog service client.

Checkout reads product names and prices from the catalog exactly once and
freezes them into the order lines. Nothing in this package reads the
catalog after that.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Iterable

import httpx

from storefront.errors import StoreUnavailableError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProductSnapshot:
    id: str
    name: str
    price: int


class CatalogClient(ABC):
    """Abstract catalog lookup used at checkout."""

    @abstractmethod
    async def get_products(self, product_ids: Iterable[str]) -> Dict[str, ProductSnapshot]:
        """
        Return snapshots for the requested ids. Unknown ids are simply
        absent from the result.
        """
        pass


class HttpCatalogClient(CatalogClient):
    """Reads `GET {base_url}/products?ids=a,b` from the catalog service."""

    def __init__(self, base_url: str, timeout: float = 5.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def get_products(self, product_ids: Iterable[str]) -> Dict[str, ProductSnapshot]:
        ids = sorted(set(product_ids))
        if not ids:
            return {}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(f"{self.base_url}/products", params={"ids": ",".join(ids)})
        except httpx.TransportError as e:
            logger.error(f"Catalog request failed: {e}")
            raise StoreUnavailableError("Catalog service unavailable") from e

        if response.status_code >= 500:
            logger.error(f"Catalog returned {response.status_code}")
            raise StoreUnavailableError(f"Catalog service error ({response.status_code})")
        if response.status_code >= 400:
            raise ValidationError(f"Catalog rejected product lookup ({response.status_code})", fields=["items"])

        payload = response.json()
        rows = payload.get("data", []) if isinstance(payload, dict) else payload

        snapshots = {}
        for row in rows:
            price = row.get("price")
            if row.get("id") is None or price is None:
                continue
            snapshots[str(row["id"])] = ProductSnapshot(
                id=str(row["id"]),
                name=row.get("name") or "",
                price=int(round(float(price))),
            )
        return snapshots
