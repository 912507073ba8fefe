import os

# Set env vars BEFORE any application imports to satisfy Pydantic
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./storefront_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-testing-only")
os.environ.setdefault("DEBUG", "true")

from datetime import timedelta
from typing import Dict, Iterable

import pytest
import pytest_asyncio

from storefront.database import build_engine, build_session_maker
from storefront.models import Base, PromoCode, ShippingRegion, utcnow
from storefront.services.catalog import CatalogClient, ProductSnapshot
from storefront.services.notifications import NotificationService
from storefront.services.order_store import AddressSnapshot, LineSnapshot
from storefront.services.storefront import Storefront


class FakeCatalog(CatalogClient):
    """In-memory catalog keyed by product id."""

    def __init__(self, products: Dict[str, ProductSnapshot]):
        self.products = products
        self.calls = 0

    async def get_products(self, product_ids: Iterable[str]) -> Dict[str, ProductSnapshot]:
        self.calls += 1
        return {pid: self.products[pid] for pid in product_ids if pid in self.products}


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def catalog():
    return FakeCatalog({
        "food-1": ProductSnapshot(id="food-1", name="Dry Cat Food 2kg", price=2500),
        "toy-1": ProductSnapshot(id="toy-1", name="Feather Wand", price=700),
        "bed-1": ProductSnapshot(id="bed-1", name="Dog Bed", price=8000),
    })


@pytest.fixture
def storefront(catalog, session_maker):
    return Storefront(catalog=catalog, notifier=NotificationService(), session_maker=session_maker)


@pytest.fixture
def address():
    return AddressSnapshot(
        first_name="Amina",
        last_name="Benali",
        phone="0555123456",
        street="12 Rue Didouche Mourad",
        region="Alger",
        email="amina@example.com",
        city="Alger Centre",
        postal_code="16000",
    )


@pytest.fixture
def lines():
    return [
        LineSnapshot(product_id="food-1", product_name="Dry Cat Food 2kg", unit_price=2500, quantity=2),
    ]


@pytest_asyncio.fixture
async def add_promo(session_maker):
    """Factory inserting a promo code; defaults describe a live 10% code."""
    async def _add(**overrides) -> PromoCode:
        now = utcnow()
        fields = dict(
            code="SAVE10",
            discount_type="percentage",
            discount_value=10,
            min_order_amount=1000,
            max_uses=100,
            used_count=0,
            is_active=True,
            valid_from=now - timedelta(days=1),
            valid_until=now + timedelta(days=30),
        )
        fields.update(overrides)
        async with session_maker() as s:
            promo = PromoCode(**fields)
            s.add(promo)
            await s.commit()
            return promo
    return _add


@pytest_asyncio.fixture
async def add_region(session_maker):
    async def _add(code="16", name="Alger", shipping_cost=400, is_active=True) -> ShippingRegion:
        async with session_maker() as s:
            region = ShippingRegion(code=code, name=name, shipping_cost=shipping_cost, delivery_days=2, is_active=is_active)
            s.add(region)
            await s.commit()
            return region
    return _add
