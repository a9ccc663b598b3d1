"""Pytest configuration and fixtures"""
import asyncio
from decimal import Decimal

import pytest

from garden_market.cart.service import CartStore
from garden_market.catalog.cache import CatalogCache
from garden_market.catalog.models import Category, Product, Vendor
from garden_market.refresh.coordinator import RefreshCoordinator


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeProvider:
    """
    Catalog provider test double.

    Counts fetches, can be made to fail, and can be held open with `gate`
    so tests can issue concurrent refreshes while a fetch is in flight.
    """

    def __init__(self, vendor: Vendor, products: list[Product]):
        self.vendor = vendor
        self.products = products
        self.fetch_count = 0
        self.error: Exception | None = None
        self.gate: asyncio.Event | None = None

    async def fetch(self, vendor_id: str):
        self.fetch_count += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        grouped: dict[Category, list[Product]] = {}
        for product in self.products:
            grouped.setdefault(product.category, []).append(product)
        return self.vendor, grouped


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sample_vendor():
    """Sample garden"""
    return Vendor(
        id="garden-1",
        name="Green Thumb Gardens",
        owner_name="Ana Perera",
        address="12 Lake Road",
        phone_number="+94 77 000 0000",
        email_address="hello@greenthumb.test",
        operation_hours="Mon-Fri 8-17",
        has_delivery=True,
        delivery_cost=Decimal("3.50"),
        island_wide_delivery_cost=None,
        delivery_area="Colombo",
        profile_picture_url="https://example.test/garden-1.jpg",
    )


@pytest.fixture
def other_vendor():
    return Vendor(id="garden-2", name="Herb Corner", has_delivery=False)


@pytest.fixture
def rose():
    return Product(name="Rose", category=Category.FLOWERS, price=Decimal("5.00"), in_stock=True)


@pytest.fixture
def basil():
    return Product(name="Basil", category=Category.HERBS, price=Decimal("2.25"), in_stock=True)


@pytest.fixture
def mango():
    """Out-of-stock plant"""
    return Product(name="Mango", category=Category.FRUIT_TREES, price=Decimal("30"), in_stock=False)


@pytest.fixture
def cache(clock):
    return CatalogCache(ttl=300, clock=clock)


@pytest.fixture
def provider(sample_vendor, rose, basil, mango):
    return FakeProvider(sample_vendor, [rose, basil, mango])


@pytest.fixture
def coordinator(cache, provider):
    return RefreshCoordinator(cache, provider, refresh_interval=0.01)


@pytest.fixture
def cart(cache):
    store = CartStore(cache)
    cache.add_listener(store.reconcile)
    return store
