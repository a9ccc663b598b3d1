"""
Catalog Cache - last known garden record and plant collection per vendor.

The cache never performs I/O. It is filled by the refresh coordinator and
serves stale-while-revalidate: invalidation only marks an entry stale, the
data stays readable until a replacement arrives.
"""
import asyncio
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Iterable, Mapping, Optional

from garden_market.catalog.models import Category, Product, ProductKey, Vendor
from garden_market.config import DEFAULT_CATALOG_TTL
from garden_market.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

ProductsByCategory = Mapping[Category, tuple[Product, ...]]
SnapshotListener = Callable[["CatalogSnapshot"], None]


@dataclass(frozen=True)
class CatalogSnapshot:
    """Immutable view of one garden's catalog at a given generation."""
    vendor: Vendor
    products_by_category: ProductsByCategory
    generation: int
    fetched_at: float
    is_stale: bool

    def products(self, category: Category) -> tuple[Product, ...]:
        return self.products_by_category.get(category, ())

    def find_product(self, key: ProductKey) -> Optional[Product]:
        """Look up a plant by (name, category); None if the garden no longer lists it."""
        for product in self.products(key.category):
            if product.name == key.name:
                return product
        return None


@dataclass(frozen=True)
class RefreshState:
    """Freshness bookkeeping for one cache entry."""
    last_fetched_at: float
    generation: int
    invalidated: bool = False


@dataclass
class _Entry:
    vendor: Vendor
    products_by_category: ProductsByCategory
    state: RefreshState


def normalize_products(
    products_by_category: Mapping[Category, Iterable[Product]],
) -> ProductsByCategory:
    """
    Group plants under their own category, with every category present.

    Upstream data keyed by category label is tolerated; a plant always lands
    under the category it declares.
    """
    grouped: dict[Category, list[Product]] = {category: [] for category in Category}
    for products in products_by_category.values():
        for product in products:
            grouped[product.category].append(product)
    return MappingProxyType({category: tuple(items) for category, items in grouped.items()})


class CatalogCache:
    """
    Holds the last fetched snapshot per vendor id.

    Entries are replaced wholesale by replace(); each replacement strictly
    increases the entry's generation, so a consumer that captured a
    generation before an await can tell whether it must re-read.
    """

    def __init__(
        self,
        ttl: float = DEFAULT_CATALOG_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._waiters: dict[str, list[asyncio.Future]] = {}
        self._listeners: list[SnapshotListener] = []

    def _entry_is_stale(self, entry: _Entry) -> bool:
        if entry.state.invalidated:
            return True
        return self._clock() - entry.state.last_fetched_at > self.ttl

    def _snapshot(self, entry: _Entry) -> CatalogSnapshot:
        return CatalogSnapshot(
            vendor=entry.vendor,
            products_by_category=entry.products_by_category,
            generation=entry.state.generation,
            fetched_at=entry.state.last_fetched_at,
            is_stale=self._entry_is_stale(entry),
        )

    def get(self, vendor_id: str) -> Optional[CatalogSnapshot]:
        """Last known snapshot for the vendor, or None if it was never fetched."""
        entry = self._entries.get(vendor_id)
        if entry is None:
            return None
        return self._snapshot(entry)

    def is_stale(self, vendor_id: str) -> bool:
        """True when the entry is missing, expired or invalidated."""
        entry = self._entries.get(vendor_id)
        if entry is None:
            return True
        return self._entry_is_stale(entry)

    def refresh_state(self, vendor_id: str) -> Optional[RefreshState]:
        entry = self._entries.get(vendor_id)
        return entry.state if entry else None

    def vendor_ids(self) -> list[str]:
        return list(self._entries)

    def invalidate(self, vendor_id: str) -> None:
        """Mark an entry stale. Data is kept for readers until replaced."""
        entry = self._entries.get(vendor_id)
        if entry is None:
            return
        entry.state = RefreshState(
            last_fetched_at=entry.state.last_fetched_at,
            generation=entry.state.generation,
            invalidated=True,
        )
        logger.debug(f"Invalidated catalog for {sanitize_id_for_logging(vendor_id)}")

    def replace(
        self,
        vendor_id: str,
        vendor: Vendor,
        products_by_category: Mapping[Category, Iterable[Product]],
    ) -> CatalogSnapshot:
        """
        Swap in a freshly fetched catalog.

        Increments the generation, clears staleness, resolves pending
        waiters and notifies listeners, in that order.

        Returns:
            The new snapshot
        """
        if vendor.id != vendor_id:
            raise ValueError(f"vendor record {vendor.id!r} does not match {vendor_id!r}")

        previous = self._entries.get(vendor_id)
        generation = previous.state.generation + 1 if previous else 1
        entry = _Entry(
            vendor=vendor,
            products_by_category=normalize_products(products_by_category),
            state=RefreshState(last_fetched_at=self._clock(), generation=generation),
        )
        self._entries[vendor_id] = entry
        snapshot = self._snapshot(entry)

        for waiter in self._waiters.pop(vendor_id, []):
            if not waiter.done():
                waiter.set_result(snapshot)

        for listener in list(self._listeners):
            listener(snapshot)

        logger.debug(
            f"Catalog for {sanitize_id_for_logging(vendor_id)} replaced, generation {generation}"
        )
        return snapshot

    def wait_for_update(self, vendor_id: str) -> "asyncio.Future[CatalogSnapshot]":
        """Future resolved with the snapshot produced by the next replace()."""
        waiter = asyncio.get_running_loop().create_future()
        self._waiters.setdefault(vendor_id, []).append(waiter)
        return waiter

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        """
        Call listener(snapshot) after every replace().

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def clear(self) -> None:
        """Drop all entries and cancel outstanding waiters (teardown)."""
        for waiters in self._waiters.values():
            for waiter in waiters:
                if not waiter.done():
                    waiter.cancel()
        self._waiters.clear()
        self._entries.clear()
