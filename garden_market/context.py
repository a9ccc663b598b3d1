"""
Application context - owns the catalog cache, refresh coordinator and cart.

Constructed once by the application root and passed to consumers; close()
tears everything down.
"""
import asyncio
from typing import Optional

from garden_market.cart.service import CartStore
from garden_market.catalog.cache import CatalogCache, CatalogSnapshot
from garden_market.catalog.provider import CatalogProvider, HttpCatalogProvider
from garden_market.config import Settings
from garden_market.logging import get_logger
from garden_market.refresh.coordinator import RefreshCoordinator

logger = get_logger(__name__)


class AppContext:
    """Explicitly constructed owner of the cart-and-freshness services."""

    def __init__(self, cache: CatalogCache, coordinator: RefreshCoordinator, cart: CartStore):
        self.cache = cache
        self.coordinator = coordinator
        self.cart = cart
        self._detach_cart = cache.add_listener(cart.reconcile)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def ensure_fresh(self, vendor_id: str, force: bool = False) -> Optional[CatalogSnapshot]:
        """
        Subscribe to a garden being viewed and bring its catalog up to date.

        Raises:
            RefreshFailed: if the fetch failed; the previous snapshot stays cached
        """
        self.coordinator.subscribe(vendor_id)
        # The refresh task is shared; a cancelled page load must not cancel it
        await asyncio.shield(self.coordinator.refresh(vendor_id, force=force))
        return self.cache.get(vendor_id)

    def close(self) -> None:
        """Cancel refresh timers and clear the cache. Idempotent."""
        if self._closed:
            return
        self._closed = True
        self.coordinator.cleanup()
        self._detach_cart()
        self.cache.clear()
        logger.info("Application context closed")


def create_app_context(
    provider: Optional[CatalogProvider] = None,
    settings: Optional[Settings] = None,
) -> AppContext:
    """
    Build the services from settings.

    Args:
        provider: Catalog data source (defaults to HttpCatalogProvider)
        settings: Settings (defaults to Settings.from_env())
    """
    settings = settings or Settings.from_env()
    if provider is None:
        provider = HttpCatalogProvider(settings.catalog_api_url, timeout=settings.http_timeout)

    cache = CatalogCache(ttl=settings.catalog_ttl)
    coordinator = RefreshCoordinator(cache, provider, refresh_interval=settings.refresh_interval)
    return AppContext(cache=cache, coordinator=coordinator, cart=CartStore(cache))
