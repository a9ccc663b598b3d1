"""
Catalog Provider - fetches a garden record and its plants.

The refresh coordinator only depends on the CatalogProvider protocol;
HttpCatalogProvider is the default implementation against the storefront API.
"""
from collections import defaultdict
from typing import Mapping, Optional, Protocol, Sequence

import httpx
from pydantic import ValidationError

from garden_market.catalog.models import Category, Product, Vendor
from garden_market.config import DEFAULT_HTTP_TIMEOUT
from garden_market.errors import ERROR_CATALOG_FETCH, CatalogFetchError
from garden_market.logging import get_logger, sanitize_id_for_logging

logger = get_logger(__name__)

CatalogPayload = tuple[Vendor, Mapping[Category, Sequence[Product]]]


class CatalogProvider(Protocol):
    """Data source for one garden's catalog."""

    async def fetch(self, vendor_id: str) -> CatalogPayload:
        """Return the garden record and its plants grouped by category."""
        ...


class HttpCatalogProvider:
    """
    Fetches catalogs over HTTP.

    Endpoints:
        GET {base_url}/gardens/{id}         -> garden record
        GET {base_url}/gardens/{id}/plants  -> list of plants

    Timeouts are enforced here, not by the coordinator.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = DEFAULT_HTTP_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get HTTP client (lazy initialization)."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def _get_json(self, path: str):
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.get(url)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise CatalogFetchError(
                f"{ERROR_CATALOG_FETCH}: {e.response.status_code} from {path}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            raise CatalogFetchError(f"{ERROR_CATALOG_FETCH}: {e}") from e
        except ValueError as e:
            raise CatalogFetchError(f"{ERROR_CATALOG_FETCH}: invalid JSON from {path}") from e

    async def fetch(self, vendor_id: str) -> CatalogPayload:
        vendor_data = await self._get_json(f"/gardens/{vendor_id}")
        plants_data = await self._get_json(f"/gardens/{vendor_id}/plants")

        if not isinstance(plants_data, list):
            raise CatalogFetchError(f"{ERROR_CATALOG_FETCH}: plants payload is not a list")

        try:
            vendor = Vendor.model_validate(vendor_data)
            products = [Product.model_validate(item) for item in plants_data]
        except ValidationError as e:
            raise CatalogFetchError(f"{ERROR_CATALOG_FETCH}: {e.error_count()} invalid fields") from e

        grouped: dict[Category, list[Product]] = defaultdict(list)
        for product in products:
            grouped[product.category].append(product)

        logger.debug(
            f"Fetched {len(products)} plants for garden {sanitize_id_for_logging(vendor_id)}"
        )
        return vendor, dict(grouped)

    async def aclose(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
