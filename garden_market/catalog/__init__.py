"""Catalog package: models, cache, and data providers."""
from .cache import CatalogCache, CatalogSnapshot, RefreshState
from .models import Category, Product, ProductKey, Vendor
from .provider import CatalogProvider, HttpCatalogProvider

__all__ = [
    "CatalogCache",
    "CatalogSnapshot",
    "RefreshState",
    "Category",
    "Product",
    "ProductKey",
    "Vendor",
    "CatalogProvider",
    "HttpCatalogProvider",
]
