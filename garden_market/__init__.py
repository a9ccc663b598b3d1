"""garden-market: cart and catalog freshness for the garden storefront."""

__version__ = "0.1.0"
