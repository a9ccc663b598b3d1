"""
Error types and message constants for the cart-and-freshness core.

Cart errors are raised synchronously and never mutate state. Refresh errors
are delivered to whoever awaits the refresh; the catalog keeps serving its
last-known-good snapshot.
"""

# Cart errors
ERROR_INVALID_QUANTITY = "Quantity must be a positive integer"
ERROR_OUT_OF_STOCK = "Product out of stock"
ERROR_VENDOR_MISMATCH = "Cart already holds items from another garden"

# Catalog errors
ERROR_REFRESH_FAILED = "Catalog refresh failed"
ERROR_CATALOG_FETCH = "Catalog fetch failed"


class CartError(ValueError):
    """Rejected cart operation."""

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class InvalidQuantity(CartError):
    """Non-positive or non-integer quantity."""

    def __init__(self, quantity: object) -> None:
        super().__init__(f"{ERROR_INVALID_QUANTITY}, got {quantity!r}", code="INVALID_QUANTITY")
        self.quantity = quantity


class OutOfStock(CartError):
    """Add attempted on a product that is not available."""

    def __init__(self, vendor_id: str, product_name: str) -> None:
        super().__init__(f"{ERROR_OUT_OF_STOCK}: {product_name}", code="OUT_OF_STOCK")
        self.vendor_id = vendor_id
        self.product_name = product_name


class VendorMismatch(CartError):
    """Cart is bound to a different vendor."""

    def __init__(self, active_vendor_id: str, requested_vendor_id: str) -> None:
        super().__init__(
            f"{ERROR_VENDOR_MISMATCH} ({active_vendor_id}), cannot add from {requested_vendor_id}",
            code="VENDOR_MISMATCH",
        )
        self.active_vendor_id = active_vendor_id
        self.requested_vendor_id = requested_vendor_id


class CatalogFetchError(Exception):
    """Error from the catalog data source."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class RefreshFailed(Exception):
    """A refresh did not complete. The underlying error is chained as __cause__."""

    def __init__(self, vendor_id: str, cause: BaseException | None = None) -> None:
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{ERROR_REFRESH_FAILED} for {vendor_id}{detail}")
        self.vendor_id = vendor_id
        self.code = "REFRESH_FAILED"
