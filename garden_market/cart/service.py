"""
Cart store - selected plants, derived totals and catalog reconciliation.

All operations are synchronous: nothing here awaits, so two rapid adds of
the same plant always merge into one line.

Single-garden policy: a cart holds plants from one garden at a time. Adding
from another garden while lines exist raises VendorMismatch and leaves the
cart untouched; once the cart is empty any garden may be used.
"""
import dataclasses
from decimal import Decimal
from typing import Callable, Iterable, Optional

from garden_market.catalog.cache import CatalogCache, CatalogSnapshot
from garden_market.catalog.models import Product, ProductKey, Vendor
from garden_market.errors import InvalidQuantity, OutOfStock, VendorMismatch
from garden_market.logging import get_logger, sanitize_id_for_logging, sanitize_string_for_logging

from .models import AttentionReason, Cart, CartLine, LineRecord

logger = get_logger(__name__)

CartListener = Callable[[Cart], None]


def _validate_quantity(quantity: object) -> int:
    # bool is an int subclass but never a quantity
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidQuantity(quantity)
    return quantity


class CartStore:
    """
    Holds cart lines and validates mutations against the catalog cache.

    Mutators return the new immutable Cart snapshot and notify subscribers.
    """

    def __init__(self, cache: CatalogCache):
        self.cache = cache
        self._lines: list[LineRecord] = []
        self._vendor: Optional[Vendor] = None
        self._catalog_generation: Optional[int] = None
        self._listeners: list[CartListener] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def vendor_id(self) -> Optional[str]:
        """Garden the cart is currently bound to."""
        return self._lines[0].vendor_id if self._lines else None

    def _find(self, vendor_id: str, product_key: ProductKey) -> Optional[LineRecord]:
        for record in self._lines:
            if record.vendor_id == vendor_id and record.product_key == product_key:
                return record
        return None

    def _build_line(self, record: LineRecord) -> CartLine:
        catalog = self.cache.get(record.vendor_id)
        product = catalog.find_product(record.product_key) if catalog else None
        if product is not None:
            unit_price, fallback = product.price, False
        else:
            unit_price, fallback = record.captured_price, True
        return CartLine(
            vendor_id=record.vendor_id,
            product_key=record.product_key,
            quantity=record.quantity,
            captured_price=record.captured_price,
            unit_price=unit_price,
            needs_attention=record.attention_reason is not None,
            attention_reason=record.attention_reason,
            price_may_have_changed=fallback,
            added_at=record.added_at,
        )

    def snapshot(self) -> Cart:
        """Current cart with prices resolved against the catalog."""
        if not self._lines:
            return Cart()
        return Cart(
            lines=tuple(self._build_line(record) for record in self._lines),
            vendor_id=self.vendor_id,
            delivery_fee=self._vendor.delivery_fee if self._vendor else None,
            catalog_generation=self._catalog_generation,
        )

    @property
    def lines(self) -> tuple[CartLine, ...]:
        return self.snapshot().lines

    @property
    def item_count(self) -> int:
        return sum(record.quantity for record in self._lines)

    @property
    def subtotal(self) -> Decimal:
        """Sum of price * quantity using live catalog prices where available."""
        return self.snapshot().subtotal

    def needs_attention(self, vendor_id: str, product_key: ProductKey) -> bool:
        record = self._find(vendor_id, product_key)
        return record is not None and record.attention_reason is not None

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_to_cart(self, product: Product, vendor: Vendor, quantity: int = 1) -> Cart:
        """
        Add a plant, merging into an existing line.

        Raises:
            InvalidQuantity: quantity is not a positive integer
            OutOfStock: plant unavailable per the catalog (or per the product
                itself when the garden was never fetched)
            VendorMismatch: cart holds plants from another garden
        """
        quantity = _validate_quantity(quantity)
        if quantity <= 0:
            raise InvalidQuantity(quantity)

        active_vendor_id = self.vendor_id
        if active_vendor_id is not None and active_vendor_id != vendor.id:
            logger.debug(
                f"Rejected add from garden {sanitize_id_for_logging(vendor.id)}: "
                f"cart bound to {sanitize_id_for_logging(active_vendor_id)}"
            )
            raise VendorMismatch(active_vendor_id, vendor.id)

        catalog = self.cache.get(vendor.id)
        current = catalog.find_product(product.key) if catalog else product
        if not product.in_stock or current is None or not current.in_stock:
            logger.debug(f"Rejected add of out-of-stock plant {sanitize_string_for_logging(product.name)}")
            raise OutOfStock(vendor.id, product.name)

        record = self._find(vendor.id, product.key)
        if record is not None:
            record.quantity += quantity
            record.captured_price = current.price
            record.attention_reason = None
        else:
            self._lines.append(
                LineRecord(
                    vendor_id=vendor.id,
                    product_key=product.key,
                    quantity=quantity,
                    captured_price=current.price,
                )
            )

        self._vendor = catalog.vendor if catalog else vendor
        if catalog:
            self._catalog_generation = catalog.generation
        return self._notify()

    def update_quantity(self, vendor_id: str, product_key: ProductKey, new_quantity: int) -> Cart:
        """Set a line's quantity (not additive). Zero or less removes the line."""
        new_quantity = _validate_quantity(new_quantity)
        if new_quantity <= 0:
            return self.remove_from_cart(vendor_id, product_key)

        record = self._find(vendor_id, product_key)
        if record is None:
            return self.snapshot()
        record.quantity = new_quantity
        return self._notify()

    def remove_from_cart(self, vendor_id: str, product_key: ProductKey) -> Cart:
        """Remove a line. Missing lines are not an error."""
        record = self._find(vendor_id, product_key)
        if record is None:
            return self.snapshot()
        self._lines.remove(record)
        self._reset_if_empty()
        return self._notify()

    def clear(self) -> Cart:
        """Empty the cart (e.g. after a successful checkout)."""
        self._lines.clear()
        self._reset_if_empty()
        return self._notify()

    def restore(self, records: Iterable[LineRecord]) -> Cart:
        """
        Replace the cart contents with previously stored lines.

        Duplicate lines are merged. Lines are re-validated against the
        catalog if the garden is cached.

        Raises:
            VendorMismatch: stored lines span more than one garden
        """
        restored: list[LineRecord] = []
        for record in records:
            _validate_quantity(record.quantity)
            if record.quantity <= 0:
                raise InvalidQuantity(record.quantity)
            if restored and restored[0].vendor_id != record.vendor_id:
                raise VendorMismatch(restored[0].vendor_id, record.vendor_id)
            existing = next(
                (r for r in restored if r.product_key == record.product_key), None
            )
            if existing is not None:
                existing.quantity += record.quantity
            else:
                # Copied: the caller's records are not the store's to mutate
                restored.append(dataclasses.replace(record))

        self._lines = restored
        # The previous garden's record and generation do not describe these lines
        self._vendor = None
        self._catalog_generation = None
        if self._lines:
            catalog = self.cache.get(self._lines[0].vendor_id)
            if catalog is not None:
                self._apply_catalog(catalog)
        return self._notify()

    def _reset_if_empty(self) -> None:
        if not self._lines:
            self._vendor = None
            self._catalog_generation = None

    # ------------------------------------------------------------------
    # Catalog reconciliation
    # ------------------------------------------------------------------

    def _apply_catalog(self, catalog: CatalogSnapshot) -> int:
        flagged = 0
        for record in self._lines:
            if record.vendor_id != catalog.vendor.id:
                continue
            product = catalog.find_product(record.product_key)
            if product is None:
                record.attention_reason = AttentionReason.MISSING
            elif not product.in_stock:
                record.attention_reason = AttentionReason.OUT_OF_STOCK
            else:
                record.attention_reason = None
            if record.attention_reason is not None:
                flagged += 1
        self._vendor = catalog.vendor
        self._catalog_generation = catalog.generation
        return flagged

    def reconcile(self, catalog: CatalogSnapshot) -> None:
        """
        Re-validate lines after the catalog replaced a garden's snapshot.

        Unavailable lines are flagged, never deleted; lines whose plant is
        available again lose the flag.
        """
        if self.vendor_id != catalog.vendor.id:
            return
        flagged = self._apply_catalog(catalog)
        if flagged:
            logger.info(
                f"{flagged} cart line(s) need attention after refresh of garden "
                f"{sanitize_id_for_logging(catalog.vendor.id)}"
            )
        self._notify()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        """
        Call listener(cart) after every mutation or reconciliation.

        Returns:
            Callable that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self) -> Cart:
        cart = self.snapshot()
        for listener in list(self._listeners):
            listener(cart)
        return cart
