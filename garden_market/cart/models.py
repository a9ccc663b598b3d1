"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from garden_market.catalog.models import Category, ProductKey
from garden_market.services.money import add, multiply, round_money


def _parse_price(value) -> Decimal:
    """Strict Decimal conversion: a bad stored price raises instead of becoming 0."""
    try:
        price = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation as e:
        raise ValueError(f"invalid price: {value!r}") from e
    if not price.is_finite() or price < 0:
        raise ValueError(f"invalid price: {value!r}")
    return price


class AttentionReason(str, Enum):
    """Why a cart line contradicts the latest catalog."""
    OUT_OF_STOCK = "out_of_stock"
    MISSING = "missing"


@dataclass(frozen=True)
class CartLine:
    """
    One aggregated entry for a garden + plant.

    captured_price is the price seen when the plant was first added;
    unit_price is what the cart currently charges (live catalog price when
    the plant is still listed).
    """
    vendor_id: str
    product_key: ProductKey
    quantity: int
    captured_price: Decimal
    unit_price: Decimal
    needs_attention: bool = False
    attention_reason: Optional[AttentionReason] = None
    price_may_have_changed: bool = False
    added_at: str = ""

    @property
    def product_name(self) -> str:
        return self.product_key.name

    @property
    def total_price(self) -> Decimal:
        """Total price for all units."""
        return round_money(multiply(self.unit_price, self.quantity))

    def to_dict(self) -> dict:
        """Convert to dictionary for storage."""
        return {
            "vendor_id": self.vendor_id,
            "product_name": self.product_key.name,
            "category": self.product_key.category.value,
            "quantity": self.quantity,
            "captured_price": str(self.captured_price),
            "added_at": self.added_at,
        }


@dataclass
class LineRecord:
    """Mutable per-line state owned by the cart store."""
    vendor_id: str
    product_key: ProductKey
    quantity: int
    captured_price: Decimal
    attention_reason: Optional[AttentionReason] = None
    added_at: str = ""

    def __post_init__(self):
        if not self.added_at:
            self.added_at = datetime.now(timezone.utc).isoformat()
        self.captured_price = _parse_price(self.captured_price)

    @classmethod
    def from_dict(cls, data: dict) -> "LineRecord":
        """Create from a stored dictionary."""
        return cls(
            vendor_id=str(data["vendor_id"]),
            product_key=ProductKey(data["product_name"], Category(data["category"])),
            quantity=int(data["quantity"]),
            captured_price=_parse_price(data["captured_price"]),
            added_at=data.get("added_at", ""),
        )


@dataclass(frozen=True)
class Cart:
    """Immutable cart snapshot handed to UI consumers."""
    lines: tuple[CartLine, ...] = ()
    vendor_id: Optional[str] = None
    delivery_fee: Optional[Decimal] = None
    catalog_generation: Optional[int] = None

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def item_count(self) -> int:
        """Total number of units in cart."""
        return sum(line.quantity for line in self.lines)

    @property
    def subtotal(self) -> Decimal:
        return round_money(sum((line.total_price for line in self.lines), Decimal("0")))

    @property
    def total(self) -> Decimal:
        """Subtotal plus delivery fee when the garden publishes one."""
        if self.is_empty or self.delivery_fee is None:
            return self.subtotal
        return round_money(add(self.subtotal, self.delivery_fee))

    @property
    def needs_attention(self) -> bool:
        return any(line.needs_attention for line in self.lines)

    @property
    def price_may_have_changed(self) -> bool:
        return any(line.price_may_have_changed for line in self.lines)

    def find_line(self, vendor_id: str, product_key: ProductKey) -> Optional[CartLine]:
        for line in self.lines:
            if line.vendor_id == vendor_id and line.product_key == product_key:
                return line
        return None

    def to_summary(self) -> dict:
        """JSON-friendly summary for UI collaborators."""
        return {
            "is_empty": self.is_empty,
            "vendor_id": self.vendor_id,
            "item_count": self.item_count,
            "items": [
                {
                    "product_name": line.product_name,
                    "category": line.product_key.category.value,
                    "quantity": line.quantity,
                    "unit_price": str(line.unit_price),
                    "total": str(line.total_price),
                    "needs_attention": line.needs_attention,
                    "attention_reason": line.attention_reason.value if line.attention_reason else None,
                    "price_may_have_changed": line.price_may_have_changed,
                }
                for line in self.lines
            ],
            "subtotal": str(self.subtotal),
            "delivery_fee": str(self.delivery_fee) if self.delivery_fee is not None else None,
            "total": str(self.total),
        }
