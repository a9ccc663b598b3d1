"""Catalog models - Pydantic models for gardens and their plants."""
from decimal import Decimal
from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel


def _float_via_str(v):
    # Floats go through str so 0.1 stays 0.1; everything else is left to
    # pydantic, which rejects unparseable amounts
    return Decimal(str(v)) if isinstance(v, float) else v


class Category(str, Enum):
    """Plant categories, in the order the storefront shows them."""
    FLOWERS = "Flowers"
    FRUIT_TREES = "Fruit Trees"
    HERBS = "Herbs"
    OTHERS = "Others"


class ProductKey(NamedTuple):
    """Identity of a plant within a garden: names are unique per category."""
    name: str
    category: Category


class _CatalogModel(BaseModel):
    # Upstream payloads are camelCase; snake_case is accepted too
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class Vendor(_CatalogModel):
    """Garden record with contact and delivery policy."""
    id: str
    name: str
    owner_name: Optional[str] = None
    address: Optional[str] = None
    phone_number: Optional[str] = None
    email_address: Optional[str] = None
    operation_hours: Optional[str] = None
    has_delivery: bool = False
    delivery_cost: Optional[Decimal] = None
    island_wide_delivery_cost: Optional[Decimal] = None
    delivery_area: Optional[str] = None
    profile_picture_url: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def convert_id_to_str(cls, v):
        return str(v) if v is not None else v

    @field_validator("delivery_cost", "island_wide_delivery_cost", mode="before")
    @classmethod
    def convert_cost_to_decimal(cls, v):
        return _float_via_str(v)

    @property
    def delivery_fee(self) -> Optional[Decimal]:
        """
        Delivery fee charged by this garden.

        Island-wide pricing wins over the area cost. None when the garden
        does not deliver or has not published a cost.
        """
        if not self.has_delivery:
            return None
        if self.island_wide_delivery_cost is not None:
            return self.island_wide_delivery_cost
        return self.delivery_cost


class Product(_CatalogModel):
    """Plant listed by a garden."""
    name: str
    category: Category
    price: Decimal
    in_stock: bool = True
    description: Optional[str] = None
    image_url: Optional[str] = None

    @field_validator("price", mode="before")
    @classmethod
    def convert_price_to_decimal(cls, v):
        return _float_via_str(v)

    @field_validator("price")
    @classmethod
    def check_price_non_negative(cls, v: Decimal) -> Decimal:
        if v < 0:
            raise ValueError("price must be non-negative")
        return v

    @property
    def key(self) -> ProductKey:
        return ProductKey(self.name, self.category)
