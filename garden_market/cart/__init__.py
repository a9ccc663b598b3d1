"""Cart package: models, store, and persistence."""
from .models import AttentionReason, Cart, CartLine
from .service import CartStore

__all__ = [
    "AttentionReason",
    "Cart",
    "CartLine",
    "CartStore",
]
