"""Cart package: models and the cart store."""
from .models import CartItem, parse_cart_items, serialize_cart_items
from .store import CartStore

__all__ = [
    "CartItem",
    "CartStore",
    "parse_cart_items",
    "serialize_cart_items",
]
