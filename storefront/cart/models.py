"""Cart models with Decimal-based pricing."""
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Any, List, Optional

from storefront.errors import (
    ERROR_DUPLICATE_ITEM_ID,
    ERROR_ITEM_ID_REQUIRED,
    ERROR_ITEM_NAME_INVALID,
    ERROR_QUANTITY_INVALID,
)
from storefront.money import multiply, parse_price, to_float
from storefront.validators import is_positive_int


def _optional_str(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise TypeError(f"{field} must be a string or null")
    return value


@dataclass(frozen=True)
class CartItem:
    """
    Single line in the cart.

    `id` refers to a product; the cart does not own it. `image` is an
    encoded asset (base64) filled in lazily.
    """
    id: str
    name: str
    unit_price: Decimal
    quantity: int
    image: Optional[str] = None
    category: Optional[str] = None
    subcategory: Optional[str] = None

    def __post_init__(self):
        if not self.id or not isinstance(self.id, str):
            raise ValueError(ERROR_ITEM_ID_REQUIRED)
        if not isinstance(self.name, str):
            raise ValueError(ERROR_ITEM_NAME_INVALID)
        if not is_positive_int(self.quantity):
            raise ValueError(ERROR_QUANTITY_INVALID)
        # Normalize price (frozen, so bypass __setattr__)
        object.__setattr__(self, "unit_price", parse_price(self.unit_price))

    @property
    def total_price(self) -> Decimal:
        """Price for all units."""
        return multiply(self.unit_price, self.quantity)

    def with_quantity(self, quantity: int) -> "CartItem":
        return replace(self, quantity=quantity)

    def with_image(self, image: str) -> "CartItem":
        return replace(self, image=image)

    def to_dict(self) -> dict:
        """Convert to the persisted shape."""
        return {
            "id": self.id,
            "name": self.name,
            "price": to_float(self.unit_price),
            "quantity": self.quantity,
            "image": self.image,
            "category": self.category,
            "subcategory": self.subcategory,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CartItem":
        """
        Create from the persisted shape.

        Raises:
            KeyError, TypeError, ValueError: If data is not a valid item
        """
        if not isinstance(data, dict):
            raise TypeError("cart item must be an object")
        return cls(
            id=data["id"],
            name=data["name"],
            unit_price=data["price"],
            quantity=data["quantity"],
            image=_optional_str(data.get("image"), "image"),
            category=_optional_str(data.get("category"), "category"),
            subcategory=_optional_str(data.get("subcategory"), "subcategory"),
        )


def parse_cart_items(data: Any) -> List[CartItem]:
    """
    Validate a persisted cart (JSON array of items).

    Raises:
        TypeError: If data is not a list
        ValueError: On an invalid item or a repeated id
    """
    if not isinstance(data, list):
        raise TypeError("stored cart must be an array")
    items = [CartItem.from_dict(entry) for entry in data]
    seen = set()
    for item in items:
        if item.id in seen:
            raise ValueError(ERROR_DUPLICATE_ITEM_ID)
        seen.add(item.id)
    return items


def serialize_cart_items(items) -> List[dict]:
    return [item.to_dict() for item in items]
