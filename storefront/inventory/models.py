"""Inventory models - products as returned by the REST API."""
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from pydantic import BaseModel, Field, field_validator

from storefront.cart.models import CartItem
from storefront.money import to_decimal as _to_decimal

# Stock at or below this (and above zero) counts as low when a product has no stockMinimo
LOW_STOCK_THRESHOLD = 10


class Product(BaseModel):
    """Product model (API field names are aliases)."""
    id: str = Field(alias="_id")
    name: str = Field(alias="nombre")
    description: Optional[str] = Field(default=None, alias="descripcion")
    category: Optional[str] = Field(default=None, alias="categoria")
    subcategory: Optional[str] = Field(default=None, alias="subCategoria")
    brand: Optional[str] = Field(default=None, alias="marca")
    price: Decimal = Field(alias="precio")
    stock: int = 0
    min_stock: Optional[int] = Field(default=None, alias="stockMinimo")
    has_image: Optional[bool] = Field(default=None, alias="hasImage")

    class Config:
        extra = "ignore"
        populate_by_name = True

    @field_validator("price", mode="before")
    @classmethod
    def convert_to_decimal(cls, v):
        return _to_decimal(v)

    @property
    def is_out_of_stock(self) -> bool:
        return self.stock <= 0

    @property
    def is_low_stock(self) -> bool:
        if self.min_stock is not None:
            return self.stock <= self.min_stock
        return 0 < self.stock <= LOW_STOCK_THRESHOLD

    def to_cart_item(self, quantity: int = 1) -> CartItem:
        """Cart line for this product; the image is left for the cart to look up."""
        return CartItem(
            id=self.id,
            name=self.name,
            unit_price=self.price,
            quantity=quantity,
            category=self.category,
            subcategory=self.subcategory,
        )


class ProductPage(BaseModel):
    """One page of a product listing."""
    items: List[Product]
    total_items: int = Field(default=0, alias="totalItems")
    total_pages: int = Field(default=1, alias="totalPages")
    page: int = 1

    class Config:
        extra = "ignore"
        populate_by_name = True


def count_stock_levels(products: Iterable[Product], threshold: int = LOW_STOCK_THRESHOLD) -> Dict[str, int]:
    """
    Tally low and empty stock in a loaded listing.

    Local estimate for views that already hold products; the API's counts are
    authoritative (see InventoryClient.count_low_stock_products).
    """
    low = out = 0
    for product in products:
        if product.stock <= 0:
            out += 1
        elif product.stock <= threshold:
            low += 1
    return {"low_stock": low, "out_of_stock": out}
