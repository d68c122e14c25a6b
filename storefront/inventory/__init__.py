"""Inventory package: product models, listing cache, REST client."""
from .cache import ProductCache
from .client import InventoryClient
from .models import LOW_STOCK_THRESHOLD, Product, ProductPage, count_stock_levels

__all__ = [
    "LOW_STOCK_THRESHOLD",
    "InventoryClient",
    "Product",
    "ProductCache",
    "ProductPage",
    "count_stock_levels",
]
