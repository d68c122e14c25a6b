"""
Common Error Constants and Exceptions

Centralized error messages to avoid string duplication.
"""

from typing import Optional

# Cart contract errors
ERROR_ITEM_ID_REQUIRED = "item id must be a non-empty string"
ERROR_ITEM_NAME_INVALID = "item name must be a string"
ERROR_QUANTITY_INVALID = "quantity must be a positive integer"
ERROR_QUANTITY_NOT_INTEGER = "quantity must be an integer"
ERROR_PRICE_INVALID = "price must be a non-negative number"
ERROR_DUPLICATE_ITEM_ID = "duplicate item id in stored cart"

# Storage errors
ERROR_STORAGE_QUOTA = "Storage quota exceeded"
ERROR_STORAGE_UNAVAILABLE = "Storage unavailable"

# Inventory API errors
ERROR_NO_AUTH_TOKEN = "No authentication token"
ERROR_UNAUTHORIZED = "Unauthorized"
ERROR_PRODUCT_NOT_FOUND = "Product not found"
ERROR_INVENTORY_REQUEST = "Inventory request failed"
ERROR_STOCK_STATS_FORMAT = "Unexpected stock statistics response"


class InventoryAPIError(Exception):
    """Non-successful response from the inventory REST API."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(InventoryAPIError):
    """Missing or rejected bearer token."""


class StorageQuotaExceeded(Exception):
    """Raised by a storage backend when a write would exceed its quota."""
