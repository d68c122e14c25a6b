"""In-memory TTL cache for product listings."""
import time
from typing import Any, Callable, Dict, Optional, Tuple

from storefront.config import DEFAULT_PRODUCT_CACHE_TTL


class ProductCache:
    """
    Key -> value cache with a fixed time-to-live.

    Expired entries are dropped lazily on get() and in bulk by clean_expired().
    """

    def __init__(self, ttl: float = DEFAULT_PRODUCT_CACHE_TTL, clock: Callable[[], float] = time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._entries: Dict[str, Tuple[Any, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def set(self, key: str, value: Any) -> Any:
        self._entries[key] = (value, self._clock() + self.ttl)
        return value

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() > expires_at:
            del self._entries[key]
            return None
        return value

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def invalidate_all(self) -> None:
        self._entries.clear()

    def clean_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        expired = [key for key, (_, expires_at) in self._entries.items() if now > expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)
