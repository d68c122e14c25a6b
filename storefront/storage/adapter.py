"""Persistence adapter - best-effort JSON reads and writes over a storage backend."""
import json
from typing import Any, Callable, Optional, TypeVar

from storefront.logging import get_logger, loggable
from .backends import KeyValueStorage

logger = get_logger(__name__)

T = TypeVar("T")

# Errors that mean "stored value does not have the expected shape"
PARSE_ERRORS = (json.JSONDecodeError, KeyError, TypeError, ValueError)


class StorageKeys:
    """Storage keys shared with the web frontend."""

    CART = "cart"
    DASHBOARD_SECTION = "currentDashboardSection"
    SELECTED_ENTITY = "selectedEntityId"
    SELECTED_USER = "selectedUserId"

    # Owned by the auth layer; read by the inventory client
    TOKEN = "token"
    USER_ROLE = "userRole"


class PersistenceAdapter:
    """
    Wraps a KeyValueStorage with JSON (de)serialization.

    Nothing here raises to the caller: corrupt entries read as None and are
    cleared, failed writes are logged and reported as False. In-memory state
    stays authoritative for the session.
    """

    def __init__(self, storage: KeyValueStorage):
        self.storage = storage

    def load(self, key: str, parse: Optional[Callable[[Any], T]] = None) -> Optional[T]:
        """
        Read and decode the JSON value at key.

        Args:
            key: Storage key
            parse: Optional converter applied to the decoded JSON; it signals
                a bad shape by raising KeyError, TypeError or ValueError

        Returns:
            Parsed value, or None if absent or corrupted
        """
        raw = self.load_string(key)
        if raw is None:
            return None

        try:
            data = json.loads(raw)
            return parse(data) if parse is not None else data
        except PARSE_ERRORS as e:
            # Corrupted data - clear it so the next read does not fail again
            logger.warning(f"Corrupted value in storage key {loggable(key)}, discarding: {e}")
            self.remove(key)
            return None

    def save(self, key: str, value: Any, serialize: Optional[Callable[[Any], Any]] = None) -> bool:
        """
        Serialize value to JSON and write it at key, overwriting.

        Returns:
            True if written, False if serialization or the write failed
        """
        try:
            payload = json.dumps(serialize(value) if serialize is not None else value, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to serialize value for storage key {loggable(key)}: {e}")
            return False
        return self.save_string(key, payload)

    def load_string(self, key: str) -> Optional[str]:
        """Read a raw string; backend failures read as None."""
        try:
            return self.storage.get_item(key)
        except Exception as e:
            logger.error(f"Failed to read storage key {loggable(key)}: {e}")
            return None

    def save_string(self, key: str, value: str) -> bool:
        """Write a raw string; quota or availability failures are logged."""
        try:
            self.storage.set_item(key, value)
            return True
        except Exception as e:
            logger.error(f"Failed to write storage key {loggable(key)}: {e}")
            return False

    def remove(self, key: str) -> bool:
        """Delete key; a missing key is not an error."""
        try:
            self.storage.remove_item(key)
            return True
        except Exception as e:
            logger.error(f"Failed to remove storage key {loggable(key)}: {e}")
            return False
