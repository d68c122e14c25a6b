"""
Storage backends - synchronous string-keyed key/value media.

Provides:
- MemoryStorage: dict-backed, optional character quota
- FileStorage: single JSON document on disk, rewritten atomically
- RedisStorage: Upstash Redis (sync REST client), namespaced keys
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

from upstash_redis import Redis

from storefront.config import Settings
from storefront.errors import ERROR_STORAGE_QUOTA, ERROR_STORAGE_UNAVAILABLE, StorageQuotaExceeded
from storefront.logging import get_logger

logger = get_logger(__name__)


class KeyValueStorage(Protocol):
    """Synchronous string-keyed storage medium."""

    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """
    In-process storage.

    Args:
        initial: Optional starting contents
        quota: Optional limit on total characters (keys + values)
    """

    def __init__(self, initial: Optional[Dict[str, str]] = None, quota: Optional[int] = None):
        self._data: Dict[str, str] = dict(initial or {})
        self.quota = quota

    def _used(self, exclude: Optional[str] = None) -> int:
        return sum(len(k) + len(v) for k, v in self._data.items() if k != exclude)

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota is not None and self._used(exclude=key) + len(key) + len(value) > self.quota:
            raise StorageQuotaExceeded(ERROR_STORAGE_QUOTA)
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self):
        return list(self._data)


class FileStorage:
    """
    Storage persisted as one JSON object of key -> string.

    The file is read once on construction; every write rewrites it through a
    temp file and os.replace. An unreadable file starts out empty.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._data: Dict[str, str] = self._read()

    def _read(self) -> Dict[str, str]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            logger.warning(f"Storage file {self.path} unreadable: {e}")
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Storage file {self.path} is corrupted, starting empty: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Storage file {self.path} has unexpected shape, starting empty")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".storage-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, ensure_ascii=False)
            os.replace(tmp_path, self.path)
        except BaseException:
            Path(tmp_path).unlink(missing_ok=True)
            raise

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        previous = self._data.get(key)
        self._data[key] = value
        try:
            self._flush()
        except OSError:
            # Keep memory in step with disk
            if previous is None:
                self._data.pop(key, None)
            else:
                self._data[key] = previous
            raise

    def remove_item(self, key: str) -> None:
        if key not in self._data:
            return
        previous = self._data.pop(key)
        try:
            self._flush()
        except OSError:
            self._data[key] = previous
            raise


class RedisStorage:
    """Upstash Redis storage; every key is prefixed with the namespace."""

    def __init__(self, client: Redis, namespace: str = "storefront:"):
        self._client = client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}{key}"

    def get_item(self, key: str) -> Optional[str]:
        value = self._client.get(self._key(key))
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    def set_item(self, key: str, value: str) -> None:
        self._client.set(self._key(key), value)

    def remove_item(self, key: str) -> None:
        self._client.delete(self._key(key))


def create_storage(settings: Settings) -> KeyValueStorage:
    """
    Build the storage backend named by settings.storage_backend.

    Raises:
        ValueError: If the redis backend is selected without credentials
    """
    backend = settings.storage_backend
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return FileStorage(settings.storage_path)
    if backend == "redis":
        if not settings.redis_url or not settings.redis_token:
            raise ValueError(
                f"{ERROR_STORAGE_UNAVAILABLE}: UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN must be set"
            )
        client = Redis(url=settings.redis_url, token=settings.redis_token)
        return RedisStorage(client, namespace=settings.storage_namespace)
    raise ValueError(f"Unknown storage backend: {backend}")
