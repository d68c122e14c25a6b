"""Storage package: backends and the persistence adapter."""
from .adapter import PersistenceAdapter, StorageKeys
from .backends import (
    FileStorage,
    KeyValueStorage,
    MemoryStorage,
    RedisStorage,
    create_storage,
)

__all__ = [
    "PersistenceAdapter",
    "StorageKeys",
    "KeyValueStorage",
    "MemoryStorage",
    "FileStorage",
    "RedisStorage",
    "create_storage",
]
