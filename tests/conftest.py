"""Pytest configuration and fixtures"""
import os
import pytest

from storefront.bus import NotificationBus
from storefront.cart import CartItem
from storefront.config import Settings
from storefront.storage import MemoryStorage, PersistenceAdapter

# Keep tests away from a developer's real storage file
os.environ.setdefault("STOREFRONT_STORAGE", "memory")


@pytest.fixture
def memory_storage():
    """Empty in-memory storage backend"""
    return MemoryStorage()


@pytest.fixture
def persistence(memory_storage):
    """Persistence adapter over in-memory storage"""
    return PersistenceAdapter(memory_storage)


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at a local test API"""
    return Settings(
        api_url="http://api.test/api/",
        storage_backend="memory",
        storage_path=tmp_path / "storage.json",
        http_timeout=2.0,
        product_cache_ttl=60.0,
    )


@pytest.fixture
def bus():
    """Fresh notification bus"""
    return NotificationBus("test")


@pytest.fixture
def make_item():
    """Factory for cart items"""
    def _make(item_id="p1", price=10, quantity=1, **kwargs):
        return CartItem(
            id=item_id,
            name=kwargs.pop("name", f"Product {item_id}"),
            unit_price=price,
            quantity=quantity,
            **kwargs,
        )
    return _make


@pytest.fixture
def sample_product():
    """Sample product as returned by the API"""
    return {
        "_id": "prod-123",
        "nombre": "Detergente Industrial",
        "descripcion": "Concentrado 5L",
        "categoria": "limpieza",
        "subCategoria": "detergentes",
        "precio": 1250.5,
        "stock": 8,
        "stockMinimo": 10,
        "hasImage": True,
    }


@pytest.fixture
def sample_cart_payload():
    """Cart as stored by the web frontend"""
    return [
        {"id": "p1", "name": "Mask", "price": 10, "quantity": 2, "category": "limpieza"},
        {"id": "p2", "name": "Gloves", "price": "2.50", "quantity": 4, "image": "aGVsbG8="},
    ]