"""
Tests for the inventory client, cache and models
"""

import base64
import json
from decimal import Decimal
from unittest.mock import Mock

import httpx
import pytest
from tenacity import wait_none

from storefront.errors import AuthenticationError, InventoryAPIError
from storefront.inventory import InventoryClient, Product, ProductCache, count_stock_levels


@pytest.fixture
def authed(persistence):
    """Persistence with a stored auth token"""
    persistence.save_string("token", "test-token")
    persistence.save_string("userRole", "admin")
    return persistence


@pytest.fixture
def make_client(settings, authed, bus):
    """Build an InventoryClient over a mock transport"""
    def _make(handler):
        return InventoryClient(settings, authed, bus, transport=httpx.MockTransport(handler))
    return _make


class TestProductModels:
    """Tests for Product."""

    def test_aliases(self, sample_product):
        """Test API field names map onto the model"""
        product = Product.model_validate(sample_product)

        assert product.id == "prod-123"
        assert product.name == "Detergente Industrial"
        assert product.price == Decimal("1250.5")
        assert product.subcategory == "detergentes"
        assert product.is_low_stock is True

    def test_to_cart_item(self, sample_product):
        """Test conversion to a cart line"""
        item = Product.model_validate(sample_product).to_cart_item(quantity=2)

        assert item.id == "prod-123"
        assert item.quantity == 2
        assert item.unit_price == Decimal("1250.5")
        assert item.category == "limpieza"
        assert item.image is None

    def test_stock_flags_without_minimum(self):
        """Test the default low-stock threshold applies when stockMinimo is missing"""
        low = Product.model_validate({"_id": "a", "nombre": "A", "precio": 1, "stock": 3})
        empty = Product.model_validate({"_id": "b", "nombre": "B", "precio": 1, "stock": 0})
        plenty = Product.model_validate({"_id": "c", "nombre": "C", "precio": 1, "stock": 50})

        assert low.is_low_stock and not low.is_out_of_stock
        assert empty.is_out_of_stock and not empty.is_low_stock
        assert not plenty.is_low_stock

    def test_count_stock_levels(self):
        """Test the local low and out-of-stock tally"""
        products = [
            Product.model_validate({"_id": str(i), "nombre": "P", "precio": 1, "stock": stock})
            for i, stock in enumerate([0, 0, 4, 10, 11])
        ]

        assert count_stock_levels(products) == {"low_stock": 2, "out_of_stock": 2}
        assert count_stock_levels(products, threshold=4) == {"low_stock": 1, "out_of_stock": 2}


class TestProductCache:
    """Tests for ProductCache."""

    def test_expiry(self):
        """Test entries expire after the TTL"""
        now = [100.0]
        cache = ProductCache(ttl=10, clock=lambda: now[0])
        cache.set("k", "v")

        assert cache.get("k") == "v"
        now[0] = 111.0
        assert cache.get("k") is None
        assert len(cache) == 0

    def test_clean_expired(self):
        """Test bulk removal of expired entries"""
        now = [0.0]
        cache = ProductCache(ttl=5, clock=lambda: now[0])
        cache.set("old", 1)
        now[0] = 4.0
        cache.set("new", 2)
        now[0] = 6.0

        assert cache.clean_expired() == 1
        assert cache.get("new") == 2

    def test_invalidate(self):
        """Test single and full invalidation"""
        cache = ProductCache()
        cache.set("a", 1)
        cache.set("b", 2)

        cache.invalidate("a")
        assert cache.get("a") is None
        cache.invalidate_all()
        assert len(cache) == 0


class TestFetchProducts:
    """Tests for product listing."""

    @pytest.mark.asyncio
    async def test_fetch_and_cache(self, make_client, sample_product):
        """Test a listing is fetched once and then served from cache"""
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=[sample_product])

        client = make_client(handler)
        page = await client.fetch_products(search="deter")
        again = await client.fetch_products(search="deter")
        await client.aclose()

        assert len(requests) == 1
        assert again is page
        assert page.items[0].id == "prod-123"
        assert page.total_items == 1
        request = requests[0]
        assert request.url.path == "/api/producto"
        assert request.url.params["search"] == "deter"
        assert request.url.params["page"] == "1"
        assert "category" not in request.url.params
        assert request.headers["Authorization"] == "Bearer test-token"

    @pytest.mark.asyncio
    async def test_force_refresh(self, make_client, sample_product):
        """Test force_refresh bypasses the cache"""
        handler = Mock(side_effect=lambda request: httpx.Response(200, json=[sample_product]))

        async with make_client(handler) as client:
            await client.fetch_products()
            await client.fetch_products(force_refresh=True)

        assert handler.call_count == 2

    @pytest.mark.asyncio
    async def test_paginated_response(self, make_client, sample_product):
        """Test the paginated listing format"""
        def handler(request):
            return httpx.Response(200, json={
                "items": [sample_product], "totalItems": 41, "totalPages": 3,
            })

        async with make_client(handler) as client:
            page = await client.fetch_products(page=2, category="limpieza")

        assert page.total_items == 41
        assert page.total_pages == 3
        assert page.page == 2

    @pytest.mark.asyncio
    async def test_missing_token(self, settings, persistence, bus):
        """Test no request is made without a token"""
        handler = Mock()
        client = InventoryClient(settings, persistence, bus, transport=httpx.MockTransport(handler))

        with pytest.raises(AuthenticationError):
            await client.fetch_products()
        handler.assert_not_called()

    @pytest.mark.asyncio
    async def test_unauthorized_clears_session(self, make_client, authed):
        """Test a 401 drops the stored token and role"""
        async with make_client(lambda request: httpx.Response(401)) as client:
            with pytest.raises(AuthenticationError):
                await client.fetch_products()

        assert authed.load_string("token") is None
        assert authed.load_string("userRole") is None

    @pytest.mark.asyncio
    async def test_server_error(self, make_client):
        """Test non-2xx responses raise with the API message"""
        def handler(request):
            return httpx.Response(500, json={"message": "db down"})

        async with make_client(handler) as client:
            with pytest.raises(InventoryAPIError) as exc_info:
                await client.fetch_products()

        assert exc_info.value.status_code == 500
        assert str(exc_info.value) == "db down"

    @pytest.mark.asyncio
    async def test_transport_error_retried(self, make_client, sample_product, monkeypatch):
        """Test GETs are retried on connection errors"""
        monkeypatch.setattr(InventoryClient._get.retry, "wait", wait_none())
        attempts = []

        def handler(request):
            attempts.append(request)
            if len(attempts) < 2:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, json=[sample_product])

        async with make_client(handler) as client:
            page = await client.fetch_products()

        assert len(attempts) == 2
        assert len(page.items) == 1

    @pytest.mark.asyncio
    async def test_get_product_not_found(self, make_client):
        """Test a 404 reads as None"""
        async with make_client(lambda request: httpx.Response(404)) as client:
            assert await client.get_product("missing") is None


class TestProductImage:
    """Tests for the image lookup."""

    @pytest.mark.asyncio
    async def test_image_base64(self, make_client):
        """Test the image body is returned base64-encoded"""
        def handler(request):
            assert request.url.path == "/api/producto/prod-1/imagen"
            return httpx.Response(200, content=b"\x89PNG")

        async with make_client(handler) as client:
            image = await client.get_product_image("prod-1")

        assert image == base64.b64encode(b"\x89PNG").decode("ascii")

    @pytest.mark.asyncio
    async def test_no_image(self, make_client):
        """Test a 404 means no image"""
        async with make_client(lambda request: httpx.Response(404)) as client:
            assert await client.get_product_image("prod-1") is None


class TestProductWrites:
    """Tests for writes and inventory notifications."""

    @pytest.mark.asyncio
    async def test_update_publishes_and_invalidates(self, make_client, bus, sample_product):
        """Test a successful update notifies subscribers once and clears the cache"""
        listener = Mock()
        bus.subscribe(listener)

        def handler(request):
            if request.method == "PUT":
                assert json.loads(request.content) == {"stock": 3}
                return httpx.Response(200, json={**sample_product, "stock": 3})
            return httpx.Response(200, json=[sample_product])

        async with make_client(handler) as client:
            await client.fetch_products()
            assert len(client.cache) == 1

            product = await client.update_product("prod-123", {"stock": 3})

            assert product.stock == 3
            assert len(client.cache) == 0

        listener.assert_called_once()

    @pytest.mark.asyncio
    async def test_create_publishes(self, make_client, bus, sample_product):
        """Test a successful create notifies subscribers"""
        listener = Mock()
        bus.subscribe(listener)

        async with make_client(lambda request: httpx.Response(201, json=sample_product)) as client:
            product = await client.create_product({"nombre": "Detergente Industrial", "precio": 1250.5})

        assert product.id == "prod-123"
        listener.assert_called_once()

    @pytest.mark.asyncio
    async def test_delete_publishes(self, make_client, bus):
        """Test a successful delete notifies subscribers"""
        listener = Mock()
        bus.subscribe(listener)

        async with make_client(lambda request: httpx.Response(204)) as client:
            assert await client.delete_product("prod-123") is True

        listener.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_write_does_not_publish(self, make_client, bus, sample_product):
        """Test an API error raises without notifying or dropping the cache"""
        listener = Mock()
        bus.subscribe(listener)

        def handler(request):
            if request.method == "DELETE":
                return httpx.Response(409, json={"message": "product in use"})
            return httpx.Response(200, json=[sample_product])

        async with make_client(handler) as client:
            await client.fetch_products()
            with pytest.raises(InventoryAPIError) as exc_info:
                await client.delete_product("prod-123")
            assert len(client.cache) == 1

        assert exc_info.value.status_code == 409
        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_network_failure_does_not_publish(self, make_client, bus):
        """Test a transport error raises without notifying"""
        listener = Mock()
        bus.subscribe(listener)

        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with make_client(handler) as client:
            with pytest.raises(InventoryAPIError):
                await client.create_product({"nombre": "x"})

        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_other_producer_invalidates_cache(self, make_client, bus, sample_product):
        """Test a publish from anywhere clears cached listings"""
        async with make_client(lambda request: httpx.Response(200, json=[sample_product])) as client:
            unsubscribe = client.subscribe_cache_invalidation()
            await client.fetch_products()

            bus.publish()
            assert len(client.cache) == 0

            unsubscribe()
            await client.fetch_products()
            bus.publish()
            assert len(client.cache) == 1


class TestProductImageWrites:
    """Tests for product image upload and removal."""

    @pytest.mark.asyncio
    async def test_create_with_image_uploads_then_publishes(self, make_client, bus, sample_product):
        """Test the image is sent as multipart after the product is created"""
        listener = Mock()
        bus.subscribe(listener)
        requests = []

        def handler(request):
            requests.append(request)
            if request.url.path.endswith("/imagen"):
                return httpx.Response(200, json={"imageUrl": "/images/products/prod-123.webp"})
            return httpx.Response(201, json=sample_product)

        async with make_client(handler) as client:
            product = await client.create_product({"nombre": "Detergente Industrial"}, image=b"\x89PNG")

        assert product.id == "prod-123"
        assert [(r.method, r.url.path) for r in requests] == [
            ("POST", "/api/producto"),
            ("POST", "/api/producto/prod-123/imagen"),
        ]
        assert b'name="imagen"' in requests[1].content
        assert b"\x89PNG" in requests[1].content
        assert requests[1].headers["Authorization"] == "Bearer test-token"
        listener.assert_called_once()

    @pytest.mark.asyncio
    async def test_failed_upload_still_publishes_created_product(self, make_client, bus, sample_product):
        """Test a created product is announced even if its image upload fails"""
        listener = Mock()
        bus.subscribe(listener)

        def handler(request):
            if request.url.path.endswith("/imagen"):
                return httpx.Response(413, json={"message": "image too large"})
            return httpx.Response(201, json=sample_product)

        async with make_client(handler) as client:
            with pytest.raises(InventoryAPIError) as exc_info:
                await client.create_product({"nombre": "x"}, image=b"big")

        assert exc_info.value.status_code == 413
        listener.assert_called_once()

    @pytest.mark.asyncio
    async def test_update_without_image_skips_upload(self, make_client, sample_product):
        """Test no image request is made when no image is given"""
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json=sample_product)

        async with make_client(handler) as client:
            await client.update_product("prod-123", {"stock": 1})

        assert paths == ["/api/producto/prod-123"]

    @pytest.mark.asyncio
    async def test_upload_product_image(self, make_client, bus):
        """Test a standalone upload returns the image URL and publishes"""
        listener = Mock()
        bus.subscribe(listener)

        async with make_client(lambda request: httpx.Response(200, json={"imageUrl": "/img/p.webp"})) as client:
            url = await client.upload_product_image("prod-123", b"data", filename="foto.png")

        assert url == "/img/p.webp"
        listener.assert_called_once()

    @pytest.mark.asyncio
    async def test_delete_product_image(self, make_client, bus):
        """Test removing an image calls DELETE on the image endpoint and publishes"""
        listener = Mock()
        bus.subscribe(listener)
        seen = []

        def handler(request):
            seen.append((request.method, request.url.path))
            return httpx.Response(200, json={"message": "deleted"})

        async with make_client(handler) as client:
            assert await client.delete_product_image("prod-123") is True

        assert seen == [("DELETE", "/api/producto/prod-123/imagen")]
        listener.assert_called_once()


class TestStockCounts:
    """Tests for the stock statistics reads."""

    @pytest.mark.asyncio
    async def test_low_stock_count(self, make_client):
        """Test the count comes from the stats endpoint with the threshold"""
        def handler(request):
            assert request.url.path == "/api/producto/stats/stock"
            assert request.url.params["threshold"] == "10"
            return httpx.Response(200, json={"count": 7})

        async with make_client(handler) as client:
            assert await client.count_low_stock_products() == 7

    @pytest.mark.asyncio
    async def test_low_stock_bad_format(self, make_client):
        """Test a response without a count is an error"""
        async with make_client(lambda request: httpx.Response(200, json={"total": 7})) as client:
            with pytest.raises(InventoryAPIError):
                await client.count_low_stock_products()

    @pytest.mark.asyncio
    async def test_out_of_stock_count_paginated(self, make_client):
        """Test the paginated total is used"""
        def handler(request):
            assert request.url.params["noStock"] == "true"
            assert request.url.params["limit"] == "1"
            return httpx.Response(200, json={"items": [], "totalItems": 4})

        async with make_client(handler) as client:
            assert await client.count_out_of_stock_products() == 4

    @pytest.mark.asyncio
    async def test_out_of_stock_count_bare_list(self, make_client, sample_product):
        """Test a bare array is counted"""
        async with make_client(lambda request: httpx.Response(200, json=[sample_product])) as client:
            assert await client.count_out_of_stock_products() == 1
