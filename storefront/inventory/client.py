"""
Inventory REST client.

Reads product listings (cached) and stock counts, resolves product images
for the cart, and performs product and product-image writes. Every successful write publishes on the inventory
NotificationBus so independently mounted views refetch; failed writes never
publish.
"""

import base64
import mimetypes
from typing import Any, Dict, Optional

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from storefront.bus import NotificationBus
from storefront.config import Settings
from storefront.errors import (
    ERROR_INVENTORY_REQUEST,
    ERROR_NO_AUTH_TOKEN,
    ERROR_STOCK_STATS_FORMAT,
    ERROR_UNAUTHORIZED,
    AuthenticationError,
    InventoryAPIError,
)
from storefront.logging import get_logger, loggable
from storefront.storage import PersistenceAdapter, StorageKeys
from .cache import ProductCache
from .models import LOW_STOCK_THRESHOLD, Product, ProductPage

logger = get_logger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Best-effort error text from an API error body."""
    try:
        data = response.json()
    except ValueError:
        return response.reason_phrase or ERROR_INVENTORY_REQUEST
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or ERROR_INVENTORY_REQUEST)
    return ERROR_INVENTORY_REQUEST


def _to_page(data: Any, page: int) -> ProductPage:
    """Normalize the listing formats the API has used (bare array or paginated object)."""
    if isinstance(data, list):
        return ProductPage(items=data, totalItems=len(data), totalPages=1, page=page)

    if isinstance(data, dict):
        if isinstance(data.get("items"), list):
            return ProductPage.model_validate({"page": page, **data})
        for value in data.values():
            if isinstance(value, list):
                return ProductPage(items=value, totalItems=len(value), totalPages=1, page=page)

    logger.error(f"Unexpected product listing format: {type(data).__name__}")
    return ProductPage(items=[], totalItems=0, totalPages=0, page=page)


class InventoryClient:
    """
    Async client for the product endpoints.

    Usage:
        async with InventoryClient(settings, persistence, bus) as client:
            page = await client.fetch_products(search="mask")
            await client.update_product(page.items[0].id, {"stock": 3})
    """

    def __init__(
        self,
        settings: Settings,
        persistence: PersistenceAdapter,
        bus: NotificationBus,
        cache: Optional[ProductCache] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.persistence = persistence
        self.bus = bus
        self.cache = cache or ProductCache(ttl=settings.product_cache_ttl)
        self._transport = transport
        self._http_client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "InventoryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _get_http_client(self) -> httpx.AsyncClient:
        """Lazy creation of shared httpx client with timeouts."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.settings.http_timeout, connect=5.0),
                transport=self._transport,
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None:
            await self._http_client.aclose()
            self._http_client = None

    # ------------------------------------------------------------------
    # Request plumbing
    # ------------------------------------------------------------------

    def _auth_headers(self) -> Dict[str, str]:
        token = self.persistence.load_string(StorageKeys.TOKEN)
        if not token:
            raise AuthenticationError(ERROR_NO_AUTH_TOKEN)
        return {"Authorization": f"Bearer {token}"}

    def _handle_unauthorized(self) -> None:
        # Session is no longer valid; the auth layer redirects on missing token
        self.persistence.remove(StorageKeys.TOKEN)
        self.persistence.remove(StorageKeys.USER_ROLE)

    async def _send(self, method: str, path: str, **kwargs) -> httpx.Response:
        headers = {**self._auth_headers(), **kwargs.pop("headers", {})}
        client = await self._get_http_client()
        response = await client.request(method, self.settings.endpoint(path), headers=headers, **kwargs)

        if response.status_code == 401:
            self._handle_unauthorized()
            raise AuthenticationError(ERROR_UNAUTHORIZED, status_code=401)
        return response

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> httpx.Response:
        return await self._send("GET", path, params=params, headers={"Cache-Control": "no-cache"})

    async def _write(self, method: str, path: str, payload: Optional[dict] = None, **kwargs) -> httpx.Response:
        try:
            response = await self._send(method, path, json=payload, **kwargs)
        except httpx.RequestError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise InventoryAPIError(f"{ERROR_INVENTORY_REQUEST}: {e}") from e

        if response.is_error:
            message = _error_message(response)
            logger.error(f"{method} {path} returned {response.status_code}: {message}")
            raise InventoryAPIError(message, status_code=response.status_code)
        return response

    def _inventory_changed(self) -> None:
        self.cache.invalidate_all()
        self.bus.publish()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def fetch_products(
        self,
        search: str = "",
        category: str = "all",
        page: int = 1,
        limit: int = 20,
        force_refresh: bool = False,
    ) -> ProductPage:
        """
        Fetch one page of products, served from cache when fresh.

        Raises:
            AuthenticationError: If no token is stored or it was rejected
            InventoryAPIError: On a non-2xx response or network failure
        """
        cache_key = f"products_{search}_{category}_{page}_{limit}"
        if not force_refresh:
            cached = self.cache.get(cache_key)
            if cached is not None:
                logger.debug(f"Using cached products for {loggable(cache_key, 64)}")
                return cached

        params: Dict[str, Any] = {"page": page, "limit": limit}
        if search:
            params["search"] = search
        if category != "all":
            params["category"] = category

        result = _to_page(await self._read_json("producto", params), page)
        return self.cache.set(cache_key, result)

    async def get_product(self, product_id: str) -> Optional[Product]:
        """Fetch a single product; None if it does not exist."""
        try:
            response = await self._get(f"producto/{product_id}")
        except httpx.RequestError as e:
            raise InventoryAPIError(f"{ERROR_INVENTORY_REQUEST}: {e}") from e

        if response.status_code == 404:
            return None
        if response.is_error:
            raise InventoryAPIError(_error_message(response), status_code=response.status_code)
        return Product.model_validate(response.json())

    async def get_product_image(self, product_id: str) -> Optional[str]:
        """
        Resolve a product image as base64 text.

        Used as the cart's image lookup. Called once per lookup, no retries.

        Returns:
            Base64-encoded image, or None if the product has no image
        """
        client = await self._get_http_client()
        response = await client.get(
            self.settings.endpoint(f"producto/{product_id}/imagen"),
            headers=self._auth_headers(),
        )

        if response.status_code == 401:
            self._handle_unauthorized()
            raise AuthenticationError(ERROR_UNAUTHORIZED, status_code=401)
        if response.status_code == 404 or not response.content:
            return None
        if response.is_error:
            raise InventoryAPIError(_error_message(response), status_code=response.status_code)

        logger.debug(f"Resolved image for product {loggable(product_id)}")
        return base64.b64encode(response.content).decode("ascii")

    # ------------------------------------------------------------------
    # Writes (publish on success only)
    # ------------------------------------------------------------------

    async def create_product(self, data: Dict[str, Any], image: Optional[bytes] = None) -> Product:
        """
        Create a product, then upload its image if one is given.

        The product exists once the first request succeeds, so the change is
        published even when the image upload then fails (the upload error is
        still raised).
        """
        response = await self._write("POST", "producto", data)
        product = Product.model_validate(response.json())
        try:
            if image is not None:
                await self._upload_image(product.id, image)
        finally:
            self._inventory_changed()
        return product

    async def update_product(
        self, product_id: str, data: Dict[str, Any], image: Optional[bytes] = None
    ) -> Product:
        """Update a product, then replace its image if one is given."""
        response = await self._write("PUT", f"producto/{product_id}", data)
        product = Product.model_validate(response.json())
        try:
            if image is not None:
                await self._upload_image(product_id, image)
        finally:
            self._inventory_changed()
        return product

    async def delete_product(self, product_id: str) -> bool:
        await self._write("DELETE", f"producto/{product_id}")
        self._inventory_changed()
        return True

    async def upload_product_image(
        self, product_id: str, content: bytes, filename: str = "imagen.webp"
    ) -> Optional[str]:
        """
        Upload an image for an existing product.

        Returns:
            The image URL reported by the API, if any
        """
        image_url = await self._upload_image(product_id, content, filename)
        self._inventory_changed()
        return image_url

    async def delete_product_image(self, product_id: str) -> bool:
        await self._write("DELETE", f"producto/{product_id}/imagen")
        self._inventory_changed()
        return True

    async def _upload_image(
        self, product_id: str, content: bytes, filename: str = "imagen.webp"
    ) -> Optional[str]:
        content_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
        response = await self._write(
            "POST",
            f"producto/{product_id}/imagen",
            files={"imagen": (filename, content, content_type)},
        )
        logger.info(f"Uploaded image for product {loggable(product_id)} ({len(content)} bytes)")
        try:
            data = response.json()
        except ValueError:
            return None
        return data.get("imageUrl") if isinstance(data, dict) else None

    # ------------------------------------------------------------------
    # Stock statistics
    # ------------------------------------------------------------------

    async def count_low_stock_products(self, threshold: int = LOW_STOCK_THRESHOLD) -> int:
        """
        Number of products with low stock, as counted by the API.

        Raises:
            InventoryAPIError: On a failed request or a response without a count
        """
        data = await self._read_json("producto/stats/stock", {"threshold": threshold})
        count = data.get("count") if isinstance(data, dict) else None
        if isinstance(count, bool) or not isinstance(count, int):
            raise InventoryAPIError(ERROR_STOCK_STATS_FORMAT)
        return count

    async def count_out_of_stock_products(self) -> int:
        """Number of products without stock (reads only the listing total)."""
        data = await self._read_json("producto", {"noStock": "true", "limit": 1})
        if isinstance(data, dict) and isinstance(data.get("totalItems"), int):
            return data["totalItems"]
        return len(data) if isinstance(data, list) else 0

    async def _read_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        try:
            response = await self._get(path, params=params)
        except httpx.RequestError as e:
            logger.error(f"GET {path} failed: {e}")
            raise InventoryAPIError(f"{ERROR_INVENTORY_REQUEST}: {e}") from e

        if response.is_error:
            raise InventoryAPIError(_error_message(response), status_code=response.status_code)
        return response.json()

    def subscribe_cache_invalidation(self):
        """Drop cached listings whenever any producer publishes; returns unsubscribe."""
        return self.bus.subscribe(self.cache.invalidate_all)
