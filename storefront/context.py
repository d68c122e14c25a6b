"""
Composition root - builds and owns the shared state containers.

One StorefrontContext per application: the cart, dashboard state and
inventory client are constructed here and handed to consumers, instead of
each consumer reaching for its own global.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional

import httpx

from storefront.bus import NotificationBus, get_inventory_bus
from storefront.cart import CartStore
from storefront.config import Settings, load_settings
from storefront.dashboard import DashboardState
from storefront.inventory import InventoryClient
from storefront.logging import configure_logging, get_logger
from storefront.storage import KeyValueStorage, PersistenceAdapter, create_storage

logger = get_logger(__name__)


@dataclass
class StorefrontContext:
    """Shared instances for one running application."""
    settings: Settings
    persistence: PersistenceAdapter
    inventory_bus: NotificationBus
    inventory: InventoryClient
    cart: CartStore
    dashboard: DashboardState
    _unsubscribe_cache: Callable[[], None] = field(default=lambda: None, repr=False)

    def detach(self) -> None:
        """Stop invalidating this context's product cache on inventory changes."""
        self._unsubscribe_cache()

    async def aclose(self) -> None:
        """Finish in-flight image lookups, leave the bus and close the HTTP client."""
        await self.cart.wait_for_enrichment()
        self.detach()
        await self.inventory.aclose()


def create_context(
    settings: Optional[Settings] = None,
    storage: Optional[KeyValueStorage] = None,
    bus: Optional[NotificationBus] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    initial_section: Optional[str] = None,
) -> StorefrontContext:
    """
    Wire the storefront state layer.

    Args:
        settings: Settings (loaded from the environment if omitted)
        storage: Storage backend (built from settings if omitted)
        bus: Inventory bus (the process-wide one if omitted)
        transport: Optional httpx transport for the inventory client
        initial_section: Dashboard section used when none is stored
    """
    settings = settings or load_settings()
    if settings.log_level:
        configure_logging(settings.log_level)
    persistence = PersistenceAdapter(storage if storage is not None else create_storage(settings))
    inventory_bus = bus or get_inventory_bus()
    inventory = InventoryClient(settings, persistence, inventory_bus, transport=transport)
    unsubscribe_cache = inventory.subscribe_cache_invalidation()

    context = StorefrontContext(
        settings=settings,
        persistence=persistence,
        inventory_bus=inventory_bus,
        inventory=inventory,
        cart=CartStore(persistence, image_lookup=inventory.get_product_image),
        dashboard=DashboardState(persistence, initial_section=initial_section),
        _unsubscribe_cache=unsubscribe_cache,
    )
    logger.info(f"Storefront context ready (storage={settings.storage_backend}, items in cart={len(context.cart)})")
    return context


# Singleton instance
_context: Optional[StorefrontContext] = None


def get_context() -> StorefrontContext:
    """Get the application StorefrontContext, creating it from the environment."""
    global _context
    if _context is None:
        _context = create_context()
    return _context


def reset_context() -> None:
    """Forget the application context (tests, re-login)."""
    global _context
    if _context is not None:
        _context.detach()
    _context = None
