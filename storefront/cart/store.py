"""Cart store - in-memory cart with derived totals, persisted on every mutation."""
import asyncio
from decimal import Decimal
from typing import Awaitable, Callable, Optional, Set, Tuple

from storefront.bus import NotificationBus
from storefront.errors import ERROR_QUANTITY_NOT_INTEGER
from storefront.logging import get_logger, loggable
from storefront.money import round_money, to_float
from storefront.storage import PersistenceAdapter, StorageKeys
from .models import CartItem, parse_cart_items, serialize_cart_items

logger = get_logger(__name__)

ImageLookup = Callable[[str], Awaitable[Optional[str]]]


class CartStore:
    """
    Owns the shopping cart for one session.

    Features:
    - Additive merge on repeated product ids (first-seen metadata kept)
    - Totals derived from the current items on every read
    - Full item list written through the persistence adapter after each change
    - Missing images resolved in the background via an async lookup

    Usage:
        store = CartStore(PersistenceAdapter(MemoryStorage()))
        store.add_item(CartItem(id="p1", name="Mask", unit_price=10, quantity=2))
        store.total_price  # Decimal("20")
    """

    def __init__(
        self,
        persistence: PersistenceAdapter,
        image_lookup: Optional[ImageLookup] = None,
        key: str = StorageKeys.CART,
    ):
        self._persistence = persistence
        self._image_lookup = image_lookup
        self._key = key
        self._changes = NotificationBus("cart")
        self._pending: Set[asyncio.Task] = set()

        stored = persistence.load(key, parse=parse_cart_items)
        self._items: Tuple[CartItem, ...] = tuple(stored or ())
        logger.debug(f"Cart hydrated with {len(self._items)} items")

    # ------------------------------------------------------------------
    # Read accessors
    # ------------------------------------------------------------------

    @property
    def items(self) -> Tuple[CartItem, ...]:
        """Current items in insertion order (immutable snapshot)."""
        return self._items

    @property
    def total_items(self) -> int:
        """Sum of quantities."""
        return sum(item.quantity for item in self._items)

    @property
    def total_price(self) -> Decimal:
        """Sum of unit price x quantity."""
        return sum((item.total_price for item in self._items), Decimal("0"))

    @property
    def is_empty(self) -> bool:
        return not self._items

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return self._find(item_id) is not None

    def get_item(self, item_id: str) -> Optional[CartItem]:
        found = self._find(item_id)
        return found[1] if found else None

    def summary(self) -> dict:
        """Cart summary for display and API payloads."""
        if not self._items:
            return {"is_empty": True, "total_items": 0, "total_price": 0.0, "items": []}

        return {
            "is_empty": False,
            "total_items": self.total_items,
            "total_price": to_float(round_money(self.total_price)),
            "items": [
                {
                    "id": item.id,
                    "name": item.name,
                    "quantity": item.quantity,
                    "unit_price": to_float(item.unit_price),
                    "total": to_float(round_money(item.total_price)),
                    "has_image": item.image is not None,
                }
                for item in self._items
            ],
        }

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_item(self, item: CartItem) -> Optional[asyncio.Task]:
        """
        Add item, or add its quantity to the entry with the same id.

        For an existing id only the quantity changes; the stored name, price,
        image and categories are kept. The image lookup is therefore gated on
        the stored entry: merging an item that carries an image into an
        imageless entry still schedules a lookup, and the incoming image is
        dropped.

        Returns:
            The background image lookup task if one was scheduled
        """
        if not isinstance(item, CartItem):
            raise TypeError("add_item expects a CartItem")

        found = self._find(item.id)
        if found is None:
            entry = item
            items = self._items + (entry,)
        else:
            index, current = found
            entry = current.with_quantity(current.quantity + item.quantity)
            items = self._items[:index] + (entry,) + self._items[index + 1:]

        self._commit(items)

        if entry.image is None and self._image_lookup is not None:
            return self._schedule_enrichment(entry.id)
        return None

    def remove_item(self, item_id: str) -> None:
        """Drop the entry with item_id; unknown ids are ignored."""
        if self._find(item_id) is None:
            return
        self._commit(tuple(item for item in self._items if item.id != item_id))

    def update_quantity(self, item_id: str, quantity: int) -> None:
        """
        Set the quantity of item_id exactly.

        A quantity of zero or less removes the item. Callers holding raw input
        should pass it through validators.coerce_quantity first.
        """
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            raise ValueError(ERROR_QUANTITY_NOT_INTEGER)

        if quantity <= 0:
            self.remove_item(item_id)
            return

        found = self._find(item_id)
        if found is None:
            return
        index, current = found
        if current.quantity == quantity:
            return
        self._commit(self._items[:index] + (current.with_quantity(quantity),) + self._items[index + 1:])

    def clear_cart(self) -> None:
        """Remove every item."""
        if not self._items:
            return
        self._commit(())

    # ------------------------------------------------------------------
    # Change listeners
    # ------------------------------------------------------------------

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        """Call listener after every committed change; returns the unsubscribe function."""
        return self._changes.subscribe(listener)

    # ------------------------------------------------------------------
    # Image enrichment
    # ------------------------------------------------------------------

    async def wait_for_enrichment(self) -> None:
        """Wait until no image lookup is in flight."""
        pending = [task for task in self._pending if not task.done()]
        while pending:
            await asyncio.gather(*pending, return_exceptions=True)
            pending = [task for task in self._pending if not task.done()]

    def _schedule_enrichment(self, item_id: str) -> Optional[asyncio.Task]:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running event loop, item {loggable(item_id)} kept without image")
            return None

        task = loop.create_task(self._enrich(item_id))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _enrich(self, item_id: str) -> None:
        safe_id = loggable(item_id)
        try:
            image = await self._image_lookup(item_id)
        except Exception as e:
            logger.warning(f"Image lookup failed for item {safe_id}: {e}")
            return

        if not image:
            logger.debug(f"No image available for item {safe_id}")
            return

        # The item may have been removed (or given an image) while we waited
        found = self._find(item_id)
        if found is None:
            logger.debug(f"Item {safe_id} left the cart before its image resolved, discarding")
            return
        index, current = found
        if current.image is not None:
            return

        self._commit(self._items[:index] + (current.with_image(image),) + self._items[index + 1:])

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _find(self, item_id: object) -> Optional[Tuple[int, CartItem]]:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index, item
        return None

    def _commit(self, items: Tuple[CartItem, ...]) -> None:
        self._items = tuple(items)
        self._persistence.save(self._key, self._items, serialize=serialize_cart_items)
        self._changes.publish()
