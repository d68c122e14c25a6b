"""
Notification Bus - payload-free publish/subscribe.

Used process-wide for "inventory changed" signals: any component that wrote
product data publishes, every subscribed component refetches. The cart store
uses a private instance for its own change listeners.
"""

from typing import Callable, List, Optional

from storefront.logging import get_logger

logger = get_logger(__name__)

Callback = Callable[[], None]


class _Subscription:
    """One registration. Identity, not callback equality, is what unsubscribe removes."""

    __slots__ = ("callback",)

    def __init__(self, callback: Callback):
        self.callback = callback


class NotificationBus:
    """
    Ordered set of zero-argument callbacks.

    Usage:
        bus = NotificationBus()
        unsubscribe = bus.subscribe(reload_products)
        bus.publish()
        unsubscribe()
    """

    def __init__(self, name: str = "inventory"):
        self.name = name
        self._subscriptions: List[_Subscription] = []

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def subscribe(self, callback: Callback) -> Callable[[], None]:
        """
        Register callback.

        Registering the same function twice creates two registrations, each
        removed independently.

        Returns:
            Function removing exactly this registration (safe to call twice)
        """
        if not callable(callback):
            raise TypeError("callback must be callable")

        subscription = _Subscription(callback)
        self._subscriptions.append(subscription)

        def unsubscribe() -> None:
            for index, existing in enumerate(self._subscriptions):
                if existing is subscription:
                    del self._subscriptions[index]
                    return

        return unsubscribe

    def publish(self) -> bool:
        """
        Invoke every current subscriber once, in subscription order.

        Subscribers added or removed during the pass do not change who is
        called in this pass. A subscriber that raises is logged and skipped.

        Returns:
            True once the pass has run; subscriber failures do not change it
        """
        snapshot = list(self._subscriptions)
        failed = 0
        for subscription in snapshot:
            try:
                subscription.callback()
            except Exception as e:
                failed += 1
                logger.warning(f"[{self.name}] Subscriber {subscription.callback!r} failed: {e}", exc_info=True)

        if failed:
            logger.debug(f"[{self.name}] Published to {len(snapshot)} subscribers, {failed} failed")
        return True

    def clear(self) -> None:
        """Drop all subscribers."""
        self._subscriptions.clear()


# Singleton instance
_inventory_bus: Optional[NotificationBus] = None


def get_inventory_bus() -> NotificationBus:
    """Get the process-wide inventory NotificationBus."""
    global _inventory_bus
    if _inventory_bus is None:
        _inventory_bus = NotificationBus("inventory")
    return _inventory_bus
