"""
Storefront client state layer

This package contains:
- cart: cart store with derived totals, persisted on every change
- bus: payload-free notification bus for inventory changes
- storage: storage backends and the persistence adapter
- dashboard: admin dashboard navigation state
- inventory: product REST client and listing cache
- context: composition root wiring the above together

Note: Imports are lazy so that importing a submodule does not pull in
the HTTP and Redis clients.
"""

__all__ = [
    "CartItem",
    "CartStore",
    "NotificationBus",
    "get_inventory_bus",
    "create_context",
    "get_context",
]


def __getattr__(name):
    """Lazy attribute access."""
    if name == "CartItem":
        from storefront.cart import CartItem
        return CartItem
    elif name == "CartStore":
        from storefront.cart import CartStore
        return CartStore
    elif name == "NotificationBus":
        from storefront.bus import NotificationBus
        return NotificationBus
    elif name == "get_inventory_bus":
        from storefront.bus import get_inventory_bus
        return get_inventory_bus
    elif name == "create_context":
        from storefront.context import create_context
        return create_context
    elif name == "get_context":
        from storefront.context import get_context
        return get_context
    raise AttributeError(f"module 'storefront' has no attribute '{name}'")
