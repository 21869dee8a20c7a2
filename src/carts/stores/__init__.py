"""Cart store factory.

Provides get_*/set_* accessors to swap store implementations:
- MemoryEphemeralCartStore (default) or RedisEphemeralCartStore for the fast tier
- ProteanDurableCartStore / ProteanSavedCartStore for the durable tier
"""

from carts.config import get_settings
from carts.stores.memory import MemoryEphemeralCartStore
from carts.stores.port import DurableCartStore, EphemeralCartStore, SavedCartStore

_ephemeral_store: EphemeralCartStore | None = None
_durable_store: DurableCartStore | None = None
_saved_store: SavedCartStore | None = None


def get_ephemeral_store() -> EphemeralCartStore:
    """Return the current ephemeral store, built from settings on first use."""
    global _ephemeral_store
    if _ephemeral_store is None:
        settings = get_settings()
        if settings.ephemeral_store == "redis":
            from carts.stores.redis_adapter import RedisEphemeralCartStore

            _ephemeral_store = RedisEphemeralCartStore(url=settings.redis_url)
        else:
            _ephemeral_store = MemoryEphemeralCartStore()
    return _ephemeral_store


def get_durable_store() -> DurableCartStore:
    global _durable_store
    if _durable_store is None:
        from carts.domain import carts
        from carts.stores.protean_adapter import ProteanDurableCartStore

        _durable_store = ProteanDurableCartStore(carts)
    return _durable_store


def get_saved_store() -> SavedCartStore:
    global _saved_store
    if _saved_store is None:
        from carts.domain import carts
        from carts.stores.protean_adapter import ProteanSavedCartStore

        _saved_store = ProteanSavedCartStore(carts)
    return _saved_store


def set_stores(
    ephemeral: EphemeralCartStore | None = None,
    durable: DurableCartStore | None = None,
    saved: SavedCartStore | None = None,
) -> None:
    """Override the active stores (useful for tests)."""
    global _ephemeral_store, _durable_store, _saved_store
    if ephemeral is not None:
        _ephemeral_store = ephemeral
    if durable is not None:
        _durable_store = durable
    if saved is not None:
        _saved_store = saved


def reset_stores() -> None:
    """Reset to default stores."""
    global _ephemeral_store, _durable_store, _saved_store
    _ephemeral_store = None
    _durable_store = None
    _saved_store = None
