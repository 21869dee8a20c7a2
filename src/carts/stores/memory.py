"""In-memory ephemeral cart store for development and testing.

Behaves like the Redis adapter: carts are kept as serialized JSON and vanish
once their TTL elapses. It can be switched into a failing mode at runtime to
exercise the degraded paths (ephemeral miss, write failure).
"""

from collections.abc import Callable
from datetime import datetime, timedelta

from carts.cart.cart import Cart, utcnow
from carts.stores.port import EphemeralCartStore


class EphemeralStoreUnavailable(ConnectionError):
    """Raised by the in-memory store while configured to fail."""


class MemoryEphemeralCartStore(EphemeralCartStore):
    """Configurable in-memory TTL cart store."""

    def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[str, datetime]] = {}
        self.should_fail: bool = False

    def configure(self, should_fail: bool) -> None:
        """Configure store behaviour at runtime."""
        self.should_fail = should_fail

    def _check_available(self) -> None:
        if self.should_fail:
            raise EphemeralStoreUnavailable("Ephemeral cart store unavailable")

    def _live(self, key: tuple[str, str]) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        return payload

    async def get(self, session_id: str, tenant_id: str) -> Cart | None:
        self._check_available()
        payload = self._live((tenant_id, session_id))
        return Cart.model_validate_json(payload) if payload else None

    async def set(self, cart: Cart, ttl: timedelta) -> None:
        self._check_available()
        self._entries[(cart.tenant_id, cart.session_id)] = (cart.model_dump_json(), self._clock() + ttl)

    async def delete(self, session_id: str, tenant_id: str) -> bool:
        self._check_available()
        return self._entries.pop((tenant_id, session_id), None) is not None

    async def count(self, tenant_id: str) -> int:
        self._check_available()
        return sum(1 for key in list(self._entries) if key[0] == tenant_id and self._live(key) is not None)

    def expire(self, session_id: str, tenant_id: str) -> None:
        """Drop an entry as if its TTL had elapsed."""
        self._entries.pop((tenant_id, session_id), None)

    def clear(self) -> None:
        self._entries.clear()
