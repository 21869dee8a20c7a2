"""Cart store ports (abstract interfaces).

Two tiers back every cart:

- ``EphemeralCartStore`` — fast, TTL-bound key/value store holding the live
  Cart by ``(tenant_id, session_id)``. Redis in production, an in-memory
  adapter for development and tests.
- ``DurableCartStore`` — non-expiring store of PersistedCart envelopes,
  queryable by id, session, user and age.

``SavedCartStore`` holds the "save for later" lists. Every lookup takes the
tenant explicitly; adapters must include it in every key or query.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta

from carts.cart.cart import Cart


class EphemeralCartStore(ABC):
    """Abstract fast-tier cart store."""

    @abstractmethod
    async def get(self, session_id: str, tenant_id: str) -> Cart | None:
        """Return the live cart for the session, or ``None`` on a miss."""
        ...

    @abstractmethod
    async def set(self, cart: Cart, ttl: timedelta) -> None:
        """Store ``cart`` under its session, expiring after ``ttl``."""
        ...

    @abstractmethod
    async def delete(self, session_id: str, tenant_id: str) -> bool:
        """Drop the session's cart; returns whether anything was removed."""
        ...

    @abstractmethod
    async def count(self, tenant_id: str) -> int:
        """Number of live carts for the tenant."""
        ...


class DurableCartStore(ABC):
    """Abstract durable cart store."""

    @abstractmethod
    async def find_by_id(self, cart_id: str, tenant_id: str):
        """Return the PersistedCart with this id in the tenant, or ``None``."""
        ...

    @abstractmethod
    async def find_by_session_and_tenant(self, session_id: str, tenant_id: str):
        """Return the PersistedCart owned by the session, preferring unconverted records."""
        ...

    @abstractmethod
    async def find_by_user_and_tenant(self, user_id: str, tenant_id: str):
        """Return the customer's unconverted PersistedCart, or ``None``."""
        ...

    @abstractmethod
    async def find_abandoned(self, tenant_id: str, updated_before: datetime) -> list:
        """Unconverted records last updated strictly before ``updated_before``."""
        ...

    @abstractmethod
    async def find_unconverted(self, tenant_id: str) -> list:
        ...

    @abstractmethod
    async def count_unconverted(self, tenant_id: str) -> int:
        ...

    @abstractmethod
    async def save(self, record):
        """Create or replace a PersistedCart. Must refuse to clear ``converted``."""
        ...

    @abstractmethod
    async def delete(self, cart_id: str, tenant_id: str) -> bool:
        ...

    @abstractmethod
    async def delete_matching(self, tenant_id: str, *, converted: bool, updated_before: datetime) -> int:
        """Delete records with the given conversion flag updated strictly before the cut-off."""
        ...


class SavedCartStore(ABC):
    """Abstract store for "save for later" lists."""

    @abstractmethod
    async def find_by_user(self, user_id: str, tenant_id: str):
        ...

    @abstractmethod
    async def find_by_session(self, session_id: str, tenant_id: str):
        ...

    @abstractmethod
    async def save(self, saved_cart):
        ...

    @abstractmethod
    async def delete(self, saved_cart) -> None:
        ...
