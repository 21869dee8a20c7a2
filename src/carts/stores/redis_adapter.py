"""Redis-backed ephemeral cart store.

Carts are stored as JSON strings under ``cart:{tenant_id}:{session_id}`` with
a native Redis expiry, so the tenant is part of every key.
"""

from datetime import timedelta

import structlog
from redis import asyncio as aioredis

from carts.cart.cart import Cart
from carts.stores.port import EphemeralCartStore

logger = structlog.get_logger(__name__)

CART_KEY_PREFIX = "cart"


def cart_key(tenant_id: str, session_id: str) -> str:
    return f"{CART_KEY_PREFIX}:{tenant_id}:{session_id}"


class RedisEphemeralCartStore(EphemeralCartStore):
    def __init__(self, url: str | None = None, client: aioredis.Redis | None = None):
        if client is None and url is None:
            raise ValueError("RedisEphemeralCartStore needs a url or a client")
        self.redis = client or aioredis.Redis.from_url(url, decode_responses=True)

    async def get(self, session_id: str, tenant_id: str) -> Cart | None:
        payload = await self.redis.get(cart_key(tenant_id, session_id))
        if payload is None:
            return None
        return Cart.model_validate_json(payload)

    async def set(self, cart: Cart, ttl: timedelta) -> None:
        # SET cart:<tenant>:<session> <json> EX <seconds>
        seconds = max(int(ttl.total_seconds()), 1)
        await self.redis.set(cart_key(cart.tenant_id, cart.session_id), cart.model_dump_json(), ex=seconds)

    async def delete(self, session_id: str, tenant_id: str) -> bool:
        return bool(await self.redis.delete(cart_key(tenant_id, session_id)))

    async def count(self, tenant_id: str) -> int:
        total = 0
        async for _ in self.redis.scan_iter(match=cart_key(tenant_id, "*")):
            total += 1
        return total

    async def close(self) -> None:
        await self.redis.aclose()
