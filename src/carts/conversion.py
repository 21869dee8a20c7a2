"""Cart to order conversion tracking.

Invoked by the order placement workflow once per order, synchronously as part
of checkout completion. Conversion is the single gate that removes a cart
from recovery and abandonment eligibility, and it is one-way: repeated calls
succeed without changing the recorded order.
"""

from collections.abc import Callable
from datetime import datetime

import structlog

from carts.cart.cart import utcnow
from carts.persisted.persisted_cart import PersistedCart
from carts.stores.port import DurableCartStore, EphemeralCartStore

logger = structlog.get_logger(__name__)


class ConversionTracker:
    def __init__(
        self,
        durable: DurableCartStore,
        ephemeral: EphemeralCartStore | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.durable = durable
        self.ephemeral = ephemeral
        self.clock = clock

    async def mark_converted(self, cart_id: str, order_id: str, tenant_id: str) -> PersistedCart | None:
        """Mark the cart as converted to ``order_id``; ``None`` if the cart is unknown."""
        record = await self.durable.find_by_id(cart_id, tenant_id)
        if record is None:
            logger.info("Cart to convert not found", cart_id=cart_id, order_id=order_id, tenant_id=tenant_id)
            return None

        if not record.mark_converted(order_id, now=self.clock()):
            logger.info(
                "Cart already converted",
                cart_id=cart_id,
                order_id=order_id,
                recorded_order_id=str(record.order_id),
                tenant_id=tenant_id,
            )
            return record

        await self.durable.save(record)
        await self._evict_live_copy(record)

        logger.info("Marked cart as converted", cart_id=cart_id, order_id=order_id, tenant_id=tenant_id)
        return record

    async def _evict_live_copy(self, record: PersistedCart) -> None:
        """Drop the converted cart from the ephemeral tier so it stops syncing."""
        if self.ephemeral is None:
            return
        try:
            live = await self.ephemeral.get(record.session_id, record.tenant_id)
            if live is not None and live.id == str(record.id):
                await self.ephemeral.delete(record.session_id, record.tenant_id)
        except Exception as exc:
            logger.warning(
                "Could not evict converted cart from ephemeral store",
                cart_id=str(record.id),
                tenant_id=record.tenant_id,
                error=str(exc),
            )
