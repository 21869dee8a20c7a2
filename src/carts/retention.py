"""Retention sweep — deletes converted carts once they are old enough.

Only converted records are eligible. Abandoned but unconverted carts are kept
indefinitely for recovery and analytics; purging them belongs to the separate
data-retention (GDPR) workflow.
"""

from collections.abc import Callable
from datetime import datetime

import structlog

from carts.cart.cart import as_utc, utcnow
from carts.config import CartSettings, get_settings
from carts.stores.port import DurableCartStore

logger = structlog.get_logger(__name__)


class RetentionSweeper:
    def __init__(
        self,
        durable: DurableCartStore,
        settings: CartSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.durable = durable
        self.settings = settings or get_settings()
        self.clock = clock

    async def cleanup(self, tenant_id: str, as_of: datetime | None = None) -> int:
        """Delete the tenant's converted carts last updated before the retention cut-off."""
        cutoff = as_utc(as_of or self.clock()) - self.settings.retention
        deleted = await self.durable.delete_matching(tenant_id, converted=True, updated_before=cutoff)

        logger.info(
            "Cleaned up old converted carts",
            tenant_id=tenant_id,
            deleted=deleted,
            cutoff=cutoff.isoformat(),
        )
        return deleted
