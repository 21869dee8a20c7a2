"""Cart abandonment detection.

Designed to be triggered periodically (the maintenance runner or the
maintenance API endpoint). Selects durable carts that are unconverted, still
hold items, and have been idle strictly longer than the threshold; a cart
updated exactly at the cut-off is not yet abandoned. Empty carts are never
returned since they are not actionable for reminders.
"""

from collections.abc import Callable
from datetime import datetime, timedelta

import structlog

from carts.cart.cart import as_utc, utcnow
from carts.config import CartSettings, get_settings
from carts.persisted.persisted_cart import PersistedCart
from carts.stores.port import DurableCartStore

logger = structlog.get_logger(__name__)


class AbandonmentDetector:
    def __init__(
        self,
        durable: DurableCartStore,
        settings: CartSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.durable = durable
        self.settings = settings or get_settings()
        self.clock = clock

    async def _idle_since(self, tenant_id: str, idle_for: timedelta, as_of: datetime | None) -> list[PersistedCart]:
        cutoff = as_utc(as_of or self.clock()) - idle_for
        records = await self.durable.find_abandoned(tenant_id, cutoff)
        return [r for r in records if not r.converted and r.has_items]

    async def find_abandoned(
        self,
        tenant_id: str,
        as_of: datetime | None = None,
        threshold: timedelta | None = None,
    ) -> list[PersistedCart]:
        """Unconverted carts with items, idle longer than the abandonment threshold."""
        threshold = threshold if threshold is not None else self.settings.abandonment_threshold
        abandoned = await self._idle_since(tenant_id, threshold, as_of)

        logger.info(
            "Checked for abandoned carts",
            tenant_id=tenant_id,
            threshold_hours=threshold.total_seconds() / 3600,
            abandoned_count=len(abandoned),
        )
        return abandoned

    async def find_for_first_reminder(self, tenant_id: str, as_of: datetime | None = None) -> list[PersistedCart]:
        """Customer-owned abandoned carts that have not been reminded yet."""
        records = await self._idle_since(tenant_id, self.settings.first_reminder_delay, as_of)
        return [r for r in records if r.user_id and not r.abandonment_notified]

    async def find_for_second_reminder(self, tenant_id: str, as_of: datetime | None = None) -> list[PersistedCart]:
        """Customer-owned abandoned carts reminded once, due for the follow-up."""
        records = await self._idle_since(tenant_id, self.settings.second_reminder_delay, as_of)
        return [r for r in records if r.user_id and r.abandonment_notified and not r.second_reminder_sent]
