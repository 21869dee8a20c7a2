"""Periodic maintenance — abandonment reminders and the retention sweep.

Batch scans have no caller waiting on them. A scan that fails for one tenant
is logged and the run moves on; the next tick tries again.
"""

import asyncio
from collections.abc import Iterable

import structlog

from carts.reminders import AbandonedCartReminders
from carts.retention import RetentionSweeper

logger = structlog.get_logger(__name__)


class MaintenanceRunner:
    def __init__(self, reminders: AbandonedCartReminders, sweeper: RetentionSweeper):
        self.reminders = reminders
        self.sweeper = sweeper

    async def run_once(self, tenant_ids: Iterable[str]) -> dict[str, dict]:
        results: dict[str, dict] = {}
        for tenant_id in tenant_ids:
            outcome: dict = {}
            try:
                outcome["reminders"] = (await self.reminders.process(tenant_id)).as_dict()
            except Exception as exc:
                logger.error("Abandonment scan failed", tenant_id=tenant_id, error=str(exc))
                outcome["reminders_error"] = str(exc)

            try:
                outcome["deleted"] = await self.sweeper.cleanup(tenant_id)
            except Exception as exc:
                logger.error("Retention sweep failed", tenant_id=tenant_id, error=str(exc))
                outcome["cleanup_error"] = str(exc)

            results[tenant_id] = outcome
        return results

    async def run_forever(self, tenant_ids: Iterable[str], interval_seconds: float, stop: asyncio.Event | None = None) -> None:
        tenant_ids = list(tenant_ids)
        stop = stop or asyncio.Event()
        logger.info("Cart maintenance started", tenants=tenant_ids, interval_seconds=interval_seconds)

        while not stop.is_set():
            await self.run_once(tenant_ids)
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval_seconds)
            except TimeoutError:
                pass

        logger.info("Cart maintenance stopped")
