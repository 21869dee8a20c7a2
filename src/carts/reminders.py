"""Abandoned cart reminders — first and second reminder sequence.

Runs as part of the periodic maintenance scan. Customer carts idle past the
first delay get reminder 1; carts already reminded and idle past the second
delay get reminder 2. Guest carts have nobody to notify and are skipped.
Reminder bookkeeping lives on the PersistedCart and is cleared as soon as the
cart sees new activity.
"""

from collections.abc import Callable
from dataclasses import asdict, dataclass
from datetime import datetime

import structlog

from carts.abandonment import AbandonmentDetector
from carts.cart.cart import utcnow
from carts.notifier.port import CartReminderNotifier
from carts.stores.port import DurableCartStore

logger = structlog.get_logger(__name__)


@dataclass
class ReminderRun:
    first_sent: int = 0
    second_sent: int = 0
    failed: int = 0

    def as_dict(self) -> dict:
        return asdict(self)


class AbandonedCartReminders:
    def __init__(
        self,
        detector: AbandonmentDetector,
        durable: DurableCartStore,
        notifier: CartReminderNotifier,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.detector = detector
        self.durable = durable
        self.notifier = notifier
        self.clock = clock

    async def process(self, tenant_id: str, as_of: datetime | None = None) -> ReminderRun:
        """Send all reminders that are due for the tenant."""
        as_of = as_of or self.clock()
        run = ReminderRun()

        # Second reminders first, so a cart reminded in this run is not reminded twice
        for cart in await self.detector.find_for_second_reminder(tenant_id, as_of=as_of):
            if await self._remind(cart, 2):
                run.second_sent += 1
            else:
                run.failed += 1

        for cart in await self.detector.find_for_first_reminder(tenant_id, as_of=as_of):
            if await self._remind(cart, 1):
                run.first_sent += 1
            else:
                run.failed += 1

        logger.info("Completed abandoned cart reminders", tenant_id=tenant_id, **run.as_dict())
        return run

    async def send_recovery_reminder(self, cart_id: str, tenant_id: str) -> dict | None:
        """Send an ad-hoc recovery reminder (number 0) for a single cart."""
        record = await self.durable.find_by_id(cart_id, tenant_id)
        if record is None or record.converted:
            return None
        if not record.user_id:
            logger.debug("Skipping guest cart", cart_id=cart_id, tenant_id=tenant_id)
            return None

        result = await self.notifier.send_reminder(record, 0)
        logger.info("Recovery reminder requested", cart_id=cart_id, tenant_id=tenant_id, status=result.get("status"))
        return result

    async def _remind(self, cart, reminder_number: int) -> bool:
        try:
            result = await self.notifier.send_reminder(cart, reminder_number)
            if result.get("status") == "failed":
                logger.warning(
                    "Abandonment reminder failed",
                    cart_id=str(cart.id),
                    reminder_number=reminder_number,
                    error=result.get("error"),
                )
                return False

            # Re-read so a snapshot synced since the scan is not overwritten
            record = await self.durable.find_by_id(str(cart.id), cart.tenant_id)
            if record is None or record.converted:
                return True
            record.record_reminder(reminder_number, now=self.clock())
            await self.durable.save(record)
        except Exception as exc:
            logger.error(
                "Abandonment reminder crashed",
                cart_id=str(cart.id),
                reminder_number=reminder_number,
                error=str(exc),
            )
            return False

        logger.info(
            "Sent abandonment reminder",
            cart_id=str(cart.id),
            user_id=str(cart.user_id),
            reminder_number=reminder_number,
        )
        return True
