"""Fake reminder notifier — records reminder requests for testing."""

from uuid import uuid4

from carts.notifier.port import CartReminderNotifier


class FakeReminderNotifier(CartReminderNotifier):
    """Notifier that records reminders in memory for test assertions."""

    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Reminder dispatch failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Reminder dispatch failed"):
        """Configure the fake notifier behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    async def send_reminder(self, cart, reminder_number: int) -> dict:
        if not self.should_succeed:
            return {"notification_id": None, "status": "failed", "error": self.failure_reason}

        notification_id = f"reminder-{uuid4().hex[:12]}"
        self.sent.append(
            {
                "notification_id": notification_id,
                "cart_id": str(cart.id),
                "tenant_id": cart.tenant_id,
                "user_id": str(cart.user_id) if cart.user_id else None,
                "reminder_number": reminder_number,
            }
        )
        return {"notification_id": notification_id, "status": "queued"}

    def reset(self):
        """Clear recorded reminders (useful between tests)."""
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Reminder dispatch failed"
