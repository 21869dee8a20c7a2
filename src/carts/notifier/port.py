"""Cart reminder port — hands abandoned carts to the notifications context.

Only the filtered PersistedCart and the reminder number cross this boundary.
Template selection, rendering and channel delivery belong to notifications.
"""

from abc import ABC, abstractmethod


class CartReminderNotifier(ABC):
    """Abstract interface for abandoned-cart reminder dispatch."""

    @abstractmethod
    async def send_reminder(self, cart, reminder_number: int) -> dict:
        """Request a reminder for ``cart`` (a PersistedCart).

        ``reminder_number`` is 1 or 2 for the scheduled sequence and 0 for an
        ad-hoc recovery reminder.

        Returns:
            dict with keys: notification_id, status ("queued" or "failed"), error (optional)
        """
        ...
