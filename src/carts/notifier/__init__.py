"""Reminder notifier factory.

Provides get_notifier() / set_notifier() to swap implementations. Uses the
fake notifier by default; production wires an adapter that publishes to the
notifications context.
"""

from carts.notifier.fake_adapter import FakeReminderNotifier
from carts.notifier.port import CartReminderNotifier

_current_notifier: CartReminderNotifier | None = None


def get_notifier() -> CartReminderNotifier:
    """Return the current reminder notifier. Defaults to FakeReminderNotifier."""
    global _current_notifier
    if _current_notifier is None:
        _current_notifier = FakeReminderNotifier()
    return _current_notifier


def set_notifier(notifier: CartReminderNotifier) -> None:
    """Override the active notifier (useful for tests)."""
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    """Reset to default notifier."""
    global _current_notifier
    _current_notifier = None
