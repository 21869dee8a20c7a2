"""Composition of the cart persistence services.

Wires the configured stores and notifier into one ``CartServices`` bundle.
``get_services()`` builds it lazily for the API and the maintenance runner;
tests swap in their own bundle with ``set_services()``.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from carts.abandonment import AbandonmentDetector
from carts.cart.cart import utcnow
from carts.config import CartSettings, get_settings
from carts.conversion import ConversionTracker
from carts.maintenance import MaintenanceRunner
from carts.merge import IdentityMergeService
from carts.notifier import get_notifier
from carts.notifier.port import CartReminderNotifier
from carts.reminders import AbandonedCartReminders
from carts.retention import RetentionSweeper
from carts.saved.service import SavedCartService
from carts.statistics import CartStatistics
from carts.stores import get_durable_store, get_ephemeral_store, get_saved_store
from carts.stores.port import DurableCartStore, EphemeralCartStore, SavedCartStore
from carts.sync.coordinator import SyncCoordinator


@dataclass
class CartServices:
    settings: CartSettings
    coordinator: SyncCoordinator
    conversion: ConversionTracker
    abandonment: AbandonmentDetector
    retention: RetentionSweeper
    reminders: AbandonedCartReminders
    saved: SavedCartService
    statistics: CartStatistics
    maintenance: MaintenanceRunner

    @classmethod
    def build(
        cls,
        ephemeral: EphemeralCartStore,
        durable: DurableCartStore,
        saved_store: SavedCartStore,
        notifier: CartReminderNotifier,
        settings: CartSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "CartServices":
        settings = settings or get_settings()
        merger = IdentityMergeService()

        coordinator = SyncCoordinator(ephemeral, durable, settings=settings, merger=merger, clock=clock)
        abandonment = AbandonmentDetector(durable, settings=settings, clock=clock)
        retention = RetentionSweeper(durable, settings=settings, clock=clock)
        reminders = AbandonedCartReminders(abandonment, durable, notifier, clock=clock)

        return cls(
            settings=settings,
            coordinator=coordinator,
            conversion=ConversionTracker(durable, ephemeral, clock=clock),
            abandonment=abandonment,
            retention=retention,
            reminders=reminders,
            saved=SavedCartService(saved_store, coordinator, merger=merger, clock=clock),
            statistics=CartStatistics(durable, ephemeral, abandonment),
            maintenance=MaintenanceRunner(reminders, retention),
        )


_services: CartServices | None = None


def get_services() -> CartServices:
    """Return the process-wide services, built from the configured stores on first use."""
    global _services
    if _services is None:
        _services = CartServices.build(
            ephemeral=get_ephemeral_store(),
            durable=get_durable_store(),
            saved_store=get_saved_store(),
            notifier=get_notifier(),
        )
    return _services


def set_services(services: CartServices) -> None:
    """Override the active services (useful for tests)."""
    global _services
    _services = services


def reset_services() -> None:
    global _services
    _services = None
