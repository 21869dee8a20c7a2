"""Runtime settings for cart persistence.

Storage wiring for the durable tier lives in ``domain.toml`` (protean
providers, selected by ``PROTEAN_ENV``). Everything else is read from the
environment so the same image can run with different windows per deployment.
"""

import os
from dataclasses import dataclass, field
from datetime import timedelta


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _list_env(name: str) -> tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class CartSettings:
    """Windows, thresholds and wiring for the cart persistence services."""

    cart_ttl: timedelta = timedelta(days=7)
    recovery_window: timedelta = timedelta(days=7)
    abandonment_threshold: timedelta = timedelta(hours=24)
    first_reminder_delay: timedelta = timedelta(hours=24)
    second_reminder_delay: timedelta = timedelta(hours=72)
    retention: timedelta = timedelta(days=90)
    write_behind_queue_size: int = 1000
    ephemeral_store: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    maintenance_interval_seconds: int = 3600
    tenants: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_env(cls) -> "CartSettings":
        store = os.getenv("CART_EPHEMERAL_STORE", "memory").lower()
        if store not in ("memory", "redis"):
            raise ValueError(f"CART_EPHEMERAL_STORE must be 'memory' or 'redis', got {store!r}")

        return cls(
            cart_ttl=timedelta(days=_int_env("CART_TTL_DAYS", 7)),
            recovery_window=timedelta(days=_int_env("CART_RECOVERY_WINDOW_DAYS", 7)),
            abandonment_threshold=timedelta(hours=_int_env("CART_ABANDONMENT_THRESHOLD_HOURS", 24)),
            first_reminder_delay=timedelta(hours=_int_env("CART_FIRST_REMINDER_HOURS", 24)),
            second_reminder_delay=timedelta(hours=_int_env("CART_SECOND_REMINDER_HOURS", 72)),
            retention=timedelta(days=_int_env("CART_RETENTION_DAYS", 90)),
            write_behind_queue_size=_int_env("CART_WRITE_BEHIND_QUEUE_SIZE", 1000),
            ephemeral_store=store,
            redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
            maintenance_interval_seconds=_int_env("CART_MAINTENANCE_INTERVAL_SECONDS", 3600),
            tenants=_list_env("CART_TENANTS"),
        )


_settings: CartSettings | None = None


def get_settings() -> CartSettings:
    """Return process-wide settings, loading them from the environment on first use."""
    global _settings
    if _settings is None:
        _settings = CartSettings.from_env()
    return _settings


def set_settings(settings: CartSettings) -> None:
    """Override the active settings (useful for tests)."""
    global _settings
    _settings = settings


def reset_settings() -> None:
    """Forget cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
