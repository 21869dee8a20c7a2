"""Cart maintenance runner.

Runs the periodic abandonment-reminder and retention scans for every
configured tenant until interrupted.

Usage:
    python src/server.py                          # Tenants from CART_TENANTS
    python src/server.py --tenant acme --tenant globex
    python src/server.py --interval 600
"""

import argparse
import asyncio

import structlog

logger = structlog.get_logger(__name__)


async def run(tenant_ids, interval_seconds):
    from carts.domain import carts
    from carts.services import get_services

    carts.init()
    services = get_services()

    with carts.domain_context():
        try:
            await services.maintenance.run_forever(tenant_ids, interval_seconds)
        finally:
            await services.coordinator.write_behind.stop()


def main():
    from carts.config import get_settings

    settings = get_settings()

    parser = argparse.ArgumentParser(description="Cart maintenance runner")
    parser.add_argument(
        "--tenant",
        action="append",
        help="Tenant to maintain (repeatable; default: CART_TENANTS)",
    )
    parser.add_argument(
        "--interval",
        type=float,
        default=settings.maintenance_interval_seconds,
        help="Seconds between maintenance passes",
    )
    args = parser.parse_args()

    tenant_ids = args.tenant or list(settings.tenants)
    if not tenant_ids:
        parser.error("no tenants given (use --tenant or CART_TENANTS)")

    try:
        asyncio.run(run(tenant_ids, args.interval))
    except KeyboardInterrupt:
        logger.info("Cart maintenance interrupted")


if __name__ == "__main__":
    main()
