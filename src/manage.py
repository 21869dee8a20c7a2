"""Carts database management CLI.

Creates and drops the durable cart tables, and runs a single maintenance
pass by hand.

Usage:
    python src/manage.py setup-db                      # Create all tables
    python src/manage.py drop-db                       # Drop all tables
    python src/manage.py maintain --tenant acme        # One reminder + cleanup pass
"""

import argparse
import asyncio
import json
import sys


def _carts_domain():
    from carts.domain import carts

    print("Initializing carts domain...")
    carts.init()
    return carts


def setup_database():
    from carts.utils.db import setup_db

    domain = _carts_domain()
    print("Creating carts database schema...")
    setup_db(domain)
    print("Done.")


def drop_database():
    from carts.utils.db import drop_db

    domain = _carts_domain()
    print("Dropping carts database schema...")
    drop_db(domain)
    print("Done.")


def run_maintenance(tenants=None):
    """Run one abandonment-reminder and retention pass and print the outcome."""
    from carts.config import get_settings
    from carts.services import get_services

    domain = _carts_domain()
    tenant_ids = tenants or list(get_settings().tenants)
    if not tenant_ids:
        print("No tenants given (use --tenant or CART_TENANTS).")
        sys.exit(1)

    with domain.domain_context():
        results = asyncio.run(get_services().maintenance.run_once(tenant_ids))
    print(json.dumps(results, indent=2, default=str))


def main():
    parser = argparse.ArgumentParser(description="Carts database management")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("setup-db", help="Create all database tables")
    subparsers.add_parser("drop-db", help="Drop all database tables")

    maintain_parser = subparsers.add_parser("maintain", help="Run one maintenance pass")
    maintain_parser.add_argument(
        "--tenant",
        action="append",
        help="Tenant to process (repeatable; default: CART_TENANTS)",
    )

    args = parser.parse_args()

    if args.command == "setup-db":
        setup_database()
    elif args.command == "drop-db":
        drop_database()
    elif args.command == "maintain":
        run_maintenance(args.tenant)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
