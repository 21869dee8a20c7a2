"""Carts bounded context — dual-tier cart persistence, recovery and merge.

Keeps a fast TTL-bound cart store and a durable PersistedCart store in step
(write-behind), recovers carts when the fast tier has expired, merges guest
carts into customer carts on login, and tracks abandonment, conversion and
retention of durable cart records.
"""

from protean.domain import Domain

from carts.utils.logging import configure_logging, get_logger

# Configure logging for the application
configure_logging()

# Get logger for this module
logger = get_logger(__name__)

# Domain Composition Root
carts = Domain(name="carts")
