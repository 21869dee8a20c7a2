"""Tier synchronization: write-behind replication, recovery and identity association."""

from carts.sync.coordinator import SyncCoordinator
from carts.sync.write_behind import WriteBehindQueue, WriteBehindStats

__all__ = ["SyncCoordinator", "WriteBehindQueue", "WriteBehindStats"]
