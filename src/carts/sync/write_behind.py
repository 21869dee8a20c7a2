"""Write-behind replication from the ephemeral tier to the durable tier.

Snapshots are handed to a bounded asyncio queue and written by a single
background worker. The caller never waits on the durable store: when the
queue is full the snapshot is dropped (the next mutation of that cart carries
newer state anyway) and the drop is counted. Every outcome is logged and
reflected in ``WriteBehindStats``.

A session's queued snapshots can be superseded when another write takes over
that cart (login association); the worker then skips them instead of letting
a late snapshot overwrite or resurrect the durable record.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import asdict, dataclass

import structlog

from carts.cart.cart import Cart

logger = structlog.get_logger(__name__)


@dataclass
class WriteBehindStats:
    enqueued: int = 0
    synced: int = 0
    failed: int = 0
    dropped: int = 0
    superseded: int = 0

    @property
    def pending(self) -> int:
        return self.enqueued - self.synced - self.failed - self.superseded

    def as_dict(self) -> dict:
        return {**asdict(self), "pending": self.pending}


def _session_key(cart: Cart) -> tuple[str, str]:
    return cart.tenant_id, cart.session_id


class WriteBehindQueue:
    """Bounded queue of cart snapshots with one consumer task."""

    def __init__(self, sync: Callable[[Cart], Awaitable[object]], maxsize: int = 1000):
        self._sync = sync
        self._maxsize = maxsize
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None
        self._sequence = 0
        # (tenant_id, session_id) -> newest queued (sequence, snapshot)
        self._latest: dict[tuple[str, str], tuple[int, Cart]] = {}
        # (tenant_id, session_id) -> snapshots up to this sequence are skipped
        self._superseded: dict[tuple[str, str], int] = {}
        self._in_flight: tuple[tuple[str, str], asyncio.Event] | None = None
        self.stats = WriteBehindStats()

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def start(self) -> None:
        if self.running:
            return
        self._queue = asyncio.Queue(maxsize=self._maxsize)
        self._latest.clear()
        self._superseded.clear()
        self._in_flight = None
        self._worker = asyncio.create_task(self._consume(), name="cart-write-behind")
        logger.info("Write-behind worker started", maxsize=self._maxsize)

    async def stop(self) -> None:
        """Finish queued snapshots, then stop the worker."""
        if not self.running:
            return
        await self.drain()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        logger.info("Write-behind worker stopped", **self.stats.as_dict())

    async def drain(self) -> None:
        """Wait until every snapshot queued so far has been handled."""
        if self._queue is not None and self.running:
            await self._queue.join()

    def submit(self, cart: Cart) -> bool:
        """Queue a snapshot without blocking; returns ``False`` if it was dropped.

        Must be called from a running event loop; the worker is started on
        first use.
        """
        if not self.running:
            self.start()

        snapshot = cart.model_copy(deep=True)
        sequence = self._sequence + 1
        try:
            self._queue.put_nowait((sequence, snapshot))
        except asyncio.QueueFull:
            self.stats.dropped += 1
            logger.warning(
                "Write-behind queue full, snapshot dropped",
                cart_id=cart.id,
                tenant_id=cart.tenant_id,
                maxsize=self._maxsize,
            )
            return False

        self._sequence = sequence
        self._latest[_session_key(snapshot)] = (sequence, snapshot)
        self.stats.enqueued += 1
        return True

    async def supersede(self, session_id: str, tenant_id: str) -> Cart | None:
        """Discard the session's queued snapshots and return the newest of them.

        Only a write of this session that is already in flight is awaited;
        snapshots of other carts queued ahead are never waited on.
        """
        key = (tenant_id, session_id)
        pending = self._latest.pop(key, None)
        if pending is not None:
            self._superseded[key] = pending[0]

        if self._in_flight is not None and self._in_flight[0] == key:
            await self._in_flight[1].wait()

        return pending[1] if pending is not None else None

    async def _consume(self) -> None:
        while True:
            sequence, cart = await self._queue.get()
            key = _session_key(cart)
            try:
                if sequence <= self._superseded.get(key, 0):
                    self.stats.superseded += 1
                    logger.debug("Skipping superseded cart snapshot", cart_id=cart.id, tenant_id=cart.tenant_id)
                else:
                    await self._write(key, cart)
            finally:
                if self._superseded.get(key) == sequence:
                    del self._superseded[key]
                if self._latest.get(key, (None,))[0] == sequence:
                    del self._latest[key]
                self._queue.task_done()

    async def _write(self, key: tuple[str, str], cart: Cart) -> None:
        done = asyncio.Event()
        self._in_flight = (key, done)
        try:
            await self._sync(cart)
            self.stats.synced += 1
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # Durable failures never reach the user; the next mutation re-syncs
            self.stats.failed += 1
            logger.error(
                "Failed to sync cart to durable store",
                cart_id=cart.id,
                tenant_id=cart.tenant_id,
                error=str(exc),
            )
        finally:
            self._in_flight = None
            done.set()
