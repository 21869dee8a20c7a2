"""SyncCoordinator — keeps the ephemeral and durable cart tiers consistent.

- ``persist`` writes the ephemeral tier and hands the snapshot to the
  write-behind queue; the caller never waits on the durable store.
- ``recover`` reseeds the ephemeral tier from the durable record when the
  ephemeral entry has expired or the process restarted.
- ``associate_with_user`` merges a guest cart into the customer's cart on
  login and supersedes the guest's durable record.

Ephemeral failures degrade to a cache miss. Durable failures on the
write-behind path are logged and swallowed; on recovery they look like a
missing cart; on association they abort the merge before anything is written.
"""

from collections.abc import Callable
from datetime import datetime

import structlog

from carts.cart.cart import Cart, utcnow
from carts.config import CartSettings, get_settings
from carts.merge import IdentityMergeService
from carts.persisted.persisted_cart import PersistedCart
from carts.stores.port import DurableCartStore, EphemeralCartStore
from carts.sync.write_behind import WriteBehindQueue

logger = structlog.get_logger(__name__)


class SyncCoordinator:
    def __init__(
        self,
        ephemeral: EphemeralCartStore,
        durable: DurableCartStore,
        settings: CartSettings | None = None,
        merger: IdentityMergeService | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.ephemeral = ephemeral
        self.durable = durable
        self.settings = settings or get_settings()
        self.merger = merger or IdentityMergeService()
        self.clock = clock
        self.write_behind = WriteBehindQueue(self.sync_to_durable, maxsize=self.settings.write_behind_queue_size)

    async def __aenter__(self) -> "SyncCoordinator":
        self.write_behind.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.write_behind.stop()

    # -------------------------------------------------------------------
    # Ephemeral tier helpers
    # -------------------------------------------------------------------
    async def _read_ephemeral(self, session_id: str, tenant_id: str) -> Cart | None:
        try:
            return await self.ephemeral.get(session_id, tenant_id)
        except Exception as exc:
            logger.warning(
                "Ephemeral cart read failed, treating as miss",
                session_id=session_id,
                tenant_id=tenant_id,
                error=str(exc),
            )
            return None

    async def _write_ephemeral(self, cart: Cart) -> bool:
        try:
            await self.ephemeral.set(cart, cart.ttl(self.clock()))
            return True
        except Exception as exc:
            logger.error(
                "Ephemeral cart write failed",
                cart_id=cart.id,
                session_id=cart.session_id,
                tenant_id=cart.tenant_id,
                error=str(exc),
            )
            return False

    # -------------------------------------------------------------------
    # Persist (write-behind)
    # -------------------------------------------------------------------
    async def persist(self, cart: Cart) -> Cart:
        """Store ``cart`` in the ephemeral tier and schedule durable replication."""
        await self._write_ephemeral(cart)
        self.write_behind.submit(cart)
        return cart

    async def sync_to_durable(self, cart: Cart) -> PersistedCart | None:
        """Create or update the durable record for ``cart``.

        Converted records are left untouched; ``None`` is returned for them.
        """
        now = self.clock()
        record = await self.durable.find_by_id(cart.id, cart.tenant_id)

        if record is None:
            record = PersistedCart.from_cart(cart, now=now)
        elif record.converted:
            logger.warning(
                "Skipping sync of converted cart",
                cart_id=cart.id,
                tenant_id=cart.tenant_id,
                order_id=str(record.order_id),
            )
            return None
        else:
            record.sync_from(cart, now=now)

        await self.durable.save(record)
        logger.debug("Synced cart to durable store", cart_id=cart.id, tenant_id=cart.tenant_id)
        return record

    # -------------------------------------------------------------------
    # Read / recover
    # -------------------------------------------------------------------
    async def get(self, session_id: str, tenant_id: str) -> Cart | None:
        """Return the live cart for the session, recovering it from the durable tier on a miss."""
        cart = await self._read_ephemeral(session_id, tenant_id)
        if cart is not None:
            return cart
        return await self.recover(session_id, tenant_id)

    async def recover(self, session_id: str, tenant_id: str) -> Cart | None:
        """Restore the session's cart from the durable tier into the ephemeral tier."""
        try:
            record = await self.durable.find_by_session_and_tenant(session_id, tenant_id)
        except Exception as exc:
            logger.error(
                "Durable cart lookup failed during recovery",
                session_id=session_id,
                tenant_id=tenant_id,
                error=str(exc),
            )
            return None

        if record is None or record.converted:
            return None

        now = self.clock()
        cart = record.snapshot()
        cart.extend_expiry(self.settings.recovery_window, now=now)
        await self._write_ephemeral(cart)

        logger.info(
            "Recovered cart from durable store",
            cart_id=cart.id,
            session_id=session_id,
            tenant_id=tenant_id,
            item_count=cart.item_count,
        )
        return cart

    # -------------------------------------------------------------------
    # Guest -> customer association
    # -------------------------------------------------------------------
    async def associate_with_user(self, session_id: str, user_id: str, tenant_id: str) -> Cart | None:
        """Attach the session's cart to ``user_id``, merging into an existing customer cart.

        Returns the cart the session now holds, or ``None`` when neither the
        session nor the customer has a cart.
        """
        # This call writes the session's newest state itself; queued snapshots
        # of the session must not land after it.
        pending = await self.write_behind.supersede(session_id, tenant_id)

        session_cart = await self._read_ephemeral(session_id, tenant_id)
        if session_cart is None:
            session_cart = pending or await self.recover(session_id, tenant_id)

        user_record = await self.durable.find_by_user_and_tenant(user_id, tenant_id)
        now = self.clock()

        if user_record is not None and (session_cart is None or str(user_record.id) != session_cart.id):
            return await self._merge_into_user_cart(session_cart, user_record, session_id, user_id, now)

        if session_cart is None:
            return None

        record = await self.durable.find_by_id(session_cart.id, tenant_id)
        if record is None:
            record = PersistedCart.from_cart(session_cart, now=now)
        elif record.converted:
            logger.warning(
                "Session cart already converted, not associating",
                cart_id=session_cart.id,
                user_id=user_id,
                tenant_id=tenant_id,
            )
            return session_cart
        else:
            record.sync_from(session_cart, now=now)

        record.associate_user(user_id)
        await self.durable.save(record)

        logger.info(
            "Associated session cart with user",
            cart_id=session_cart.id,
            session_id=session_id,
            user_id=user_id,
            tenant_id=tenant_id,
        )
        return session_cart

    async def _merge_into_user_cart(
        self,
        session_cart: Cart | None,
        user_record: PersistedCart,
        session_id: str,
        user_id: str,
        now: datetime,
    ) -> Cart:
        user_cart = user_record.snapshot()

        if session_cart is None:
            # Nothing to merge: the session adopts the customer's cart
            merged = user_cart.model_copy(update={"session_id": session_id, "updated_at": now}, deep=True)
        else:
            merged = self.merger.merge_carts(session_cart, user_cart, now=now)

        # Single durable write: merged snapshot and ownership together
        user_record.sync_from(merged, now=now)
        user_record.associate_user(user_id)
        await self.durable.save(user_record)

        await self._write_ephemeral(merged)

        if session_cart is not None:
            await self._retire_session_record(session_cart)

        logger.info(
            "Merged session cart into user cart",
            cart_id=merged.id,
            source_cart_id=session_cart.id if session_cart else None,
            session_id=session_id,
            user_id=user_id,
            tenant_id=merged.tenant_id,
            item_count=len(merged.items),
        )
        return merged

    async def _retire_session_record(self, session_cart: Cart) -> None:
        """Delete the guest's durable record now that the customer cart supersedes it."""
        try:
            record = await self.durable.find_by_id(session_cart.id, session_cart.tenant_id)
            if record is not None and not record.converted:
                await self.durable.delete(session_cart.id, session_cart.tenant_id)
        except Exception as exc:
            logger.error(
                "Failed to remove superseded session cart",
                cart_id=session_cart.id,
                tenant_id=session_cart.tenant_id,
                error=str(exc),
            )
