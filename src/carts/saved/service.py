"""Save-for-later service — moves items between the live cart and a saved list.

Guests' saved lists are keyed by session, customers' by user; on login the
session list is merged into the customer's list with the same union-by-id
rule used for carts. Every operation checks its item ids against the expected
source before writing anything.
"""

from collections.abc import Callable
from datetime import datetime

import structlog
from protean.exceptions import ValidationError

from carts.cart.cart import Cart, utcnow
from carts.merge import IdentityMergeService, select_items
from carts.saved.saved_cart import SavedCart
from carts.stores.port import SavedCartStore
from carts.sync.coordinator import SyncCoordinator

logger = structlog.get_logger(__name__)


class SavedCartService:
    def __init__(
        self,
        store: SavedCartStore,
        coordinator: SyncCoordinator,
        merger: IdentityMergeService | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.coordinator = coordinator
        self.merger = merger or IdentityMergeService()
        self.clock = clock

    # -------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------
    async def get_saved_cart(self, tenant_id: str, user_id: str | None = None, session_id: str | None = None) -> SavedCart:
        """Return the saved list for the customer (or guest session), creating it if needed."""
        if not user_id and not session_id:
            raise ValidationError({"saved_cart": ["A user id or session id is required"]})

        if user_id:
            saved = await self.store.find_by_user(user_id, tenant_id)
        else:
            saved = await self.store.find_by_session(session_id, tenant_id)

        if saved is None:
            saved = await self.store.save(SavedCart.create(tenant_id, user_id=user_id, session_id=session_id))
            logger.debug("Created saved cart", tenant_id=tenant_id, user_id=user_id, session_id=session_id)
        return saved

    async def _live_cart(self, session_id: str, tenant_id: str) -> Cart:
        cart = await self.coordinator.get(session_id, tenant_id)
        if cart is None:
            cart = Cart.create(tenant_id, session_id, self.coordinator.settings.cart_ttl, now=self.clock())
        return cart

    # -------------------------------------------------------------------
    # Moves between cart and saved list
    # -------------------------------------------------------------------
    async def save_for_later(
        self,
        session_id: str,
        item_id: str,
        tenant_id: str,
        user_id: str | None = None,
    ) -> SavedCart:
        """Move a cart line item into the saved list."""
        cart = await self._live_cart(session_id, tenant_id)
        (item,) = select_items(cart.items, [item_id], source_name="cart")

        saved = await self.get_saved_cart(tenant_id, user_id=user_id, session_id=session_id)
        saved.save_item(item)

        cart.remove_item(item_id, now=self.clock())

        await self.store.save(saved)
        await self.coordinator.persist(cart)

        logger.info("Saved cart item for later", cart_id=cart.id, item_id=item_id, tenant_id=tenant_id)
        return saved

    async def move_to_cart(
        self,
        session_id: str,
        item_id: str,
        tenant_id: str,
        user_id: str | None = None,
    ) -> Cart:
        """Move one saved item back into the live cart."""
        saved = await self.get_saved_cart(tenant_id, user_id=user_id, session_id=session_id)
        saved_item = saved.require_item(item_id)

        cart = await self._live_cart(session_id, tenant_id)
        # A line already in the cart gains the saved quantity
        cart.add_item(saved_item.to_cart_item(), now=self.clock())

        saved.remove_item(item_id)

        await self.store.save(saved)
        await self.coordinator.persist(cart)

        logger.info("Moved saved item to cart", cart_id=cart.id, item_id=item_id, tenant_id=tenant_id)
        return cart

    async def move_all_to_cart(self, session_id: str, tenant_id: str, user_id: str | None = None) -> Cart:
        """Move every saved item back into the live cart and empty the saved list."""
        saved = await self.get_saved_cart(tenant_id, user_id=user_id, session_id=session_id)
        cart = await self._live_cart(session_id, tenant_id)
        if not saved.items:
            return cart

        now = self.clock()
        for item in saved.items:
            cart.add_item(item.to_cart_item(), now=now)
        moved = len(saved.items)

        saved.clear()

        await self.store.save(saved)
        await self.coordinator.persist(cart)

        logger.info("Moved all saved items to cart", cart_id=cart.id, items_moved=moved, tenant_id=tenant_id)
        return cart

    async def remove_from_saved(
        self,
        item_id: str,
        tenant_id: str,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> SavedCart:
        saved = await self.get_saved_cart(tenant_id, user_id=user_id, session_id=session_id)
        saved.remove_item(item_id)
        return await self.store.save(saved)

    async def clear_saved_cart(self, tenant_id: str, user_id: str | None = None, session_id: str | None = None) -> SavedCart:
        saved = await self.get_saved_cart(tenant_id, user_id=user_id, session_id=session_id)
        saved.clear()
        return await self.store.save(saved)

    # -------------------------------------------------------------------
    # Login
    # -------------------------------------------------------------------
    async def merge_session_saved_cart(self, session_id: str, user_id: str, tenant_id: str) -> SavedCart:
        """Fold the guest session's saved list into the customer's list."""
        user_saved = await self.get_saved_cart(tenant_id, user_id=user_id)
        session_saved = await self.store.find_by_session(session_id, tenant_id)
        if session_saved is None:
            return user_saved

        added = self.merger.merge_saved(session_saved, user_saved)
        await self.store.save(user_saved)
        await self.store.delete(session_saved)

        logger.info(
            "Merged session saved cart",
            session_id=session_id,
            user_id=user_id,
            tenant_id=tenant_id,
            items_added=added,
        )
        return user_saved
