"""Identity merge — reconciling a guest cart with a customer's cart.

The merge rule is a union by item id: an incoming item is appended only when
the target has no item with the same id, and target copies are never
overwritten. Merging the same source twice therefore changes nothing the
second time. Two line items for the same product with different item ids
stay separate; quantities are not consolidated by product.
"""

from collections.abc import Callable, Iterable, Sequence
from datetime import datetime
from typing import TypeVar

import structlog
from protean.exceptions import ValidationError

from carts.cart.cart import Cart, utcnow

logger = structlog.get_logger(__name__)

T = TypeVar("T")


def _item_id(item) -> str:
    return str(item.id)


def union_by_id(
    target: Sequence[T],
    incoming: Iterable[T],
    key: Callable[[T], str] = _item_id,
) -> tuple[list[T], list[T]]:
    """Return ``(merged, added)`` where ``merged`` is ``target`` followed by the new incoming items.

    Neither input is modified.
    """
    merged = list(target)
    seen = {key(item) for item in merged}
    added = []
    for item in incoming:
        item_key = key(item)
        if item_key in seen:
            continue
        merged.append(item)
        added.append(item)
        seen.add(item_key)
    return merged, added


def select_items(
    source: Sequence[T],
    item_ids: Iterable[str],
    key: Callable[[T], str] = _item_id,
    source_name: str = "cart",
) -> list[T]:
    """Pick items from ``source`` by id, in the order requested.

    Every id must be present in ``source``; otherwise a ``ValidationError`` is
    raised before anything is selected.
    """
    by_id = {key(item): item for item in source}
    requested = [str(item_id) for item_id in item_ids]
    missing = [item_id for item_id in requested if item_id not in by_id]
    if missing:
        raise ValidationError({"item_id": [f"Item {item_id} not found in {source_name}" for item_id in missing]})
    return [by_id[item_id] for item_id in requested]


class IdentityMergeService:
    """Merge guest (session) carts into customer (user) carts."""

    def merge_carts(self, session_cart: Cart, user_cart: Cart, now: datetime | None = None) -> Cart:
        """Stage the merge of ``session_cart`` into ``user_cart``.

        The result is a new Cart that keeps the user cart's identity and is
        owned by the session that just logged in. Neither input is mutated, so
        a failure before the staged cart is written leaves both untouched.
        """
        if session_cart.tenant_id != user_cart.tenant_id:
            raise ValidationError({"tenant_id": ["Cannot merge carts across tenants"]})

        merged_items, added = union_by_id(user_cart.items, session_cart.items)
        now = now or utcnow()

        merged = user_cart.model_copy(
            update={
                "session_id": session_cart.session_id,
                "items": merged_items,
                "updated_at": now,
                "expires_at": max(user_cart.expires_at, session_cart.expires_at),
            },
            deep=True,
        )

        logger.debug(
            "Staged cart merge",
            target_cart_id=user_cart.id,
            source_cart_id=session_cart.id,
            items_added=len(added),
            items_total=len(merged_items),
        )
        return merged

    def merge_saved(self, session_saved, user_saved) -> int:
        """Move the session saved list's items into the user's saved list.

        Returns the number of items added to ``user_saved``.
        """
        _, added = union_by_id(user_saved.items, session_saved.items, key=lambda item: str(item.item_id))
        if added:
            user_saved.add_saved_items(added)
        return len(added)
