"""SavedCart aggregate — the non-expiring "save for later" list.

Keyed by ``(tenant_id, user_id)`` for customers or ``(tenant_id, session_id)``
for guests. Items mirror the cart line item they were saved from, keeping the
cart item id so a later move back into the cart follows the same
union-by-id rule as identity merges.
"""

import json
from datetime import datetime
from decimal import Decimal

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text

from carts.cart.cart import CartItem, utcnow
from carts.domain import carts


@carts.entity(part_of="SavedCart")
class SavedCartItem:
    item_id = Identifier(required=True)  # Id of the cart line item it was saved from
    product_id = Identifier(required=True)
    sku = String(required=True, max_length=100)
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    quantity = Integer(required=True, min_value=1)
    image_url = String(max_length=1000)
    attributes = Text()  # JSON object, keys sorted
    saved_at = DateTime()

    @classmethod
    def from_cart_item(cls, item: CartItem, now: datetime | None = None):
        return cls(
            item_id=item.id,
            product_id=item.product_id,
            sku=item.sku,
            name=item.name,
            price=float(item.price),
            quantity=item.quantity,
            image_url=item.image_url,
            attributes=json.dumps(item.attributes, sort_keys=True),
            saved_at=now or utcnow(),
        )

    def to_cart_item(self) -> CartItem:
        price = Decimal(str(self.price))
        return CartItem(
            id=str(self.item_id),
            product_id=str(self.product_id),
            sku=self.sku,
            name=self.name,
            quantity=self.quantity,
            price=price,
            subtotal=price * self.quantity,
            image_url=self.image_url,
            attributes=json.loads(self.attributes) if self.attributes else {},
        )


@carts.aggregate
class SavedCart:
    tenant_id = String(required=True, max_length=100)
    user_id = Identifier()
    session_id = String(max_length=255)
    items = HasMany(SavedCartItem)
    item_count = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def item_count_matches_quantities(self):
        expected = sum(item.quantity for item in self.items)
        if (self.item_count or 0) != expected:
            raise ValidationError({"item_count": [f"Item count {self.item_count} does not match quantities {expected}"]})

    @invariant.post
    def must_belong_to_user_or_session(self):
        if not self.user_id and not self.session_id:
            raise ValidationError({"saved_cart": ["A saved cart needs a user or a session"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, tenant_id, user_id=None, session_id=None):
        now = utcnow()
        return cls(
            tenant_id=tenant_id,
            user_id=user_id,
            session_id=session_id if user_id is None else None,
            item_count=0,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    def find_item(self, item_id):
        return next((i for i in self.items if str(i.item_id) == str(item_id)), None)

    def require_item(self, item_id):
        item = self.find_item(item_id)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in saved cart"]})
        return item

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def save_item(self, cart_item: CartItem) -> bool:
        """Save a cart line item; returns ``False`` if it was already saved."""
        if self.find_item(cart_item.id):
            return False

        with atomic_change(self):
            self.add_items(SavedCartItem.from_cart_item(cart_item))
            self.item_count = (self.item_count or 0) + cart_item.quantity
            self.updated_at = utcnow()
        return True

    def add_saved_items(self, saved_items) -> None:
        """Copy items saved elsewhere (another SavedCart) into this one."""
        with atomic_change(self):
            for source in saved_items:
                self.add_items(
                    SavedCartItem(
                        item_id=source.item_id,
                        product_id=source.product_id,
                        sku=source.sku,
                        name=source.name,
                        price=source.price,
                        quantity=source.quantity,
                        image_url=source.image_url,
                        attributes=source.attributes,
                        saved_at=source.saved_at,
                    )
                )
                self.item_count = (self.item_count or 0) + source.quantity
            self.updated_at = utcnow()

    def remove_item(self, item_id):
        item = self.require_item(item_id)
        with atomic_change(self):
            self.remove_items(item)
            self.item_count = (self.item_count or 0) - item.quantity
            self.updated_at = utcnow()
        return item

    def clear(self) -> None:
        with atomic_change(self):
            for item in list(self.items):
                self.remove_items(item)
            self.item_count = 0
            self.updated_at = utcnow()
