"""PersistedCart aggregate — the durable envelope around a cart snapshot.

One record per cart identity, sharing the cart's id. The ephemeral tier is
the source of truth while a cart is live; this record is what recovery,
abandonment scans, conversion tracking and retention work against.

Conversion is terminal: once ``converted`` is set it is never cleared, and the
embedded snapshot is frozen. Only conversion and reminder bookkeeping may
change afterwards.
"""

from datetime import datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from carts.cart.cart import Cart, as_utc, utcnow
from carts.domain import carts
from carts.persisted.events import AbandonmentReminderRecorded, CartAssociatedWithUser, CartConverted


@carts.aggregate
class PersistedCart:
    id = Identifier(identifier=True, required=True)  # Same as Cart.id
    tenant_id = String(required=True, max_length=100)
    session_id = String(required=True, max_length=255)
    user_id = Identifier()  # Set once the cart belongs to an authenticated customer
    cart = Text(required=True)  # JSON snapshot of the live Cart
    item_count = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()
    last_synced_at = DateTime()
    converted = Boolean(default=False)
    order_id = Identifier()
    converted_at = DateTime()
    abandonment_notified = Boolean(default=False)
    abandonment_notified_at = DateTime()
    second_reminder_sent = Boolean(default=False)
    second_reminder_sent_at = DateTime()

    @invariant.post
    def converted_carts_reference_an_order(self):
        if self.converted and not self.order_id:
            raise ValidationError({"order_id": ["A converted cart must reference its order"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def from_cart(cls, cart: Cart, now: datetime | None = None, user_id: str | None = None):
        return cls(
            id=cart.id,
            tenant_id=cart.tenant_id,
            session_id=cart.session_id,
            user_id=user_id,
            cart=cart.model_dump_json(),
            item_count=cart.item_count,
            created_at=cart.created_at,
            updated_at=cart.updated_at,
            last_synced_at=now or utcnow(),
        )

    # -------------------------------------------------------------------
    # Snapshot access
    # -------------------------------------------------------------------
    def snapshot(self) -> Cart:
        """Rebuild the live Cart from the embedded JSON."""
        return Cart.model_validate_json(self.cart)

    @property
    def has_items(self) -> bool:
        return bool(self.snapshot().items)

    def idle_since(self) -> datetime | None:
        return as_utc(self.updated_at) if self.updated_at else None

    # -------------------------------------------------------------------
    # Synchronization
    # -------------------------------------------------------------------
    def sync_from(self, cart: Cart, now: datetime | None = None) -> None:
        """Replace the embedded snapshot with the latest state from the ephemeral tier."""
        if self.converted:
            raise ValidationError({"cart": ["Converted carts cannot be updated"]})
        if str(cart.id) != str(self.id):
            raise ValidationError({"cart": [f"Snapshot {cart.id} does not belong to cart {self.id}"]})
        if cart.tenant_id != self.tenant_id:
            raise ValidationError({"tenant_id": ["Snapshot belongs to a different tenant"]})

        previous_update = self.idle_since()

        self.cart = cart.model_dump_json()
        self.item_count = cart.item_count
        self.session_id = cart.session_id
        self.updated_at = cart.updated_at
        self.last_synced_at = now or utcnow()

        # Fresh activity restarts the reminder sequence
        if previous_update is None or as_utc(cart.updated_at) > previous_update:
            self.reset_abandonment_tracking()

    def associate_user(self, user_id: str) -> None:
        """Tag the record with the customer that owns it."""
        if self.converted:
            raise ValidationError({"user_id": ["Converted carts cannot be re-associated"]})
        if self.user_id and str(self.user_id) == str(user_id):
            return

        self.user_id = user_id
        self.raise_(
            CartAssociatedWithUser(
                cart_id=str(self.id),
                tenant_id=self.tenant_id,
                session_id=self.session_id,
                user_id=str(user_id),
            )
        )

    # -------------------------------------------------------------------
    # Conversion
    # -------------------------------------------------------------------
    def mark_converted(self, order_id: str, now: datetime | None = None) -> bool:
        """Mark the cart as converted to ``order_id``.

        Returns ``False`` when the cart was already converted; the first order
        id recorded is kept.
        """
        if self.converted:
            return False

        now = now or utcnow()
        with atomic_change(self):
            self.converted = True
            self.order_id = order_id
            self.converted_at = now
            self.updated_at = now

        self.raise_(
            CartConverted(
                cart_id=str(self.id),
                tenant_id=self.tenant_id,
                order_id=str(order_id),
                user_id=str(self.user_id) if self.user_id else None,
                item_count=self.item_count or 0,
                converted_at=now,
            )
        )
        return True

    # -------------------------------------------------------------------
    # Abandonment reminders
    # -------------------------------------------------------------------
    def record_reminder(self, reminder_number: int, now: datetime | None = None) -> None:
        now = now or utcnow()
        if reminder_number == 1:
            self.abandonment_notified = True
            self.abandonment_notified_at = now
        elif reminder_number == 2:
            self.second_reminder_sent = True
            self.second_reminder_sent_at = now

        self.raise_(
            AbandonmentReminderRecorded(
                cart_id=str(self.id),
                tenant_id=self.tenant_id,
                user_id=str(self.user_id) if self.user_id else None,
                reminder_number=reminder_number,
                sent_at=now,
            )
        )

    def reset_abandonment_tracking(self) -> None:
        self.abandonment_notified = False
        self.abandonment_notified_at = None
        self.second_reminder_sent = False
        self.second_reminder_sent_at = None
