"""Domain events for the PersistedCart aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from carts.domain import carts


@carts.event(part_of="PersistedCart")
class CartAssociatedWithUser:
    """A durable cart was tagged with the authenticated customer that now owns it."""

    __version__ = 1

    cart_id = Identifier(required=True)
    tenant_id = String(required=True)
    session_id = String()
    user_id = Identifier(required=True)


@carts.event(part_of="PersistedCart")
class CartConverted:
    """A durable cart produced an order and left recovery/abandonment eligibility."""

    __version__ = 1

    cart_id = Identifier(required=True)
    tenant_id = String(required=True)
    order_id = Identifier(required=True)
    user_id = Identifier()
    item_count = Integer(required=True)
    converted_at = DateTime(required=True)


@carts.event(part_of="PersistedCart")
class AbandonmentReminderRecorded:
    """An abandonment reminder was handed to the notifications context."""

    __version__ = 1

    cart_id = Identifier(required=True)
    tenant_id = String(required=True)
    user_id = Identifier()
    reminder_number = Integer(required=True)
    sent_at = DateTime(required=True)
