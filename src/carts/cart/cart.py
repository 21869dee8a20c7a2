"""Live shopping cart — the aggregate held in the ephemeral tier.

The cart travels between tiers as JSON: the ephemeral store keeps it under a
TTL, and the durable PersistedCart envelope embeds a snapshot of it. Pricing
in ``summary`` is computed by collaborators and is treated as opaque here.
"""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

from protean.exceptions import ValidationError
from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken to be UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class CartItem(BaseModel):
    """A line item. Identity is the item id, not the product id."""

    model_config = ConfigDict(frozen=True)

    id: str
    product_id: str
    sku: str
    name: str
    quantity: int = Field(ge=1)
    price: Decimal = Field(ge=0)
    subtotal: Decimal = Field(ge=0)
    image_url: str | None = None
    attributes: dict[str, str] = Field(default_factory=dict)

    @field_validator("attributes", mode="before")
    @classmethod
    def _sorted_attributes(cls, value):
        if value is None:
            return {}
        return {str(k): str(v) for k, v in sorted(dict(value).items(), key=lambda kv: str(kv[0]))}

    def with_quantity(self, quantity: int) -> "CartItem":
        return self.model_copy(update={"quantity": quantity, "subtotal": self.price * quantity})


class CartSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    subtotal: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


class Cart(BaseModel):
    id: str
    tenant_id: str
    session_id: str
    items: list[CartItem] = Field(default_factory=list)
    summary: CartSummary = Field(default_factory=CartSummary)
    created_at: datetime
    updated_at: datetime
    expires_at: datetime

    @field_validator("created_at", "updated_at", "expires_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return as_utc(value)

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, tenant_id: str, session_id: str, ttl: timedelta, now: datetime | None = None) -> "Cart":
        """Start an empty cart whose id is the owning session id."""
        now = now or utcnow()
        return cls(
            id=session_id,
            tenant_id=tenant_id,
            session_id=session_id,
            created_at=now,
            updated_at=now,
            expires_at=now + ttl,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def has_items(self) -> bool:
        return bool(self.items)

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    @property
    def item_ids(self) -> list[str]:
        return [item.id for item in self.items]

    def find_item(self, item_id: str) -> CartItem | None:
        return next((item for item in self.items if item.id == item_id), None)

    def ttl(self, now: datetime | None = None) -> timedelta:
        """Remaining lifetime of the ephemeral copy, never less than one second."""
        remaining = self.expires_at - as_utc(now or utcnow())
        return max(remaining, timedelta(seconds=1))

    def total_value(self) -> Decimal:
        if self.summary.total:
            return self.summary.total
        return sum((item.subtotal for item in self.items), Decimal("0"))

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_item(self, item: CartItem, now: datetime | None = None) -> None:
        """Append ``item``; an item with the same id has its quantity increased instead."""
        existing = self.find_item(item.id)
        if existing:
            index = self.items.index(existing)
            self.items[index] = existing.with_quantity(existing.quantity + item.quantity)
        else:
            self.items.append(item)
        self.updated_at = now or utcnow()

    def update_item_quantity(self, item_id: str, quantity: int, now: datetime | None = None) -> None:
        if quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})

        existing = self.find_item(item_id)
        if existing is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})

        self.items[self.items.index(existing)] = existing.with_quantity(quantity)
        self.updated_at = now or utcnow()

    def remove_item(self, item_id: str, now: datetime | None = None) -> CartItem:
        existing = self.find_item(item_id)
        if existing is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})

        self.items.remove(existing)
        self.updated_at = now or utcnow()
        return existing

    def extend_expiry(self, window: timedelta, now: datetime | None = None) -> None:
        now = now or utcnow()
        self.expires_at = now + window
        self.updated_at = now
