"""Pydantic request/response schemas for the Carts API.

These are external contracts (anti-corruption layer) — separate from the
internal Cart model and the protean aggregates.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CartItemSchema(BaseModel):
    id: str
    product_id: str
    sku: str
    name: str
    quantity: int = Field(ge=1)
    price: Decimal = Field(ge=0)
    subtotal: Decimal | None = None
    image_url: str | None = None
    attributes: dict[str, str] = Field(default_factory=dict)


class CartSummarySchema(BaseModel):
    subtotal: Decimal = Decimal("0")
    tax: Decimal = Decimal("0")
    shipping: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


# ---------------------------------------------------------------------------
# Cart Request Schemas
# ---------------------------------------------------------------------------
class SaveCartRequest(BaseModel):
    items: list[CartItemSchema] = Field(default_factory=list)
    summary: CartSummarySchema | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "items": [
                        {
                            "id": "item-001",
                            "product_id": "prod-001",
                            "sku": "TSHIRT-M-BLUE",
                            "name": "T-Shirt",
                            "quantity": 2,
                            "price": "19.99",
                            "attributes": {"color": "blue", "size": "M"},
                        }
                    ]
                }
            ]
        }
    }


class AssociateCartRequest(BaseModel):
    user_id: str


class MarkConvertedRequest(BaseModel):
    order_id: str


# ---------------------------------------------------------------------------
# Saved Cart Request Schemas
# ---------------------------------------------------------------------------
class SaveForLaterRequest(BaseModel):
    session_id: str
    item_id: str
    user_id: str | None = None


class MoveSavedItemRequest(BaseModel):
    session_id: str
    user_id: str | None = None


class MergeSavedCartRequest(BaseModel):
    session_id: str
    user_id: str


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class PersistedCartResponse(BaseModel):
    cart_id: str
    session_id: str
    user_id: str | None = None
    item_count: int
    updated_at: datetime | None = None
    converted: bool
    order_id: str | None = None
    abandonment_notified: bool = False
    second_reminder_sent: bool = False


class SavedCartItemResponse(BaseModel):
    item_id: str
    product_id: str
    sku: str
    name: str
    price: float
    quantity: int
    image_url: str | None = None
    saved_at: datetime | None = None


class SavedCartResponse(BaseModel):
    saved_cart_id: str
    user_id: str | None = None
    session_id: str | None = None
    item_count: int
    items: list[SavedCartItemResponse]


class CleanupResponse(BaseModel):
    deleted: int
