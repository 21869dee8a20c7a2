"""FastAPI routes for the Carts domain — live carts, saved carts and maintenance.

Every route takes the tenant explicitly through the ``X-Tenant-ID`` header.
"""

from fastapi import APIRouter, Depends, Header, HTTPException
from protean.exceptions import ValidationError

from carts.api.schemas import (
    AssociateCartRequest,
    CleanupResponse,
    MarkConvertedRequest,
    MergeSavedCartRequest,
    MoveSavedItemRequest,
    PersistedCartResponse,
    SaveCartRequest,
    SavedCartItemResponse,
    SavedCartResponse,
    SaveForLaterRequest,
    StatusResponse,
)
from carts.cart.cart import Cart, CartItem, CartSummary
from carts.services import CartServices, get_services
from carts.utils.logging import bind_tenant, clear_context


def tenant_scope(x_tenant_id: str = Header()) -> str:
    """Resolve the request's tenant and tag every log line with it."""
    clear_context()
    bind_tenant(x_tenant_id)
    return x_tenant_id


def _bad_request(exc: ValidationError) -> HTTPException:
    return HTTPException(status_code=400, detail=exc.messages)


def _persisted_response(record) -> PersistedCartResponse:
    return PersistedCartResponse(
        cart_id=str(record.id),
        session_id=record.session_id,
        user_id=str(record.user_id) if record.user_id else None,
        item_count=record.item_count or 0,
        updated_at=record.updated_at,
        converted=bool(record.converted),
        order_id=str(record.order_id) if record.order_id else None,
        abandonment_notified=bool(record.abandonment_notified),
        second_reminder_sent=bool(record.second_reminder_sent),
    )


def _saved_response(saved) -> SavedCartResponse:
    return SavedCartResponse(
        saved_cart_id=str(saved.id),
        user_id=str(saved.user_id) if saved.user_id else None,
        session_id=saved.session_id,
        item_count=saved.item_count or 0,
        items=[
            SavedCartItemResponse(
                item_id=str(item.item_id),
                product_id=str(item.product_id),
                sku=item.sku,
                name=item.name,
                price=item.price,
                quantity=item.quantity,
                image_url=item.image_url,
                saved_at=item.saved_at,
            )
            for item in saved.items
        ],
    )


# ---------------------------------------------------------------------------
# Maintenance Router
# ---------------------------------------------------------------------------
maintenance_router = APIRouter(prefix="/carts/maintenance", tags=["carts-maintenance"])


@maintenance_router.get("/abandoned", response_model=list[PersistedCartResponse])
async def list_abandoned_carts(
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> list[PersistedCartResponse]:
    records = await services.abandonment.find_abandoned(tenant_id)
    return [_persisted_response(record) for record in records]


@maintenance_router.post("/reminders")
async def send_abandonment_reminders(
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> dict:
    run = await services.reminders.process(tenant_id)
    return run.as_dict()


@maintenance_router.post("/cleanup", response_model=CleanupResponse)
async def cleanup_converted_carts(
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> CleanupResponse:
    deleted = await services.retention.cleanup(tenant_id)
    return CleanupResponse(deleted=deleted)


@maintenance_router.get("/stats")
async def cart_statistics(
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> dict:
    stats = await services.statistics.cart_statistics(tenant_id)
    return stats.as_dict()


@maintenance_router.get("/abandoned/stats")
async def abandoned_cart_statistics(
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> dict:
    stats = await services.statistics.abandoned_statistics(tenant_id)
    return stats.as_dict()


@maintenance_router.get("/write-behind")
async def write_behind_statistics(services: CartServices = Depends(get_services)) -> dict:
    return services.coordinator.write_behind.stats.as_dict()


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.get("/{session_id}", response_model=Cart)
async def get_cart(
    session_id: str,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> Cart:
    cart = await services.coordinator.get(session_id, tenant_id)
    if cart is None:
        raise HTTPException(status_code=404, detail="Cart not found")
    return cart


@cart_router.put("/{session_id}", response_model=Cart)
async def save_cart(
    session_id: str,
    body: SaveCartRequest,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> Cart:
    """Replace the cart's items (and summary) and persist it."""
    coordinator = services.coordinator
    now = coordinator.clock()

    cart = await coordinator.get(session_id, tenant_id)
    if cart is None:
        cart = Cart.create(tenant_id, session_id, services.settings.cart_ttl, now=now)

    cart.items = [
        CartItem(
            **item.model_dump(exclude={"subtotal"}),
            subtotal=item.subtotal if item.subtotal is not None else item.price * item.quantity,
        )
        for item in body.items
    ]
    if body.summary is not None:
        cart.summary = CartSummary(**body.summary.model_dump())
    cart.updated_at = now

    return await coordinator.persist(cart)


@cart_router.post("/{session_id}/recover", response_model=Cart)
async def recover_cart(
    session_id: str,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> Cart:
    cart = await services.coordinator.recover(session_id, tenant_id)
    if cart is None:
        raise HTTPException(status_code=404, detail="Cart not found")
    return cart


@cart_router.post("/{session_id}/associate", response_model=Cart)
async def associate_cart(
    session_id: str,
    body: AssociateCartRequest,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> Cart:
    """Attach the guest session's cart to the user who just logged in."""
    try:
        cart = await services.coordinator.associate_with_user(session_id, body.user_id, tenant_id)
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    if cart is None:
        raise HTTPException(status_code=404, detail="Cart not found")
    return cart


@cart_router.post("/{cart_id}/conversion", response_model=PersistedCartResponse)
async def mark_cart_converted(
    cart_id: str,
    body: MarkConvertedRequest,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> PersistedCartResponse:
    record = await services.conversion.mark_converted(cart_id, body.order_id, tenant_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Cart not found")
    return _persisted_response(record)


@cart_router.post("/{cart_id}/recovery-reminder", response_model=StatusResponse)
async def send_recovery_reminder(
    cart_id: str,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> StatusResponse:
    result = await services.reminders.send_recovery_reminder(cart_id, tenant_id)
    if result is None:
        raise HTTPException(status_code=404, detail="No remindable cart found")
    return StatusResponse(status=result.get("status", "ok"))


# ---------------------------------------------------------------------------
# Saved Cart Router
# ---------------------------------------------------------------------------
saved_cart_router = APIRouter(prefix="/saved-carts", tags=["saved-carts"])


@saved_cart_router.get("", response_model=SavedCartResponse)
async def get_saved_cart(
    user_id: str | None = None,
    session_id: str | None = None,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> SavedCartResponse:
    try:
        saved = await services.saved.get_saved_cart(tenant_id, user_id=user_id, session_id=session_id)
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    return _saved_response(saved)


@saved_cart_router.post("/items", response_model=SavedCartResponse)
async def save_for_later(
    body: SaveForLaterRequest,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> SavedCartResponse:
    try:
        saved = await services.saved.save_for_later(body.session_id, body.item_id, tenant_id, user_id=body.user_id)
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    return _saved_response(saved)


@saved_cart_router.post("/items/{item_id}/move", response_model=Cart)
async def move_saved_item_to_cart(
    item_id: str,
    body: MoveSavedItemRequest,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> Cart:
    try:
        return await services.saved.move_to_cart(body.session_id, item_id, tenant_id, user_id=body.user_id)
    except ValidationError as exc:
        raise _bad_request(exc) from exc


@saved_cart_router.post("/move-all", response_model=Cart)
async def move_all_saved_items_to_cart(
    body: MoveSavedItemRequest,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> Cart:
    return await services.saved.move_all_to_cart(body.session_id, tenant_id, user_id=body.user_id)


@saved_cart_router.delete("/items/{item_id}", response_model=SavedCartResponse)
async def remove_saved_item(
    item_id: str,
    user_id: str | None = None,
    session_id: str | None = None,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> SavedCartResponse:
    try:
        saved = await services.saved.remove_from_saved(item_id, tenant_id, user_id=user_id, session_id=session_id)
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    return _saved_response(saved)


@saved_cart_router.delete("", response_model=SavedCartResponse)
async def clear_saved_cart(
    user_id: str | None = None,
    session_id: str | None = None,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> SavedCartResponse:
    try:
        saved = await services.saved.clear_saved_cart(tenant_id, user_id=user_id, session_id=session_id)
    except ValidationError as exc:
        raise _bad_request(exc) from exc
    return _saved_response(saved)


@saved_cart_router.post("/merge", response_model=SavedCartResponse)
async def merge_session_saved_cart(
    body: MergeSavedCartRequest,
    tenant_id: str = Depends(tenant_scope),
    services: CartServices = Depends(get_services),
) -> SavedCartResponse:
    saved = await services.saved.merge_session_saved_cart(body.session_id, body.user_id, tenant_id)
    return _saved_response(saved)
