from __future__ import annotations

from fastapi import APIRouter, Depends
from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from services.api.app.db.deps import get_db
from services.api.app.models.cart import (
    AddCleanseRequest,
    AddUnitRequest,
    AdjustQuantityRequest,
    CartLineOut,
    CartOut,
    CartTotalsOut,
    NoticeOut,
    SelectionOut,
    SelectQuantityRequest,
    SessionOut,
    SetQuantityRequest,
    display_money,
)
from services.api.app.routers._errors import raise_storefront_http_error
from services.api.app.services.events import log_event
from services.api.app.services.session import StorefrontSession, registry
from services.api.app.services.validator import MINIMUM_ORDER_BOTTLES
from sqlalchemy.orm import Session

router = APIRouter()


@router.post("/v1/sessions", response_model=SessionOut)
async def create_session() -> SessionOut:
    session = registry.create()
    return SessionOut(session_id=session.session_id)


@router.get("/v1/sessions/{session_id}/cart", response_model=CartOut)
async def get_cart(session_id: str) -> CartOut:
    return cart_out(registry.get_or_create(session_id))


@router.delete("/v1/sessions/{session_id}/cart", response_model=CartOut)
async def clear_cart(session_id: str, db: Session = Depends(get_db)) -> CartOut:
    session = registry.get_or_create(session_id)
    session.ledger.clear()
    _log_cart(db, session, EventTypeV1.CART_CLEARED, {})
    return cart_out(session)


@router.post("/v1/sessions/{session_id}/cart/items", response_model=CartOut)
async def add_item(
    session_id: str,
    payload: AddUnitRequest,
    db: Session = Depends(get_db),
) -> CartOut:
    session = registry.get_or_create(session_id)
    try:
        line = session.add_unit(
            payload.product_id, payload.name, payload.unit_price, payload.quantity
        )
    except Exception as e:
        raise_storefront_http_error(e)

    _log_cart(
        db,
        session,
        EventTypeV1.CART_UPDATED,
        {"action": "add_unit", "product_id": line.product_id, "quantity": line.quantity},
    )
    return cart_out(session)


@router.post("/v1/sessions/{session_id}/cart/cleanses", response_model=CartOut)
async def add_cleanse(
    session_id: str,
    payload: AddCleanseRequest,
    db: Session = Depends(get_db),
) -> CartOut:
    session = registry.get_or_create(session_id)
    try:
        line = session.add_cleanse(
            payload.cleanse_id,
            payload.name,
            payload.bottle_count,
            payload.bundle_price,
            payload.flavor,
        )
    except Exception as e:
        raise_storefront_http_error(e)

    _log_cart(
        db,
        session,
        EventTypeV1.CART_UPDATED,
        {
            "action": "add_bundle",
            "product_id": line.product_id,
            "quantity": line.quantity,
            "unit_price": str(line.unit_price),
        },
    )
    return cart_out(session)


@router.post("/v1/sessions/{session_id}/cart/items/{product_id}/adjust", response_model=CartOut)
async def adjust_item(
    session_id: str,
    product_id: str,
    payload: AdjustQuantityRequest,
    db: Session = Depends(get_db),
) -> CartOut:
    session = registry.get_or_create(session_id)
    line = session.ledger.adjust_quantity(product_id, payload.delta)
    _log_cart(
        db,
        session,
        EventTypeV1.CART_UPDATED,
        {
            "action": "adjust",
            "product_id": product_id,
            "delta": payload.delta,
            "quantity": line.quantity if line is not None else 0,
        },
    )
    return cart_out(session)


@router.put("/v1/sessions/{session_id}/cart/items/{product_id}", response_model=CartOut)
async def set_item_quantity(
    session_id: str,
    product_id: str,
    payload: SetQuantityRequest,
    db: Session = Depends(get_db),
) -> CartOut:
    session = registry.get_or_create(session_id)
    session.ledger.set_quantity(product_id, payload.quantity)
    _log_cart(
        db,
        session,
        EventTypeV1.CART_UPDATED,
        {"action": "set_quantity", "product_id": product_id, "quantity": max(0, payload.quantity)},
    )
    return cart_out(session)


@router.delete("/v1/sessions/{session_id}/cart/items/{product_id}", response_model=CartOut)
async def remove_item(
    session_id: str,
    product_id: str,
    db: Session = Depends(get_db),
) -> CartOut:
    session = registry.get_or_create(session_id)
    session.ledger.remove(product_id)
    _log_cart(db, session, EventTypeV1.CART_UPDATED, {"action": "remove", "product_id": product_id})
    return cart_out(session)


@router.post("/v1/sessions/{session_id}/selections/{product_id}", response_model=SelectionOut)
async def select_quantity(
    session_id: str,
    product_id: str,
    payload: SelectQuantityRequest,
) -> SelectionOut:
    session = registry.get_or_create(session_id)
    qty = session.ledger.select(product_id, payload.change)
    return SelectionOut(product_id=product_id, quantity=qty)


@router.get("/v1/sessions/{session_id}/notifications", response_model=list[NoticeOut])
async def drain_notifications(session_id: str) -> list[NoticeOut]:
    session = registry.get_or_create(session_id)
    return [NoticeOut(level=n.level, message=n.message) for n in session.notifier.drain()]


def cart_out(session: StorefrontSession) -> CartOut:
    totals = session.ledger.compute_totals()
    fee = session.delivery.resolution.fee_amount
    return CartOut(
        session_id=session.session_id,
        totals=CartTotalsOut(
            lines=[
                CartLineOut(
                    product_id=line.product_id,
                    display_name=line.display_name,
                    quantity=line.quantity,
                    unit_price=display_money(line.unit_price),
                    line_total=display_money(line.line_total),
                    is_bundle=line.is_bundle,
                )
                for line in totals.lines
            ],
            subtotal=display_money(totals.subtotal),
            total_bottle_count=totals.total_bottle_count,
            single_bottle_count=totals.single_bottle_count,
            shared_unit_price=display_money(totals.shared_unit_price),
        ),
        delivery_fee=display_money(fee),
        total=display_money(totals.subtotal + fee),
        meets_minimum_order=totals.total_bottle_count >= MINIMUM_ORDER_BOTTLES,
    )


def _log_cart(
    db: Session,
    session: StorefrontSession,
    event_type: EventTypeV1,
    payload: dict,
) -> None:
    log_event(
        db,
        session_id=session.session_id,
        entity_type=EntityTypeV1.CART,
        entity_id=session.ledger.key,
        event_type=event_type,
        event_payload=payload,
    )
