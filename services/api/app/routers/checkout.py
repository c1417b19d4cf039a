from __future__ import annotations

from fastapi import APIRouter, Depends
from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from services.api.app.db.deps import get_db
from services.api.app.models.checkout import CheckoutLineItemOut, CheckoutOut, ReadinessOut
from services.api.app.models.delivery import CustomerOut, CustomerUpdateRequest, DeliveryOut
from services.api.app.routers._errors import raise_storefront_http_error
from services.api.app.services.delivery_base import DeliveryResolution
from services.api.app.services.errors import (
    CheckoutGatewayError,
    PreconditionFailedError,
    StorefrontError,
)
from services.api.app.services.events import log_event
from services.api.app.services.session import registry
from services.api.app.services.validator import CustomerInfo
from sqlalchemy.orm import Session

router = APIRouter()


@router.put("/v1/sessions/{session_id}/customer", response_model=CustomerOut)
async def update_customer(session_id: str, payload: CustomerUpdateRequest) -> CustomerOut:
    session = registry.get_or_create(session_id)
    changed = session.update_customer(CustomerInfo(**payload.model_dump()))

    c = session.customer
    return CustomerOut(
        name=c.name,
        phone=c.phone,
        email=c.email,
        street=c.street,
        city=c.city,
        zip_code=c.zip_code,
        delivery_reset=changed,
    )


@router.get("/v1/sessions/{session_id}/delivery", response_model=DeliveryOut)
async def get_delivery(session_id: str) -> DeliveryOut:
    session = registry.get_or_create(session_id)
    return _delivery_out(session.delivery.resolution)


@router.post("/v1/sessions/{session_id}/delivery/validate", response_model=DeliveryOut)
async def validate_delivery(session_id: str, db: Session = Depends(get_db)) -> DeliveryOut:
    session = registry.get_or_create(session_id)
    resolution = await session.validate_delivery()

    log_event(
        db,
        session_id=session_id,
        entity_type=EntityTypeV1.DELIVERY,
        entity_id=session_id,
        event_type=(
            EventTypeV1.DELIVERY_VALIDATED
            if resolution.validated
            else EventTypeV1.DELIVERY_REJECTED
        ),
        event_payload=_delivery_out(resolution).model_dump(mode="json"),
    )
    return _delivery_out(resolution)


@router.get("/v1/sessions/{session_id}/checkout/readiness", response_model=ReadinessOut)
async def get_readiness(session_id: str) -> ReadinessOut:
    session = registry.get_or_create(session_id)
    r = session.readiness()
    return ReadinessOut(
        state=r.state.value,
        ready=r.ready,
        gate=r.gate.value if r.gate is not None else None,
        reason=r.reason,
        errors=list(r.errors),
    )


@router.post("/v1/sessions/{session_id}/checkout", response_model=CheckoutOut)
async def checkout(session_id: str, db: Session = Depends(get_db)) -> CheckoutOut:
    session = registry.get_or_create(session_id)

    try:
        result = await session.checkout()
    except PreconditionFailedError as e:
        payload = {"gate": e.gate, "reason": e.reason}
        _log_checkout(db, session_id, EventTypeV1.CHECKOUT_REJECTED, payload)
        raise_storefront_http_error(e)
    except CheckoutGatewayError as e:
        _log_checkout(db, session_id, EventTypeV1.CHECKOUT_FAILED, {"error": e.detail})
        raise_storefront_http_error(e)
    except StorefrontError as e:
        raise_storefront_http_error(e)

    _log_checkout(
        db,
        session_id,
        EventTypeV1.CHECKOUT_SESSION_CREATED,
        {
            "payment_session_id": result.payment_session_id,
            "request": result.request.model_dump(mode="json"),
        },
    )

    return CheckoutOut(
        session_id=session_id,
        payment_session_id=result.payment_session_id,
        line_items=[
            CheckoutLineItemOut(
                name=i.name,
                unit_price_cents=i.unit_price_cents,
                quantity=i.quantity,
            )
            for i in result.line_items
        ],
        total_cents=sum(i.unit_price_cents * i.quantity for i in result.line_items),
        cart_cleared=result.cart_cleared,
    )


def _delivery_out(resolution: DeliveryResolution) -> DeliveryOut:
    return DeliveryOut(
        validated=resolution.validated,
        fee_amount=resolution.fee_amount,
        distance_miles=resolution.distance_miles,
        failure_reason=resolution.failure_reason,
        failure_kind=resolution.failure_kind,
        strategy=resolution.strategy,
    )


def _log_checkout(db: Session, session_id: str, event_type: EventTypeV1, payload: dict) -> None:
    log_event(
        db,
        session_id=session_id,
        entity_type=EntityTypeV1.CHECKOUT,
        entity_id=session_id,
        event_type=event_type,
        event_payload=payload,
    )
