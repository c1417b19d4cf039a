from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from packages.shared.schemas.checkout_v1 import CheckoutItemV1, CheckoutSessionRequestV1
from services.api.app.services.delivery_base import DeliveryResolution
from services.api.app.services.errors import PreconditionFailedError
from services.api.app.services.ledger import CartTotals
from services.api.app.services.validator import Gate, Readiness

DELIVERY_FEE_LINE_NAME = "Delivery Fee"


@dataclass(frozen=True, slots=True)
class CheckoutLineItem:
    name: str
    unit_price_cents: int
    quantity: int
    is_delivery_fee: bool = False


def to_cents(amount: Decimal) -> int:
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_line_items(
    totals: CartTotals,
    resolution: DeliveryResolution,
    readiness: Readiness,
) -> list[CheckoutLineItem]:
    """Priced line items for the payment processor, with delivery as a trailing line.

    Refuses to run unless the order passed every checkout gate. Unit prices are rounded
    to cents before the processor multiplies by quantity, so a bundle whose per-bottle
    price is a repeating fraction can charge a cent more or less than the cart subtotal.
    """

    if not readiness.ready:
        raise PreconditionFailedError(
            (readiness.gate or Gate.CART_NOT_EMPTY).value,
            readiness.reason or "Order is not ready for checkout.",
        )

    if not resolution.validated:
        raise PreconditionFailedError(
            Gate.DELIVERY_VALIDATED.value,
            "Please validate your delivery address before checking out.",
        )

    items = [
        CheckoutLineItem(
            name=line.display_name,
            unit_price_cents=to_cents(line.unit_price),
            quantity=line.quantity,
        )
        for line in totals.lines
    ]

    if resolution.fee_amount > 0:
        items.append(
            CheckoutLineItem(
                name=DELIVERY_FEE_LINE_NAME,
                unit_price_cents=to_cents(resolution.fee_amount),
                quantity=1,
                is_delivery_fee=True,
            )
        )

    return items


def build_session_request(
    line_items: list[CheckoutLineItem],
    *,
    customer_email: str,
    site: str,
    now: datetime | None = None,
) -> CheckoutSessionRequestV1:
    # The delivery fee travels in its own field; the endpoint appends the fee line.
    products = [i for i in line_items if not i.is_delivery_fee]
    delivery_cents = sum(
        i.unit_price_cents * i.quantity for i in line_items if i.is_delivery_fee
    )

    now = now or datetime.now(timezone.utc)
    return CheckoutSessionRequestV1(
        items=[
            CheckoutItemV1(name=i.name, price=i.unit_price_cents / 100, quantity=i.quantity)
            for i in products
        ],
        delivery_fee=delivery_cents / 100,
        customer_email=customer_email,
        metadata={"site": site, "timestamp": now.isoformat()},
    )
