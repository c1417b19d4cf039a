from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum

from services.api.app.services.delivery_base import DeliveryResolution
from services.api.app.services.ledger import CartTotals

MINIMUM_ORDER_BOTTLES = 4

_PHONE_RE = re.compile(r"^\d{10}$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")


class CheckoutReadiness(str, Enum):
    EMPTY = "EMPTY"
    INCOMPLETE = "INCOMPLETE"
    DELIVERY_UNVALIDATED = "DELIVERY_UNVALIDATED"
    READY = "READY"


class Gate(str, Enum):
    CART_NOT_EMPTY = "CART_NOT_EMPTY"
    MINIMUM_ORDER = "MINIMUM_ORDER"
    CUSTOMER_FIELDS = "CUSTOMER_FIELDS"
    DELIVERY_VALIDATED = "DELIVERY_VALIDATED"


@dataclass(frozen=True, slots=True)
class CustomerInfo:
    name: str = ""
    phone: str = ""
    email: str = ""
    street: str = ""
    city: str = ""
    zip_code: str = ""

    def stripped(self) -> "CustomerInfo":
        return CustomerInfo(
            name=self.name.strip(),
            phone=self.phone.strip(),
            email=self.email.strip(),
            street=self.street.strip(),
            city=self.city.strip(),
            zip_code=self.zip_code.strip(),
        )


@dataclass(frozen=True, slots=True)
class Readiness:
    state: CheckoutReadiness
    gate: Gate | None = None
    reason: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return self.state == CheckoutReadiness.READY


def normalize_phone(phone: str) -> str:
    return re.sub(r"\D", "", phone)


def customer_field_errors(customer: CustomerInfo) -> list[str]:
    c = customer.stripped()
    errors: list[str] = []

    if not c.name:
        errors.append("Please enter your full name")

    if not c.phone:
        errors.append("Please enter your phone number")
    elif not _PHONE_RE.match(normalize_phone(c.phone)):
        errors.append("Please enter a valid 10-digit phone number")

    if not c.email:
        errors.append("Please enter your email address")
    elif not _EMAIL_RE.match(c.email):
        errors.append("Please enter a valid email address")

    if not c.street:
        errors.append("Please enter your street address")
    if not c.city:
        errors.append("Please enter your city")

    if not c.zip_code:
        errors.append("Please enter your ZIP code")
    elif not _ZIP_RE.match(c.zip_code):
        errors.append("Invalid ZIP code format.")

    return errors


def evaluate_readiness(
    totals: CartTotals,
    customer: CustomerInfo,
    resolution: DeliveryResolution,
) -> Readiness:
    """Run the checkout gates in order; the first failing gate decides the outcome.

    Callers must evaluate this on every checkout attempt. Any cart or address edit can
    undo a previous READY result.
    """

    if not totals.lines:
        return Readiness(
            state=CheckoutReadiness.EMPTY,
            gate=Gate.CART_NOT_EMPTY,
            reason="Your cart is empty",
        )

    if totals.total_bottle_count < MINIMUM_ORDER_BOTTLES:
        return Readiness(
            state=CheckoutReadiness.INCOMPLETE,
            gate=Gate.MINIMUM_ORDER,
            reason=(
                f"Minimum order is {MINIMUM_ORDER_BOTTLES} bottles. "
                "Please add more to your cart."
            ),
        )

    errors = customer_field_errors(customer)
    if errors:
        return Readiness(
            state=CheckoutReadiness.INCOMPLETE,
            gate=Gate.CUSTOMER_FIELDS,
            reason="Please fill in all required fields correctly.",
            errors=errors,
        )

    if not resolution.validated:
        return Readiness(
            state=CheckoutReadiness.DELIVERY_UNVALIDATED,
            gate=Gate.DELIVERY_VALIDATED,
            reason="Please validate your delivery address before checking out.",
        )

    return Readiness(state=CheckoutReadiness.READY)
