from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class CustomerUpdateRequest(BaseModel):
    name: str = ""
    phone: str = ""
    email: str = ""
    street: str = ""
    city: str = ""
    zip_code: str = ""


class CustomerOut(CustomerUpdateRequest):
    delivery_reset: bool = False


class DeliveryOut(BaseModel):
    validated: bool
    fee_amount: Decimal
    distance_miles: float | None = None
    failure_reason: str | None = None
    failure_kind: str | None = None
    strategy: str | None = None
