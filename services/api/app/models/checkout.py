from __future__ import annotations

from pydantic import BaseModel, Field


class ReadinessOut(BaseModel):
    state: str
    ready: bool
    gate: str | None = None
    reason: str | None = None
    errors: list[str] = Field(default_factory=list)


class CheckoutLineItemOut(BaseModel):
    name: str
    unit_price_cents: int
    quantity: int


class CheckoutOut(BaseModel):
    session_id: str
    payment_session_id: str
    line_items: list[CheckoutLineItemOut]
    total_cents: int
    cart_cleared: bool
