"""Checkout submission schema (v1).

This is the body the storefront posts to the payment-session endpoint. Prices are
dollars already rounded to whole cents; the endpoint multiplies by 100 again, so any
sub-cent remainder here would leak into the charged amount.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CheckoutItemV1(BaseModel):
    name: str
    price: float = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


class CheckoutSessionRequestV1(BaseModel):
    items: list[CheckoutItemV1] = Field(..., min_length=1)
    delivery_fee: float = Field(0, ge=0)
    customer_email: str
    metadata: dict[str, Any] = Field(default_factory=dict)


class CheckoutSessionResponseV1(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str | None = Field(default=None, alias="sessionId")
    error: str | None = None
