from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel, Field


class SessionOut(BaseModel):
    session_id: str


class AddUnitRequest(BaseModel):
    product_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    unit_price: Decimal = Field(Decimal("7.99"), ge=0)
    # Omitted means "use the pending quantity picker value".
    quantity: int | None = None


class AddCleanseRequest(BaseModel):
    cleanse_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)
    flavor: str = "refresher"
    bottle_count: int
    bundle_price: Decimal = Field(..., ge=0)


class AdjustQuantityRequest(BaseModel):
    delta: int


class SetQuantityRequest(BaseModel):
    quantity: int


class SelectQuantityRequest(BaseModel):
    change: int


class SelectionOut(BaseModel):
    product_id: str
    quantity: int


def display_money(amount: Decimal) -> Decimal:
    # Bundle prices are exact fractions internally (35/3); responses show cents.
    return Decimal(amount).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


class CartLineOut(BaseModel):
    product_id: str
    display_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    is_bundle: bool


class CartTotalsOut(BaseModel):
    lines: list[CartLineOut]
    subtotal: Decimal
    total_bottle_count: int
    single_bottle_count: int
    shared_unit_price: Decimal


class CartOut(BaseModel):
    session_id: str
    totals: CartTotalsOut
    delivery_fee: Decimal
    total: Decimal
    meets_minimum_order: bool


class NoticeOut(BaseModel):
    level: str
    message: str
