from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel


class PricingTierOut(BaseModel):
    max_bottles: int | None
    unit_price: Decimal


class PriceQuoteOut(BaseModel):
    quantity: int
    total_bottles: int
    price_per_bottle: Decimal
    total_price: Decimal
    tier: PricingTierOut
