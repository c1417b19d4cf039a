from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query
from services.api.app.models.pricing import PriceQuoteOut, PricingTierOut
from services.api.app.services.pricing import PRICING_TIERS, quote

router = APIRouter()


@router.get("/v1/pricing/tiers", response_model=list[PricingTierOut])
def list_tiers() -> list[PricingTierOut]:
    return [
        PricingTierOut(max_bottles=t.max_bottles, unit_price=t.unit_price)
        for t in PRICING_TIERS
    ]


@router.get("/v1/pricing/quote", response_model=PriceQuoteOut)
def price_quote(
    quantity: int = Query(..., ge=0),
    cart_bottles: int = Query(0, ge=0),
) -> PriceQuoteOut:
    try:
        q = quote(quantity, cart_bottles)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e

    return PriceQuoteOut(
        quantity=q.quantity,
        total_bottles=q.total_bottles,
        price_per_bottle=q.price_per_bottle,
        total_price=q.total_price,
        tier=PricingTierOut(max_bottles=q.tier.max_bottles, unit_price=q.tier.unit_price),
    )
