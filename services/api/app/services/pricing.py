from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True, slots=True)
class PricingTier:
    # Inclusive upper bound; None means unbounded.
    max_bottles: int | None
    unit_price: Decimal

    def matches(self, count: int) -> bool:
        return self.max_bottles is None or count <= self.max_bottles


PRICING_TIERS: tuple[PricingTier, ...] = (
    PricingTier(max_bottles=5, unit_price=Decimal("7.99")),
    PricingTier(max_bottles=11, unit_price=Decimal("7.75")),
    PricingTier(max_bottles=None, unit_price=Decimal("7.50")),
)


def _check_tiers(tiers: tuple[PricingTier, ...]) -> None:
    if not tiers or tiers[-1].max_bottles is not None:
        raise ValueError("last pricing tier must be unbounded")

    previous = -1
    for tier in tiers[:-1]:
        if tier.max_bottles is None or tier.max_bottles <= previous:
            raise ValueError("pricing tiers must have strictly ascending bounds")
        previous = tier.max_bottles


_check_tiers(PRICING_TIERS)


def tier_for(total_single_bottle_count: int) -> PricingTier:
    if total_single_bottle_count < 0:
        raise ValueError("bottle count must be non-negative")

    for tier in PRICING_TIERS:
        if tier.matches(total_single_bottle_count):
            return tier

    # _check_tiers guarantees an unbounded last tier.
    raise AssertionError("unreachable")


def tier_unit_price(total_single_bottle_count: int) -> Decimal:
    """Shared per-bottle price for every single-bottle line in a cart.

    The count is the combined quantity of all non-bundle lines; bundle bottles never
    move a cart into a cheaper tier.
    """

    return tier_for(total_single_bottle_count).unit_price


@dataclass(frozen=True, slots=True)
class PriceQuote:
    quantity: int
    total_bottles: int
    price_per_bottle: Decimal
    total_price: Decimal
    tier: PricingTier


def quote(quantity: int, cart_single_bottle_count: int = 0) -> PriceQuote:
    """Price a pending selection as if it were already in the cart."""

    if quantity < 0:
        raise ValueError("quantity must be non-negative")

    total = cart_single_bottle_count + quantity
    tier = tier_for(total)
    return PriceQuote(
        quantity=quantity,
        total_bottles=total,
        price_per_bottle=tier.unit_price,
        total_price=tier.unit_price * quantity,
        tier=tier,
    )
