from __future__ import annotations

import math
import re
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Protocol

from services.api.app.services.errors import StorefrontError, ValidationError, error_kind

EARTH_RADIUS_MILES = 3958.8

_ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")


@dataclass(frozen=True, slots=True)
class Coordinates:
    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class DeliveryAddress:
    street: str
    city: str
    zip_code: str

    def normalized(self) -> "DeliveryAddress":
        return DeliveryAddress(
            street=self.street.strip(),
            city=self.city.strip(),
            zip_code=self.zip_code.strip(),
        )

    def full(self) -> str:
        return f"{self.street}, {self.city}, {self.zip_code}"


@dataclass(frozen=True, slots=True)
class DeliveryFeeTier:
    max_miles: float
    fee: Decimal


@dataclass(frozen=True, slots=True)
class DeliveryResolution:
    validated: bool
    fee_amount: Decimal = Decimal("0")
    distance_miles: float | None = None
    failure_reason: str | None = None
    failure_kind: str | None = None
    strategy: str | None = None

    def __post_init__(self) -> None:
        if not self.validated and self.fee_amount != 0:
            raise ValueError("an unvalidated delivery resolution cannot carry a fee")

    @classmethod
    def not_attempted(cls) -> "DeliveryResolution":
        return cls(validated=False, failure_reason="Delivery address has not been validated.")

    @classmethod
    def ok(cls, *, fee: Decimal, distance_miles: float, strategy: str) -> "DeliveryResolution":
        return cls(validated=True, fee_amount=fee, distance_miles=distance_miles, strategy=strategy)

    @classmethod
    def failed(cls, e: StorefrontError, *, strategy: str) -> "DeliveryResolution":
        return cls(
            validated=False,
            fee_amount=Decimal("0"),
            distance_miles=getattr(e, "distance_miles", None),
            failure_reason=str(e),
            failure_kind=error_kind(e),
            strategy=strategy,
        )


class GeoProvider(Protocol):
    name: str

    async def geocode(self, address: str) -> Coordinates: ...

    async def driving_distance(self, origin: Coordinates, destination: Coordinates) -> float: ...


class DeliveryResolver(Protocol):
    strategy: str

    async def resolve(self, address: DeliveryAddress) -> DeliveryResolution: ...


def check_address(address: DeliveryAddress) -> DeliveryAddress:
    a = address.normalized()
    if not a.street or not a.city or not a.zip_code:
        raise ValidationError("Please complete all address fields.")
    if not _ZIP_RE.match(a.zip_code):
        raise ValidationError("Invalid ZIP code format.")
    return a


def sorted_tiers(tiers: Iterable[DeliveryFeeTier]) -> tuple[DeliveryFeeTier, ...]:
    out = tuple(sorted(tiers, key=lambda t: t.max_miles))
    if not out:
        raise ValueError("at least one delivery fee tier is required")
    return out


def fee_for_distance(tiers: tuple[DeliveryFeeTier, ...], distance_miles: float) -> Decimal | None:
    """First tier (ascending max_miles) that covers the distance, or None if none do."""

    for tier in tiers:
        if distance_miles <= tier.max_miles:
            return tier.fee
    return None


def haversine_miles(a: Coordinates, b: Coordinates) -> float:
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    lat1 = math.radians(a.lat)
    lat2 = math.radians(b.lat)
    h = math.sin(d_lat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(d_lng / 2) ** 2
    return 2 * EARTH_RADIUS_MILES * math.asin(math.sqrt(h))


def parse_fee_tiers(raw: str) -> tuple[DeliveryFeeTier, ...]:
    """Parse `"35:7,50:12"` into fee tiers."""

    tiers: list[DeliveryFeeTier] = []
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk:
            continue
        miles, _, fee = chunk.partition(":")
        if not fee:
            raise ValueError(f"Invalid delivery tier {chunk!r}. Expected MAX_MILES:FEE.")
        tiers.append(DeliveryFeeTier(max_miles=float(miles), fee=Decimal(fee.strip())))
    return sorted_tiers(tiers)


class DeliveryTracker:
    """Delivery state for one session: the address in use and its last resolution.

    Each address change or validation start bumps a generation counter. A resolution that
    finishes after the address moved on is discarded, so a slow provider call can never
    validate an address the customer has since edited.
    """

    def __init__(self) -> None:
        self._address: DeliveryAddress | None = None
        self._resolution = DeliveryResolution.not_attempted()
        self._generation = 0

    @property
    def address(self) -> DeliveryAddress | None:
        return self._address

    @property
    def resolution(self) -> DeliveryResolution:
        return self._resolution

    def update_address(self, address: DeliveryAddress) -> bool:
        address = address.normalized()
        if address == self._address:
            return False
        self._address = address
        self._invalidate()
        return True

    def begin(self, address: DeliveryAddress) -> int:
        self._address = address.normalized()
        self._invalidate()
        return self._generation

    def complete(self, ticket: int, resolution: DeliveryResolution) -> bool:
        if ticket != self._generation:
            return False
        self._resolution = resolution
        return True

    def invalidate(self) -> None:
        self._invalidate()

    def _invalidate(self) -> None:
        self._generation += 1
        self._resolution = DeliveryResolution.not_attempted()
