from __future__ import annotations

import logging
import os
from decimal import Decimal

from services.api.app.services.delivery_base import (
    Coordinates,
    DeliveryAddress,
    DeliveryFeeTier,
    DeliveryResolution,
    GeoProvider,
    check_address,
    fee_for_distance,
    haversine_miles,
    parse_fee_tiers,
    sorted_tiers,
)
from services.api.app.services.errors import (
    OutOfServiceAreaError,
    ProviderUnavailableError,
    StorefrontError,
)

logger = logging.getLogger(__name__)

# Stone Mountain, GA storefront.
DEFAULT_STORE_COORDS = Coordinates(lat=33.7836, lng=-84.0979)
DEFAULT_FEE_TIERS = (DeliveryFeeTier(max_miles=35, fee=Decimal("7")),)


class GeocodeDeliveryResolver:
    """Driving distance from the store via a geo provider, straight-line as fallback.

    Env vars (see `from_env`):
    - JUICE_STORE_LAT / JUICE_STORE_LNG (default: Stone Mountain, GA)
    - JUICE_DELIVERY_TIERS (default: "35:7")
    """

    strategy = "geocode"

    def __init__(
        self,
        provider: GeoProvider,
        *,
        store_coords: Coordinates = DEFAULT_STORE_COORDS,
        fee_tiers: tuple[DeliveryFeeTier, ...] = DEFAULT_FEE_TIERS,
    ) -> None:
        self._provider = provider
        self._store = store_coords
        self._tiers = sorted_tiers(fee_tiers)

    @classmethod
    def from_env(cls, provider: GeoProvider) -> "GeocodeDeliveryResolver":
        store = Coordinates(
            lat=float(os.getenv("JUICE_STORE_LAT", str(DEFAULT_STORE_COORDS.lat))),
            lng=float(os.getenv("JUICE_STORE_LNG", str(DEFAULT_STORE_COORDS.lng))),
        )
        raw_tiers = os.getenv("JUICE_DELIVERY_TIERS", "").strip()
        tiers = parse_fee_tiers(raw_tiers) if raw_tiers else DEFAULT_FEE_TIERS
        return cls(provider, store_coords=store, fee_tiers=tiers)

    @property
    def fee_tiers(self) -> tuple[DeliveryFeeTier, ...]:
        return self._tiers

    async def resolve(self, address: DeliveryAddress) -> DeliveryResolution:
        try:
            checked = check_address(address)
            destination = await self._geocode(checked)
            distance = await self._distance(destination)

            fee = fee_for_distance(self._tiers, distance)
            if fee is None:
                raise OutOfServiceAreaError(distance_miles=distance)
        except StorefrontError as e:
            logger.info("delivery rejected for %r: %s", address.zip_code, e)
            return DeliveryResolution.failed(e, strategy=self.strategy)

        logger.info("delivery ok for %r: %.1f mi, fee %s", checked.zip_code, distance, fee)
        return DeliveryResolution.ok(fee=fee, distance_miles=distance, strategy=self.strategy)

    async def _geocode(self, address: DeliveryAddress) -> Coordinates:
        # No coordinates means nothing to fall back on.
        try:
            return await self._provider.geocode(address.full())
        except ProviderUnavailableError:
            raise
        except Exception as e:
            raise ProviderUnavailableError(
                "Unable to find that address. Please check your input."
            ) from e

    async def _distance(self, destination: Coordinates) -> float:
        try:
            return await self._provider.driving_distance(self._store, destination)
        except Exception as e:
            logger.warning(
                "driving distance via %s failed (%s); using straight-line distance",
                self._provider.name,
                e,
            )

        try:
            return haversine_miles(self._store, destination)
        except (ValueError, OverflowError) as e:
            raise ProviderUnavailableError("Unable to calculate distance.") from e
