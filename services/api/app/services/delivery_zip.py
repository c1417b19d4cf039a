from __future__ import annotations

import logging
import os
from decimal import Decimal

from services.api.app.services.delivery_base import (
    DeliveryAddress,
    DeliveryResolution,
    check_address,
)
from services.api.app.services.errors import OutOfServiceAreaError, StorefrontError

logger = logging.getLogger(__name__)

STORE_ZIP = 30083
SERVICE_ZIP_RANGE = (30002, 30399)
MAX_DELIVERY_MILES = 35.0
FLAT_FEE = Decimal("7")

# (zip distance, estimated miles); linear in between, capped at MAX_DELIVERY_MILES.
_ZIP_DISTANCE_BREAKPOINTS: tuple[tuple[int, float], ...] = (
    (0, 0.0),
    (10, 5.0),
    (50, 15.0),
    (150, 30.0),
    (300, 35.0),
)


def estimate_miles(zip_delta: int, cap: float = MAX_DELIVERY_MILES) -> float:
    points = _ZIP_DISTANCE_BREAKPOINTS
    if zip_delta >= points[-1][0]:
        return min(points[-1][1], cap)

    for (x0, y0), (x1, y1) in zip(points, points[1:]):
        if zip_delta <= x1:
            return min(y0 + (y1 - y0) * (zip_delta - x0) / (x1 - x0), cap)

    raise AssertionError("unreachable")


class ZipBucketDeliveryResolver:
    """ZIP-range heuristic for deployments without a geocoding provider.

    Any ZIP inside the service range is deliverable at a flat fee; the distance is only
    an estimate for display.
    """

    strategy = "zip"

    def __init__(
        self,
        *,
        store_zip: int = STORE_ZIP,
        zip_range: tuple[int, int] = SERVICE_ZIP_RANGE,
        max_miles: float = MAX_DELIVERY_MILES,
        flat_fee: Decimal = FLAT_FEE,
    ) -> None:
        low, high = zip_range
        if low > high:
            raise ValueError("ZIP range lower bound must not exceed upper bound")
        self._store_zip = store_zip
        self._range = (low, high)
        self._max_miles = max_miles
        self._fee = flat_fee

    @classmethod
    def from_env(cls) -> "ZipBucketDeliveryResolver":
        return cls(
            store_zip=int(os.getenv("JUICE_STORE_ZIP", str(STORE_ZIP))),
            zip_range=(
                int(os.getenv("JUICE_ZIP_MIN", str(SERVICE_ZIP_RANGE[0]))),
                int(os.getenv("JUICE_ZIP_MAX", str(SERVICE_ZIP_RANGE[1]))),
            ),
            flat_fee=Decimal(os.getenv("JUICE_FLAT_DELIVERY_FEE", str(FLAT_FEE))),
        )

    async def resolve(self, address: DeliveryAddress) -> DeliveryResolution:
        try:
            checked = check_address(address)
            zip5 = int(checked.zip_code[:5])

            low, high = self._range
            if not low <= zip5 <= high:
                raise OutOfServiceAreaError()

            distance = estimate_miles(abs(zip5 - self._store_zip), self._max_miles)
        except StorefrontError as e:
            logger.info("delivery rejected for %r: %s", address.zip_code, e)
            return DeliveryResolution.failed(e, strategy=self.strategy)

        return DeliveryResolution.ok(fee=self._fee, distance_miles=distance, strategy=self.strategy)
