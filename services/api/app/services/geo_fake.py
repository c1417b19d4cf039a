from __future__ import annotations

from services.api.app.services.delivery_base import Coordinates
from services.api.app.services.errors import ProviderUnavailableError


class FakeGeoProvider:
    """Deterministic provider for tests and local dev.

    Every address geocodes to `coords` and every route is `driving_miles` long. Set
    `route_available=False` to exercise the straight-line fallback, or
    `known_addresses` to make unknown addresses fail to geocode.
    """

    name = "fake"

    def __init__(
        self,
        *,
        driving_miles: float = 10.0,
        coords: Coordinates = Coordinates(lat=33.80, lng=-84.17),
        route_available: bool = True,
        known_addresses: dict[str, Coordinates] | None = None,
    ) -> None:
        self._driving_miles = driving_miles
        self._coords = coords
        self._route_available = route_available
        self._known = known_addresses
        self.calls: list[str] = []

    async def geocode(self, address: str) -> Coordinates:
        self.calls.append(f"geocode:{address}")
        if self._known is None:
            return self._coords
        try:
            return self._known[address]
        except KeyError:
            raise ProviderUnavailableError(
                "Unable to find that address. Please check your input."
            ) from None

    async def driving_distance(self, origin: Coordinates, destination: Coordinates) -> float:
        del origin
        self.calls.append(f"distance:{destination.lat},{destination.lng}")
        if not self._route_available:
            raise ProviderUnavailableError("No route found.")
        return self._driving_miles
