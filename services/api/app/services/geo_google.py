from __future__ import annotations

import asyncio
import json
import urllib.error
import urllib.parse
import urllib.request

from services.api.app.services.delivery_base import Coordinates
from services.api.app.services.errors import ProviderUnavailableError

METERS_PER_MILE = 1609.344

_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
_DISTANCE_MATRIX_URL = "https://maps.googleapis.com/maps/api/distancematrix/json"


class GoogleMapsGeoProvider:
    """Google Geocoding + Distance Matrix over plain HTTPS.

    Blocking urllib calls run in a worker thread so the event loop stays free.
    """

    name = "google"

    def __init__(self, *, api_key: str, timeout_s: float = 10.0) -> None:
        self._api_key = api_key
        self._timeout_s = timeout_s

    async def geocode(self, address: str) -> Coordinates:
        payload = await asyncio.to_thread(self._get_json, _GEOCODE_URL, {"address": address})

        if payload.get("status") != "OK" or not payload.get("results"):
            raise ProviderUnavailableError("Unable to find that address. Please check your input.")

        try:
            loc = payload["results"][0]["geometry"]["location"]
            return Coordinates(lat=float(loc["lat"]), lng=float(loc["lng"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ProviderUnavailableError(f"Unexpected geocode response shape: {payload!r}") from e

    async def driving_distance(self, origin: Coordinates, destination: Coordinates) -> float:
        params = {
            "origins": f"{origin.lat},{origin.lng}",
            "destinations": f"{destination.lat},{destination.lng}",
            "mode": "driving",
            "units": "imperial",
        }
        payload = await asyncio.to_thread(self._get_json, _DISTANCE_MATRIX_URL, params)

        try:
            element = payload["rows"][0]["elements"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise ProviderUnavailableError("No route found.") from e

        if payload.get("status") != "OK" or element.get("status") != "OK":
            raise ProviderUnavailableError("No route found.")

        return float(element["distance"]["value"]) / METERS_PER_MILE

    def _get_json(self, url: str, params: dict[str, str]) -> dict:
        query = urllib.parse.urlencode({**params, "key": self._api_key})
        req = urllib.request.Request(f"{url}?{query}", method="GET")

        try:
            with urllib.request.urlopen(req, timeout=self._timeout_s) as resp:
                return json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as e:
            raise ProviderUnavailableError(f"Maps HTTP {e.code}") from e
        except (urllib.error.URLError, TimeoutError, json.JSONDecodeError) as e:
            raise ProviderUnavailableError(f"Maps service unreachable: {e}") from e
