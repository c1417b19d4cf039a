from __future__ import annotations

import os

from services.api.app.services.delivery_base import DeliveryResolver, GeoProvider
from services.api.app.services.delivery_geocode import GeocodeDeliveryResolver
from services.api.app.services.delivery_zip import ZipBucketDeliveryResolver
from services.api.app.services.geo_fake import FakeGeoProvider


def get_geo_provider() -> GeoProvider:
    provider = os.getenv("JUICE_GEO_PROVIDER", "fake").strip().lower()

    if provider == "fake":
        return FakeGeoProvider()

    if provider == "google":
        from services.api.app.services.geo_google import GoogleMapsGeoProvider

        api_key = os.getenv("JUICE_GOOGLE_MAPS_API_KEY", "").strip()
        if not api_key:
            raise ValueError("JUICE_GOOGLE_MAPS_API_KEY is required when JUICE_GEO_PROVIDER=google")

        timeout_s = float(os.getenv("JUICE_GEO_TIMEOUT_S", "10"))
        return GoogleMapsGeoProvider(api_key=api_key, timeout_s=timeout_s)

    raise ValueError(f"Unknown JUICE_GEO_PROVIDER={provider!r}. Expected fake or google.")


def get_delivery_resolver() -> DeliveryResolver:
    """Select the delivery strategy based on env vars.

    Defaults to the ZIP-bucket heuristic, which needs no geocoding provider. `fake` is the
    geocode strategy wired to the deterministic provider.
    """

    mode = os.getenv("JUICE_DELIVERY_MODE", "zip").strip().lower()

    if mode == "zip":
        return ZipBucketDeliveryResolver.from_env()

    if mode == "geocode":
        return GeocodeDeliveryResolver.from_env(get_geo_provider())

    if mode == "fake":
        return GeocodeDeliveryResolver.from_env(FakeGeoProvider())

    raise ValueError(f"Unknown JUICE_DELIVERY_MODE={mode!r}. Expected zip, geocode or fake.")
