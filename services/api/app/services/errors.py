from __future__ import annotations


class StorefrontError(Exception):
    """Base class for cart, delivery and checkout errors."""


class ValidationError(StorefrontError):
    """Bad or missing input. Nothing was mutated."""


class InvalidBundleSpecError(StorefrontError):
    def __init__(self, bundle_id: str, bottle_count: int) -> None:
        super().__init__("Invalid bottle count for cleanse.")
        self.bundle_id = bundle_id
        self.bottle_count = bottle_count


class OutOfServiceAreaError(StorefrontError):
    def __init__(self, distance_miles: float | None = None, detail: str | None = None) -> None:
        super().__init__(detail or "Sorry, we don't deliver to your area.")
        self.distance_miles = distance_miles


class ProviderUnavailableError(StorefrontError):
    """Geocoding or routing provider failed."""


class PreconditionFailedError(StorefrontError):
    def __init__(self, gate: str, reason: str) -> None:
        super().__init__(reason)
        self.gate = gate
        self.reason = reason


class InFlightConflictError(StorefrontError):
    def __init__(self) -> None:
        super().__init__("Checkout already in progress...")


class CheckoutGatewayError(StorefrontError):
    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(f"Checkout failed: {detail}")
        self.detail = detail
        self.status_code = status_code


def error_kind(e: StorefrontError) -> str:
    """Stable name used in API payloads and failed delivery resolutions."""

    return {
        ValidationError: "ValidationError",
        InvalidBundleSpecError: "InvalidBundleSpec",
        OutOfServiceAreaError: "OutOfServiceArea",
        ProviderUnavailableError: "ProviderUnavailable",
        PreconditionFailedError: "PreconditionFailed",
        InFlightConflictError: "InFlightConflict",
        CheckoutGatewayError: "CheckoutGatewayError",
    }.get(type(e), "StorefrontError")
