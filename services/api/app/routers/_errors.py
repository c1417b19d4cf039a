from __future__ import annotations

from fastapi import HTTPException
from services.api.app.services.errors import (
    CheckoutGatewayError,
    InFlightConflictError,
    InvalidBundleSpecError,
    OutOfServiceAreaError,
    PreconditionFailedError,
    ProviderUnavailableError,
    StorefrontError,
    ValidationError,
    error_kind,
)


def raise_storefront_http_error(e: Exception) -> None:
    if isinstance(e, PreconditionFailedError):
        raise HTTPException(
            status_code=412,
            detail={"kind": error_kind(e), "gate": e.gate, "message": e.reason},
        ) from e

    if isinstance(e, StorefrontError):
        detail = {"kind": error_kind(e), "message": str(e)}
        raise HTTPException(status_code=_status_for(e), detail=detail) from e

    raise HTTPException(status_code=500, detail="Internal Server Error") from e


def _status_for(e: StorefrontError) -> int:
    if isinstance(e, InFlightConflictError):
        return 409
    if isinstance(e, (ValidationError, InvalidBundleSpecError, OutOfServiceAreaError)):
        return 422
    if isinstance(e, (ProviderUnavailableError, CheckoutGatewayError)):
        return 502
    return 400
