from __future__ import annotations

from typing import Protocol

from packages.shared.schemas.checkout_v1 import CheckoutSessionRequestV1


class CheckoutGateway(Protocol):
    """Hands a finished checkout body to the payment processor and returns its session id.

    Implementations raise CheckoutGatewayError on any transport or processor failure.
    """

    name: str

    async def create_session(self, request: CheckoutSessionRequestV1) -> str: ...
