from __future__ import annotations

import os

from services.api.app.services.payment_base import CheckoutGateway
from services.api.app.services.payment_mock import MockCheckoutGateway


def get_checkout_gateway() -> CheckoutGateway:
    """Select the checkout gateway based on env vars.

    Defaults to the mock gateway so tests and local dev never reach a payment processor.
    """

    mode = os.getenv("JUICE_CHECKOUT_GATEWAY", "mock").strip().lower()

    if mode == "mock":
        return MockCheckoutGateway()

    if mode == "http":
        from services.api.app.services.payment_http import HttpCheckoutGateway

        return HttpCheckoutGateway.from_env()

    raise ValueError(f"Unknown JUICE_CHECKOUT_GATEWAY={mode!r}. Expected mock or http.")
