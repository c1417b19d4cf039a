from __future__ import annotations

import asyncio
import json
import os
import urllib.error
import urllib.request

from packages.shared.schemas.checkout_v1 import (
    CheckoutSessionRequestV1,
    CheckoutSessionResponseV1,
)
from services.api.app.services.errors import CheckoutGatewayError


class HttpCheckoutGateway:
    """POSTs the checkout body to a session-creation endpoint.

    Env vars:
    - JUICE_CHECKOUT_ENDPOINT (required)
    - JUICE_CHECKOUT_TIMEOUT_S (default: 20)
    """

    name = "http"

    def __init__(self, *, endpoint: str, timeout_s: float = 20.0) -> None:
        self._endpoint = endpoint
        self._timeout_s = timeout_s

    @classmethod
    def from_env(cls) -> "HttpCheckoutGateway":
        endpoint = os.getenv("JUICE_CHECKOUT_ENDPOINT", "").strip()
        if not endpoint:
            raise ValueError("JUICE_CHECKOUT_ENDPOINT is required when JUICE_CHECKOUT_GATEWAY=http")
        return cls(
            endpoint=endpoint,
            timeout_s=float(os.getenv("JUICE_CHECKOUT_TIMEOUT_S", "20")),
        )

    async def create_session(self, request: CheckoutSessionRequestV1) -> str:
        return await asyncio.to_thread(self._post, request)

    def _post(self, request: CheckoutSessionRequestV1) -> str:
        body = request.model_dump_json().encode("utf-8")
        req = urllib.request.Request(self._endpoint, method="POST")
        req.add_header("Content-Type", "application/json")

        try:
            with urllib.request.urlopen(req, data=body, timeout=self._timeout_s) as resp:
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            raw = e.read().decode("utf-8", errors="replace")
            raise CheckoutGatewayError(_error_detail(raw, e.code), status_code=e.code) from e
        except (urllib.error.URLError, TimeoutError) as e:
            raise CheckoutGatewayError(f"checkout endpoint unreachable: {e}") from e

        try:
            parsed = CheckoutSessionResponseV1.model_validate(json.loads(raw))
        except ValueError as e:
            raise CheckoutGatewayError(f"unexpected response: {raw[:200]!r}") from e

        if not parsed.session_id:
            raise CheckoutGatewayError(parsed.error or "No session ID returned from server")
        return parsed.session_id


def _error_detail(raw: str, status: int) -> str:
    try:
        error = json.loads(raw).get("error")
    except (ValueError, AttributeError):
        error = None
    return f"Server error: {status} - {error or raw[:200]}"
