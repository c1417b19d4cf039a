from __future__ import annotations

import asyncio
from uuid import uuid4

from packages.shared.schemas.checkout_v1 import CheckoutSessionRequestV1


class MockCheckoutGateway:
    name = "mock"

    def __init__(self, *, delay_s: float = 0.0) -> None:
        self._delay_s = delay_s
        self.requests: list[CheckoutSessionRequestV1] = []

    async def create_session(self, request: CheckoutSessionRequestV1) -> str:
        self.requests.append(request)
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        return f"cs_test_{uuid4().hex[:24]}"
