from __future__ import annotations

import logging
import os
import threading
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

from packages.shared.schemas.checkout_v1 import CheckoutSessionRequestV1
from services.api.app.services.checkout import (
    CheckoutLineItem,
    build_line_items,
    build_session_request,
)
from services.api.app.services.delivery_base import (
    DeliveryAddress,
    DeliveryResolution,
    DeliveryResolver,
    DeliveryTracker,
)
from services.api.app.services.delivery_factory import get_delivery_resolver
from services.api.app.services.errors import InFlightConflictError, StorefrontError
from services.api.app.services.kv_store import KeyValueStore, SqlKeyValueStore
from services.api.app.services.ledger import CartLedger, LineItem
from services.api.app.services.payment_base import CheckoutGateway
from services.api.app.services.payment_factory import get_checkout_gateway
from services.api.app.services.validator import CustomerInfo, Readiness, evaluate_readiness

logger = logging.getLogger(__name__)

DEFAULT_SITE_NAME = "JuicE Drinks"


@dataclass(frozen=True, slots=True)
class Notice:
    level: str
    message: str


class Notifier:
    """The single channel through which a session reports outcomes to the customer."""

    def __init__(self, maxlen: int = 50) -> None:
        self._notices: deque[Notice] = deque(maxlen=maxlen)

    def notify(self, message: str, level: str = "info") -> None:
        if level not in {"success", "error", "info"}:
            level = "info"
        self._notices.append(Notice(level=level, message=message))

    def success(self, message: str) -> None:
        self.notify(message, "success")

    def error(self, message: str) -> None:
        self.notify(message, "error")

    def info(self, message: str) -> None:
        self.notify(message, "info")

    def drain(self) -> list[Notice]:
        out = list(self._notices)
        self._notices.clear()
        return out


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    payment_session_id: str
    line_items: list[CheckoutLineItem]
    request: CheckoutSessionRequestV1
    cart_cleared: bool


def format_money(amount: Decimal) -> str:
    return f"${amount:.2f}"


class StorefrontSession:
    """One customer's cart, contact details and delivery state.

    All work happens on a single event loop. The only awaits are the delivery resolver
    and the checkout gateway, and state is re-read after each of them.
    """

    def __init__(
        self,
        session_id: str,
        *,
        ledger: CartLedger,
        resolver: DeliveryResolver,
        gateway: CheckoutGateway,
        site: str = DEFAULT_SITE_NAME,
    ) -> None:
        self.session_id = session_id
        self.ledger = ledger
        self.resolver = resolver
        self.gateway = gateway
        self.site = site
        self.customer = CustomerInfo()
        self.delivery = DeliveryTracker()
        self.notifier = Notifier()
        self._checkout_in_flight = False

    @property
    def checkout_in_flight(self) -> bool:
        return self._checkout_in_flight

    def add_unit(
        self,
        product_id: str,
        display_name: str,
        unit_price_hint: Decimal,
        quantity: int | None = None,
    ) -> LineItem:
        added = quantity if quantity is not None else self.ledger.selected_quantity(product_id)
        line = self._report(
            lambda: self.ledger.add_unit(product_id, display_name, unit_price_hint, quantity)
        )
        self.notifier.success(f"{added} × {display_name} added to cart!")
        return line

    def add_cleanse(
        self,
        cleanse_id: str,
        cleanse_name: str,
        bottle_count: int,
        bundle_total_price: Decimal,
        flavor: str = "refresher",
    ) -> LineItem:
        line = self._report(
            lambda: self.ledger.add_cleanse(
                cleanse_id, cleanse_name, bottle_count, bundle_total_price, flavor
            )
        )
        self.notifier.success(f"{line.display_name} added to cart!")
        return line

    def update_customer(self, customer: CustomerInfo) -> bool:
        """Store contact details. Returns True when the delivery address changed."""

        self.customer = customer.stripped()
        changed = self.delivery.update_address(self._address())
        if changed:
            logger.info("session %s: delivery address changed, validation reset", self.session_id)
        return changed

    async def validate_delivery(self) -> DeliveryResolution:
        ticket = self.delivery.begin(self._address())
        resolution = await self.resolver.resolve(self._address())

        if not self.delivery.complete(ticket, resolution):
            self.notifier.info("Your address changed during validation. Please validate again.")
            return self.delivery.resolution

        if resolution.validated:
            fee = "Free" if resolution.fee_amount == 0 else format_money(resolution.fee_amount)
            self.notifier.success(f"Delivery available! Fee: {fee}")
        else:
            self.notifier.error(f"Delivery validation failed: {resolution.failure_reason}")
        return resolution

    def readiness(self) -> Readiness:
        return evaluate_readiness(
            self.ledger.compute_totals(),
            self.customer,
            self.delivery.resolution,
        )

    async def checkout(self) -> CheckoutResult:
        if self._checkout_in_flight:
            e = InFlightConflictError()
            self.notifier.info(str(e))
            raise e

        self._checkout_in_flight = True
        try:
            totals = self.ledger.compute_totals()
            readiness = evaluate_readiness(totals, self.customer, self.delivery.resolution)
            line_items = build_line_items(totals, self.delivery.resolution, readiness)
            request = build_session_request(
                line_items,
                customer_email=self.customer.email,
                site=self.site,
            )

            payment_session_id = await self.gateway.create_session(request)

            # Only drop the cart if it is still the one that was just charged.
            cleared = self.ledger.compute_totals() == totals
            if cleared:
                self.ledger.clear()
                self.delivery.invalidate()
            else:
                self.notifier.info("Your cart changed while checking out; it was kept.")
        except StorefrontError as e:
            self.notifier.error(str(e))
            raise
        finally:
            self._checkout_in_flight = False

        logger.info(
            "session %s: checkout session %s created via %s",
            self.session_id,
            payment_session_id,
            self.gateway.name,
        )
        self.notifier.success("Order submitted! Redirecting to payment...")
        return CheckoutResult(
            payment_session_id=payment_session_id,
            line_items=line_items,
            request=request,
            cart_cleared=cleared,
        )

    def _address(self) -> DeliveryAddress:
        return DeliveryAddress(
            street=self.customer.street,
            city=self.customer.city,
            zip_code=self.customer.zip_code,
        )

    def _report(self, action: Callable[[], LineItem]) -> LineItem:
        try:
            return action()
        except StorefrontError as e:
            self.notifier.error(str(e))
            raise


class SessionRegistry:
    """In-process map of live storefront sessions.

    Carts outlive the process through the key-value store; delivery and contact state
    do not.
    """

    def __init__(self, store_factory: Callable[[], KeyValueStore] = SqlKeyValueStore) -> None:
        self._store_factory = store_factory
        self._sessions: dict[str, StorefrontSession] = {}
        self._lock = threading.Lock()

    def create(self) -> StorefrontSession:
        return self.get_or_create(uuid4().hex)

    def get_or_create(self, session_id: str) -> StorefrontSession:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None:
                return session

            session = StorefrontSession(
                session_id,
                ledger=CartLedger(self._store_factory(), key=f"cart:{session_id}"),
                resolver=get_delivery_resolver(),
                gateway=get_checkout_gateway(),
                site=os.getenv("JUICE_SITE_NAME", DEFAULT_SITE_NAME),
            )
            self._sessions[session_id] = session
            return session


registry = SessionRegistry()
