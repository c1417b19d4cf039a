from __future__ import annotations

import logging
import threading
from decimal import Decimal

from pydantic import BaseModel, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from services.api.app.services.errors import InvalidBundleSpecError, ValidationError
from services.api.app.services.kv_store import KeyValueStore
from services.api.app.services.pricing import tier_unit_price

logger = logging.getLogger(__name__)

CART_STORAGE_KEY = "cart"


class LineItem(BaseModel):
    product_id: str
    display_name: str
    # Frozen per-bottle price for bundles; only a display hint for single bottles.
    unit_price: Decimal
    quantity: int = Field(..., ge=1)
    is_bundle: bool = False


class CartLine(BaseModel):
    product_id: str
    display_name: str
    quantity: int
    unit_price: Decimal
    line_total: Decimal
    is_bundle: bool


class CartTotals(BaseModel):
    lines: list[CartLine]
    subtotal: Decimal
    total_bottle_count: int
    single_bottle_count: int
    shared_unit_price: Decimal


_LINES_ADAPTER = TypeAdapter(list[LineItem])


def flavor_label(flavor: str) -> str:
    return " ".join(part.capitalize() for part in flavor.replace("-", " ").split())


class CartLedger:
    """Ordered, persisted collection of cart lines for one storefront session.

    Every mutation rewrites the whole ledger under a single key, so a crash leaves either
    the previous or the new ledger in the store, never a mix. The in-memory lines only
    change after the store accepted the write.
    """

    def __init__(self, store: KeyValueStore, key: str = CART_STORAGE_KEY) -> None:
        self._store = store
        self._key = key
        self._lock = threading.RLock()
        self._lines: list[LineItem] = self._load()
        self._selections: dict[str, int] = {}

    @property
    def key(self) -> str:
        return self._key

    @property
    def lines(self) -> list[LineItem]:
        return [line.model_copy() for line in self._lines]

    def __len__(self) -> int:
        return len(self._lines)

    def get(self, product_id: str) -> LineItem | None:
        line = self._find(product_id)
        return line.model_copy() if line is not None else None

    def select(self, product_id: str, change: int) -> int:
        """Move the pending quantity picker for a product, clamped at zero."""

        with self._lock:
            qty = max(0, self._selections.get(product_id, 0) + change)
            self._selections[product_id] = qty
            return qty

    def selected_quantity(self, product_id: str) -> int:
        return self._selections.get(product_id, 0)

    def add_unit(
        self,
        product_id: str,
        display_name: str,
        unit_price_hint: Decimal,
        quantity: int | None = None,
    ) -> LineItem:
        with self._lock:
            if quantity is None:
                quantity = self.selected_quantity(product_id)

            if quantity <= 0:
                raise ValidationError("Please select a quantity greater than 0.")

            existing = self._find(product_id)
            if existing is not None and existing.is_bundle:
                raise ValidationError(
                    f"{product_id!r} is already in the cart as a cleanse bundle."
                )

            if existing is not None:
                line = existing.model_copy(update={"quantity": existing.quantity + quantity})
            else:
                line = LineItem(
                    product_id=product_id,
                    display_name=display_name,
                    unit_price=Decimal(unit_price_hint),
                    quantity=quantity,
                    is_bundle=False,
                )

            self._commit(_with_line(self._lines, line))
            self._selections.pop(product_id, None)

        logger.info("cart %s: added %d x %s", self._key, quantity, product_id)
        return line.model_copy()

    def add_bundle(
        self,
        bundle_id: str,
        display_name: str,
        bottle_count: int,
        bundle_total_price: Decimal,
    ) -> LineItem:
        if bottle_count <= 0:
            raise InvalidBundleSpecError(bundle_id, bottle_count)

        with self._lock:
            existing = self._find(bundle_id)
            if existing is not None and not existing.is_bundle:
                raise ValidationError(
                    f"{bundle_id!r} is already in the cart as a single bottle."
                )

            if existing is not None:
                # The first add's per-bottle price stays locked in for this line.
                line = existing.model_copy(
                    update={"quantity": existing.quantity + bottle_count}
                )
            else:
                line = LineItem(
                    product_id=bundle_id,
                    display_name=display_name,
                    unit_price=Decimal(bundle_total_price) / bottle_count,
                    quantity=bottle_count,
                    is_bundle=True,
                )

            self._commit(_with_line(self._lines, line))

        logger.info("cart %s: added bundle %s (%d bottles)", self._key, bundle_id, bottle_count)
        return line.model_copy()

    def add_cleanse(
        self,
        cleanse_id: str,
        cleanse_name: str,
        bottle_count: int,
        bundle_total_price: Decimal,
        flavor: str = "refresher",
    ) -> LineItem:
        product_id = f"{cleanse_id}-{flavor}"
        display_name = f"{cleanse_name} – {flavor_label(flavor)}"
        return self.add_bundle(product_id, display_name, bottle_count, bundle_total_price)

    def adjust_quantity(self, product_id: str, delta: int) -> LineItem | None:
        with self._lock:
            line = self._find(product_id)
            if line is None:
                return None
            return self._apply_quantity(line, line.quantity + delta)

    def set_quantity(self, product_id: str, quantity: int) -> LineItem | None:
        with self._lock:
            line = self._find(product_id)
            if line is None:
                return None
            return self._apply_quantity(line, quantity)

    def remove(self, product_id: str) -> None:
        with self._lock:
            kept = [line for line in self._lines if line.product_id != product_id]
            if len(kept) == len(self._lines):
                return
            self._commit(kept)
        logger.info("cart %s: removed %s", self._key, product_id)

    def clear(self) -> None:
        with self._lock:
            self._store.delete(self._key)
            self._lines = []
            self._selections.clear()
        logger.info("cart %s: cleared", self._key)

    def compute_totals(self) -> CartTotals:
        single_count = sum(line.quantity for line in self._lines if not line.is_bundle)
        shared_unit_price = tier_unit_price(single_count)

        out: list[CartLine] = []
        for line in self._lines:
            unit_price = line.unit_price if line.is_bundle else shared_unit_price
            out.append(
                CartLine(
                    product_id=line.product_id,
                    display_name=line.display_name,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    line_total=unit_price * line.quantity,
                    is_bundle=line.is_bundle,
                )
            )

        return CartTotals(
            lines=out,
            subtotal=sum((line.line_total for line in out), Decimal("0")),
            total_bottle_count=sum(line.quantity for line in out),
            single_bottle_count=single_count,
            shared_unit_price=shared_unit_price,
        )

    def _apply_quantity(self, line: LineItem, quantity: int) -> LineItem | None:
        if quantity <= 0:
            self.remove(line.product_id)
            return None

        updated = line.model_copy(update={"quantity": quantity})
        self._commit(_with_line(self._lines, updated))
        return updated.model_copy()

    def _find(self, product_id: str) -> LineItem | None:
        for line in self._lines:
            if line.product_id == product_id:
                return line
        return None

    def _load(self) -> list[LineItem]:
        raw = self._store.get(self._key)
        if not raw:
            return []

        try:
            lines = _LINES_ADAPTER.validate_json(raw)
        except PydanticValidationError:
            logger.warning("cart %s: discarding unreadable persisted cart", self._key)
            return []

        # Collapse duplicate ids a hand-edited store could contain.
        merged: dict[str, LineItem] = {}
        for line in lines:
            if line.product_id in merged:
                merged[line.product_id].quantity += line.quantity
            else:
                merged[line.product_id] = line
        return list(merged.values())

    def _commit(self, lines: list[LineItem]) -> None:
        self._store.set(self._key, _LINES_ADAPTER.dump_json(lines).decode())
        self._lines = lines


def _with_line(lines: list[LineItem], line: LineItem) -> list[LineItem]:
    """Copy of `lines` with `line` in place of the entry sharing its id, else appended."""

    out = [line if old.product_id == line.product_id else old for old in lines]
    if not any(old.product_id == line.product_id for old in lines):
        out.append(line)
    return out
