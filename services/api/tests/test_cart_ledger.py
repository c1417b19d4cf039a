from decimal import Decimal

import pytest
from services.api.app.services.errors import InvalidBundleSpecError, ValidationError
from services.api.app.services.kv_store import InMemoryKeyValueStore
from services.api.app.services.ledger import CartLedger


@pytest.fixture()
def store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture()
def ledger(store: InMemoryKeyValueStore) -> CartLedger:
    return CartLedger(store, key="cart:test")


def test_shared_tier_applies_across_products(ledger: CartLedger) -> None:
    ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 3)
    ledger.add_unit("reboot", "Reboot", Decimal("7.99"), 3)

    totals = ledger.compute_totals()

    assert totals.single_bottle_count == 6
    assert totals.shared_unit_price == Decimal("7.75")
    assert totals.subtotal == Decimal("46.50")
    assert [line.line_total for line in totals.lines] == [Decimal("23.25"), Decimal("23.25")]


def test_adding_same_product_sums_quantity(ledger: CartLedger) -> None:
    ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 2)
    ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 3)

    assert len(ledger) == 1
    assert ledger.get("refresher").quantity == 5


def test_add_unit_rejects_zero_quantity_without_mutation(
    ledger: CartLedger, store: InMemoryKeyValueStore
) -> None:
    with pytest.raises(ValidationError, match="greater than 0"):
        ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 0)

    assert len(ledger) == 0
    assert store.get("cart:test") is None


def test_add_unit_falls_back_to_pending_selection(ledger: CartLedger) -> None:
    with pytest.raises(ValidationError):
        ledger.add_unit("reboot", "Reboot", Decimal("7.99"))

    ledger.select("reboot", 1)
    ledger.select("reboot", 1)
    assert ledger.select("reboot", -5) == 0
    ledger.select("reboot", 2)

    line = ledger.add_unit("reboot", "Reboot", Decimal("7.99"))

    assert line.quantity == 2
    assert ledger.selected_quantity("reboot") == 0


def test_bundle_price_is_frozen_and_outside_tier(ledger: CartLedger) -> None:
    bundle = ledger.add_bundle("5-day-refresher", "5-Day Cleanse", 5, Decimal("35.00"))

    assert bundle.unit_price == Decimal("7")
    assert bundle.quantity == 5
    assert bundle.is_bundle

    ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 20)
    totals = ledger.compute_totals()

    assert totals.shared_unit_price == Decimal("7.50")
    by_id = {line.product_id: line for line in totals.lines}
    assert by_id["5-day-refresher"].line_total == Decimal("35.00")
    assert by_id["refresher"].line_total == Decimal("150.00")
    assert totals.total_bottle_count == 25
    assert totals.single_bottle_count == 20


def test_bundle_bottles_do_not_lower_single_tier(ledger: CartLedger) -> None:
    ledger.add_bundle("7-day-reboot", "7-Day Cleanse", 21, Decimal("140"))
    ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 2)

    assert ledger.compute_totals().shared_unit_price == Decimal("7.99")


def test_bundle_readd_keeps_first_unit_price(ledger: CartLedger) -> None:
    # Re-adding a bundle id locks in the first add's per-bottle price, even when the
    # later call carries a different price/bottle ratio.
    ledger.add_bundle("3-day-refresher", "3-Day Cleanse", 3, Decimal("30.00"))
    ledger.add_bundle("3-day-refresher", "3-Day Cleanse", 3, Decimal("24.00"))

    line = ledger.get("3-day-refresher")
    assert line.quantity == 6
    assert line.unit_price == Decimal("10")
    assert ledger.compute_totals().subtotal == Decimal("60")


@pytest.mark.parametrize("bottles", [0, -3])
def test_invalid_bundle_rejected(ledger: CartLedger, bottles: int) -> None:
    with pytest.raises(InvalidBundleSpecError):
        ledger.add_bundle("1-day-reboot", "1-Day Cleanse", bottles, Decimal("20"))

    assert len(ledger) == 0


def test_cleanse_flavors_are_distinct_lines(ledger: CartLedger) -> None:
    ledger.add_cleanse("2-day", "2-Day Cleanse", 6, Decimal("45"), flavor="refresher")
    ledger.add_cleanse("2-day", "2-Day Cleanse", 6, Decimal("45"), flavor="island-zing")

    names = [line.display_name for line in ledger.lines]
    assert names == ["2-Day Cleanse – Refresher", "2-Day Cleanse – Island Zing"]
    assert ledger.get("2-day-island-zing") is not None


def test_bundle_and_single_cannot_share_an_id(ledger: CartLedger) -> None:
    ledger.add_bundle("combo", "Combo", 4, Decimal("28"))

    with pytest.raises(ValidationError):
        ledger.add_unit("combo", "Combo", Decimal("7.99"), 1)


def test_adjust_to_zero_removes_line(ledger: CartLedger) -> None:
    ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 3)
    ledger.add_unit("reboot", "Reboot", Decimal("7.99"), 1)

    assert ledger.adjust_quantity("refresher", -3) is None

    assert len(ledger) == 1
    assert ledger.get("refresher") is None


def test_adjust_below_zero_removes_line(ledger: CartLedger) -> None:
    ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 2)
    ledger.adjust_quantity("refresher", -10)

    assert ledger.get("refresher") is None


def test_adjust_and_set_quantity(ledger: CartLedger) -> None:
    ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 2)

    assert ledger.adjust_quantity("refresher", 3).quantity == 5
    assert ledger.set_quantity("refresher", 9).quantity == 9
    assert ledger.set_quantity("refresher", 0) is None
    assert len(ledger) == 0


def test_adjust_unknown_product_is_noop(ledger: CartLedger) -> None:
    assert ledger.adjust_quantity("missing", 1) is None
    assert len(ledger) == 0


def test_remove_is_idempotent(ledger: CartLedger) -> None:
    ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 2)

    ledger.remove("refresher")
    ledger.remove("refresher")
    ledger.remove("never-added")

    assert len(ledger) == 0


def test_insertion_order_preserved(ledger: CartLedger) -> None:
    ledger.add_unit("b", "B", Decimal("7.99"), 1)
    ledger.add_unit("a", "A", Decimal("7.99"), 1)
    ledger.add_unit("b", "B", Decimal("7.99"), 1)

    assert [line.product_id for line in ledger.lines] == ["b", "a"]


def test_ledger_persists_and_restores(store: InMemoryKeyValueStore) -> None:
    first = CartLedger(store, key="cart:s1")
    first.add_unit("refresher", "Refresher", Decimal("7.99"), 4)
    first.add_bundle("3-day-reboot", "3-Day Cleanse – Reboot", 3, Decimal("35.00"))

    restored = CartLedger(store, key="cart:s1")

    assert restored.compute_totals() == first.compute_totals()
    assert restored.get("3-day-reboot").unit_price == Decimal("35.00") / 3


def test_clear_removes_persisted_key(store: InMemoryKeyValueStore) -> None:
    ledger = CartLedger(store, key="cart:s2")
    ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 4)

    ledger.clear()

    assert len(ledger) == 0
    assert store.get("cart:s2") is None
    assert len(CartLedger(store, key="cart:s2")) == 0


def test_unreadable_persisted_cart_starts_empty(store: InMemoryKeyValueStore) -> None:
    store.set("cart:bad", "{not json")

    assert len(CartLedger(store, key="cart:bad")) == 0


def test_empty_cart_totals(ledger: CartLedger) -> None:
    totals = ledger.compute_totals()

    assert totals.lines == []
    assert totals.subtotal == Decimal("0")
    assert totals.total_bottle_count == 0
    assert totals.shared_unit_price == Decimal("7.99")


class FlakyStore(InMemoryKeyValueStore):
    def __init__(self) -> None:
        super().__init__()
        self.failing = False

    def set(self, key: str, value: str) -> None:
        if self.failing:
            raise RuntimeError("store unavailable")
        super().set(key, value)


def test_failed_write_leaves_memory_matching_the_store() -> None:
    store = FlakyStore()
    ledger = CartLedger(store, key="cart:flaky")
    ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 2)
    ledger.add_cleanse("3-day", "3-Day Cleanse", 3, Decimal("35.00"))
    ledger.select("reboot", 2)
    before = ledger.lines

    store.failing = True
    with pytest.raises(RuntimeError):
        ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 3)
    with pytest.raises(RuntimeError):
        ledger.add_unit("reboot", "Reboot", Decimal("7.99"))
    with pytest.raises(RuntimeError):
        ledger.add_cleanse("3-day", "3-Day Cleanse", 3, Decimal("35.00"))
    with pytest.raises(RuntimeError):
        ledger.adjust_quantity("refresher", 1)
    with pytest.raises(RuntimeError):
        ledger.set_quantity("refresher", 0)
    with pytest.raises(RuntimeError):
        ledger.remove("3-day-refresher")

    assert ledger.lines == before
    assert ledger.get("refresher").quantity == 2
    assert ledger.selected_quantity("reboot") == 2
    assert CartLedger(store, key="cart:flaky").lines == before

    store.failing = False
    ledger.add_unit("refresher", "Refresher", Decimal("7.99"), 3)
    assert CartLedger(store, key="cart:flaky").get("refresher").quantity == 5
