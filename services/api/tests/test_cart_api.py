from __future__ import annotations

from decimal import Decimal
from pathlib import Path

import pytest
from fastapi.testclient import TestClient


@pytest.fixture()
def client(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> TestClient:
    db_path = tmp_path / "juice_cart.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")
    monkeypatch.setenv("JUICE_DB_AUTO_CREATE", "true")
    monkeypatch.setenv("JUICE_DELIVERY_MODE", "zip")
    monkeypatch.setenv("JUICE_CHECKOUT_GATEWAY", "mock")

    from services.api.app.main import app

    with TestClient(app) as c:
        yield c


def _new_session(client: TestClient) -> str:
    resp = client.post("/v1/sessions")
    assert resp.status_code == 200
    return resp.json()["session_id"]


def test_health(client: TestClient) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_pricing_tiers_and_quote(client: TestClient) -> None:
    tiers = client.get("/v1/pricing/tiers").json()
    assert [t["max_bottles"] for t in tiers] == [5, 11, None]
    assert [Decimal(t["unit_price"]) for t in tiers] == [
        Decimal("7.99"),
        Decimal("7.75"),
        Decimal("7.50"),
    ]

    q = client.get("/v1/pricing/quote", params={"quantity": 2, "cart_bottles": 4}).json()
    assert q["total_bottles"] == 6
    assert Decimal(q["price_per_bottle"]) == Decimal("7.75")
    assert Decimal(q["total_price"]) == Decimal("15.50")

    assert client.get("/v1/pricing/quote", params={"quantity": -1}).status_code == 422


def test_add_items_share_the_tier_price(client: TestClient) -> None:
    sid = _new_session(client)

    client.post(
        f"/v1/sessions/{sid}/cart/items",
        json={"product_id": "refresher", "name": "Refresher", "quantity": 3},
    )
    resp = client.post(
        f"/v1/sessions/{sid}/cart/items",
        json={"product_id": "reboot", "name": "Reboot", "quantity": 3},
    )
    assert resp.status_code == 200

    cart = resp.json()
    totals = cart["totals"]
    assert totals["total_bottle_count"] == 6
    assert Decimal(totals["shared_unit_price"]) == Decimal("7.75")
    assert Decimal(totals["subtotal"]) == Decimal("46.50")
    assert [Decimal(line["unit_price"]) for line in totals["lines"]] == [Decimal("7.75")] * 2
    assert cart["meets_minimum_order"] is True
    assert Decimal(cart["delivery_fee"]) == 0


def test_selection_feeds_add_without_quantity(client: TestClient) -> None:
    sid = _new_session(client)

    client.post(f"/v1/sessions/{sid}/selections/refresher", json={"change": 1})
    sel = client.post(f"/v1/sessions/{sid}/selections/refresher", json={"change": 1}).json()
    assert sel == {"product_id": "refresher", "quantity": 2}

    cart = client.post(
        f"/v1/sessions/{sid}/cart/items",
        json={"product_id": "refresher", "name": "Refresher"},
    ).json()
    assert cart["totals"]["lines"][0]["quantity"] == 2

    notices = client.get(f"/v1/sessions/{sid}/notifications").json()
    assert notices == [{"level": "success", "message": "2 × Refresher added to cart!"}]
    assert client.get(f"/v1/sessions/{sid}/notifications").json() == []


def test_zero_quantity_is_rejected(client: TestClient) -> None:
    sid = _new_session(client)

    resp = client.post(
        f"/v1/sessions/{sid}/cart/items",
        json={"product_id": "refresher", "name": "Refresher", "quantity": 0},
    )

    assert resp.status_code == 422
    assert resp.json()["detail"] == {
        "kind": "ValidationError",
        "message": "Please select a quantity greater than 0.",
    }


def test_cleanse_bundle_and_invalid_bottle_count(client: TestClient) -> None:
    sid = _new_session(client)

    cart = client.post(
        f"/v1/sessions/{sid}/cart/cleanses",
        json={
            "cleanse_id": "3-day",
            "name": "3-Day Cleanse",
            "flavor": "reboot",
            "bottle_count": 3,
            "bundle_price": "35.00",
        },
    ).json()
    line = cart["totals"]["lines"][0]
    assert line["product_id"] == "3-day-reboot"
    assert line["display_name"] == "3-Day Cleanse – Reboot"
    assert line["is_bundle"] is True
    assert cart["totals"]["single_bottle_count"] == 0
    assert line["unit_price"] == "11.67"
    assert line["line_total"] == "35.00"
    assert cart["totals"]["subtotal"] == "35.00"

    bad = client.post(
        f"/v1/sessions/{sid}/cart/cleanses",
        json={"cleanse_id": "bad", "name": "Bad", "bottle_count": 0, "bundle_price": "10"},
    )
    assert bad.status_code == 422
    assert bad.json()["detail"]["kind"] == "InvalidBundleSpec"


def test_adjust_set_remove_and_clear(client: TestClient) -> None:
    sid = _new_session(client)
    client.post(
        f"/v1/sessions/{sid}/cart/items",
        json={"product_id": "refresher", "name": "Refresher", "quantity": 2},
    )
    client.post(
        f"/v1/sessions/{sid}/cart/items",
        json={"product_id": "reboot", "name": "Reboot", "quantity": 2},
    )

    cart = client.post(
        f"/v1/sessions/{sid}/cart/items/refresher/adjust", json={"delta": 3}
    ).json()
    assert cart["totals"]["lines"][0]["quantity"] == 5

    cart = client.post(
        f"/v1/sessions/{sid}/cart/items/refresher/adjust", json={"delta": -5}
    ).json()
    assert [line["product_id"] for line in cart["totals"]["lines"]] == ["reboot"]

    cart = client.put(f"/v1/sessions/{sid}/cart/items/reboot", json={"quantity": 7}).json()
    assert cart["totals"]["total_bottle_count"] == 7

    cart = client.delete(f"/v1/sessions/{sid}/cart/items/reboot").json()
    assert cart["totals"]["lines"] == []
    assert client.delete(f"/v1/sessions/{sid}/cart/items/reboot").status_code == 200

    client.post(
        f"/v1/sessions/{sid}/cart/items",
        json={"product_id": "reboot", "name": "Reboot", "quantity": 1},
    )
    cart = client.delete(f"/v1/sessions/{sid}/cart").json()
    assert cart["totals"]["total_bottle_count"] == 0
    assert Decimal(cart["total"]) == 0


def test_cart_events_are_recorded(client: TestClient) -> None:
    sid = _new_session(client)
    client.post(
        f"/v1/sessions/{sid}/cart/items",
        json={"product_id": "refresher", "name": "Refresher", "quantity": 2},
    )
    client.delete(f"/v1/sessions/{sid}/cart")

    events = client.get(f"/v1/sessions/{sid}/events").json()

    assert {e["event_type"] for e in events} == {"CART_UPDATED", "CART_CLEARED"}
    updated = next(e for e in events if e["event_type"] == "CART_UPDATED")
    assert updated["entity_type"] == "Cart"
    assert updated["entity_id"] == f"cart:{sid}"
    assert updated["payload"] == {"action": "add_unit", "product_id": "refresher", "quantity": 2}
