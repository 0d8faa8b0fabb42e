from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from services.checkout.app.services.store import get_runtime
from services.checkout.tests.factories import DETAILS_PAYLOAD

ORDER_LINE = {"id": "12", "name": "Desk Lamp", "unit_price": "15000", "quantity": 3}
PREORDER_LINE = {
    "id": "preorder-7",
    "name": "Solar Kit",
    "unit_price": "50000",
    "quantity": 2,
    "preorder": {"pre_order_id": "7", "deposit_amount": "10000"},
}


def _cart(client: TestClient, *lines: dict) -> str:
    cart_id = client.post("/v1/carts").json()["cart_id"]
    for line in lines:
        r = client.post(f"/v1/carts/{cart_id}/lines", json=line)
        assert r.status_code == 200, r.text
    return cart_id


def _checkout(client: TestClient, *lines: dict) -> str:
    cart_id = _cart(client, *lines)
    r = client.post("/v1/checkouts", json={"cart_id": cart_id})
    assert r.status_code == 200, r.text
    return r.json()["checkout_id"]


def test_health(client: TestClient) -> None:
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok"}


def test_cart_totals(client: TestClient) -> None:
    cart_id = _cart(client, ORDER_LINE, {**ORDER_LINE, "quantity": 1})

    cart = client.get(f"/v1/carts/{cart_id}").json()
    assert cart["cart_count"] == 4
    assert Decimal(cart["cart_total"]) == Decimal("60000")

    r = client.patch(f"/v1/carts/{cart_id}/lines/12", json={"quantity": 0})
    assert r.status_code == 200
    assert r.json()["lines"] == []
    assert Decimal(r.json()["cart_total"]) == 0


def test_preorder_line_needs_preorder_details(client: TestClient) -> None:
    cart_id = _cart(client)
    payload = {k: v for k, v in PREORDER_LINE.items() if k != "preorder"}

    r = client.post(f"/v1/carts/{cart_id}/lines", json=payload)

    assert r.status_code == 422
    assert r.json()["detail"]["fields"] == ["preorder"]


def test_order_checkout_end_to_end(client: TestClient) -> None:
    checkout_id = _checkout(client, ORDER_LINE)

    r = client.post(f"/v1/checkouts/{checkout_id}/details", json=DETAILS_PAYLOAD)
    assert r.status_code == 200, r.text
    assert r.json()["state"] == "FULFILLMENT_SELECTED"

    r = client.post(f"/v1/checkouts/{checkout_id}/session")
    assert r.status_code == 200, r.text
    opened = r.json()
    assert opened["state"] == "GATEWAY_OPEN"
    assert opened["submitting"] is True
    assert opened["widget"]["amount"] == 4_500_000
    assert opened["widget"]["publicKey"] == "pk_test_mock"
    assert opened["widget"]["email"] == "ada@example.com"
    reference = opened["session"]["reference"]

    r = client.post(f"/v1/checkouts/{checkout_id}/gateway/success", json={})
    assert r.status_code == 200, r.text
    settled = r.json()
    assert settled["state"] == "SETTLED"
    assert settled["submitting"] is False
    assert settled["widget"] is None
    assert settled["result"]["identifier"] == "ORD-00001"
    assert settled["result"]["confirmation_path"] == "/order-confirmation/ORD-00001"

    cart = client.get(f"/v1/carts/{settled['cart_id']}").json()
    assert cart["lines"] == []

    page = client.get("/v1/confirmation/orders/ord-00001")
    assert page.status_code == 200
    assert page.json()["view"]["is_fully_paid"] is True

    attempts = client.get("/v1/attempts", params={"email": "ADA@example.com"}).json()
    assert [a["reference"] for a in attempts] == [reference]
    assert attempts[0]["status"] == "confirmed"

    detail = client.get(f"/v1/attempts/{reference}")
    assert detail.status_code == 200
    assert detail.json()["settled_identifier"] == "ORD-00001"
    assert len(detail.json()["events"]) == 4


def test_preorder_close_then_pay(client: TestClient) -> None:
    checkout_id = _checkout(client, PREORDER_LINE)
    client.post(f"/v1/checkouts/{checkout_id}/details", json=DETAILS_PAYLOAD)

    r = client.post(f"/v1/checkouts/{checkout_id}/payment-type", json={"payment_type": "deposit"})
    assert r.status_code == 200, r.text
    assert r.json()["state"] == "PAYMENT_TYPE_SELECTED"
    assert r.json()["payable_preview"] == "20000"

    opened = client.post(f"/v1/checkouts/{checkout_id}/session").json()
    assert opened["widget"]["amount"] == 2_000_000

    closed = client.post(f"/v1/checkouts/{checkout_id}/gateway/close").json()
    assert closed["state"] == "PAYMENT_TYPE_SELECTED"
    assert closed["submitting"] is False
    assert closed["widget"] is None
    assert get_runtime().backend.calls_for("verify_preorder") == []

    reopened = client.post(f"/v1/checkouts/{checkout_id}/session").json()
    assert reopened["session"]["reference"] != opened["session"]["reference"]

    settled = client.post(
        f"/v1/checkouts/{checkout_id}/gateway/success",
        json={"reference": reopened["session"]["reference"]},
    ).json()
    assert settled["state"] == "SETTLED"
    assert settled["result"]["identifier"] == "PRE-00001"


def test_mixed_cart_is_rejected(client: TestClient) -> None:
    cart_id = _cart(client, ORDER_LINE, PREORDER_LINE)

    r = client.post("/v1/checkouts", json={"cart_id": cart_id})

    assert r.status_code == 422
    assert "separately" in r.json()["detail"]["message"]
    assert r.json()["detail"]["step"] == "CART_REVIEW"


def test_incomplete_details_are_named(client: TestClient) -> None:
    checkout_id = _checkout(client, ORDER_LINE)
    payload = {**DETAILS_PAYLOAD, "contact": {**DETAILS_PAYLOAD["contact"], "phone": ""}}

    r = client.post(f"/v1/checkouts/{checkout_id}/details", json=payload)

    assert r.status_code == 422
    assert r.json()["detail"]["fields"] == ["phone"]
    assert client.get(f"/v1/checkouts/{checkout_id}").json()["state"] == "CART_REVIEW"


@pytest.mark.parametrize(
    ("operation", "route", "state"),
    [
        ("order_session", "session", "FULFILLMENT_SELECTED"),
        ("verify_order", "gateway/success", "FAILED"),
    ],
)
def test_backend_refusals_are_502_with_backend_message(
    client: TestClient, operation: str, route: str, state: str
) -> None:
    checkout_id = _checkout(client, ORDER_LINE)
    client.post(f"/v1/checkouts/{checkout_id}/details", json=DETAILS_PAYLOAD)
    if route != "session":
        client.post(f"/v1/checkouts/{checkout_id}/session")
    get_runtime().backend.fail_next(operation, "Desk Lamp is out of stock")

    r = client.post(f"/v1/checkouts/{checkout_id}/{route}", json={})

    assert r.status_code == 502
    assert r.json()["detail"] == "Desk Lamp is out of stock"
    after = client.get(f"/v1/checkouts/{checkout_id}").json()
    assert after["state"] == state
    assert after["error"] == "Desk Lamp is out of stock"
    assert after["submitting"] is False


def test_restart_after_failed_verify(client: TestClient) -> None:
    checkout_id = _checkout(client, ORDER_LINE)
    client.post(f"/v1/checkouts/{checkout_id}/details", json=DETAILS_PAYLOAD)
    client.post(f"/v1/checkouts/{checkout_id}/session")
    get_runtime().backend.fail_next("verify_order", "Declined")
    client.post(f"/v1/checkouts/{checkout_id}/gateway/success", json={})

    r = client.post(f"/v1/checkouts/{checkout_id}/restart")

    assert r.status_code == 200
    assert r.json()["state"] == "CART_REVIEW"
    assert r.json()["session"] is None


def test_out_of_order_events_are_409(client: TestClient) -> None:
    checkout_id = _checkout(client, ORDER_LINE)

    assert client.post(f"/v1/checkouts/{checkout_id}/session").status_code == 409
    assert client.post(f"/v1/checkouts/{checkout_id}/gateway/close").status_code == 409
    r = client.post(f"/v1/checkouts/{checkout_id}/payment-type", json={"payment_type": "full"})
    assert r.status_code == 409


def test_unknown_ids_are_404(client: TestClient) -> None:
    assert client.get("/v1/carts/nope").status_code == 404
    assert client.get("/v1/checkouts/nope").status_code == 404
    assert client.get("/v1/attempts/ref_nope").status_code == 404
    assert client.post("/v1/checkouts", json={"cart_id": "nope"}).status_code == 404
