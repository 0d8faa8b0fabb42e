from __future__ import annotations

from decimal import Decimal

from fastapi.testclient import TestClient
from services.checkout.app.services.store import BalancePayment, get_runtime
from services.checkout.tests.factories import DETAILS_PAYLOAD

PREORDER_LINE = {
    "id": "preorder-7",
    "name": "Solar Kit",
    "unit_price": "50000",
    "quantity": 2,
    "preorder": {"pre_order_id": "7", "deposit_percentage": "20"},
}


def _place_deposit_preorder(client: TestClient) -> str:
    cart_id = client.post("/v1/carts").json()["cart_id"]
    client.post(f"/v1/carts/{cart_id}/lines", json=PREORDER_LINE)
    checkout_id = client.post("/v1/checkouts", json={"cart_id": cart_id}).json()["checkout_id"]
    client.post(f"/v1/checkouts/{checkout_id}/details", json=DETAILS_PAYLOAD)
    client.post(f"/v1/checkouts/{checkout_id}/payment-type", json={"payment_type": "deposit"})
    client.post(f"/v1/checkouts/{checkout_id}/session")
    r = client.post(f"/v1/checkouts/{checkout_id}/gateway/success", json={})
    assert r.status_code == 200, r.text
    return r.json()["result"]["identifier"]


def test_preorder_confirmation_offers_balance(client: TestClient) -> None:
    number = _place_deposit_preorder(client)

    r = client.get(f"/v1/confirmation/preorders/{number.lower()}")

    assert r.status_code == 200, r.text
    view = r.json()["view"]
    assert view["identifier"] == number
    assert view["payment_status"] == "deposit_paid"
    assert view["status_label"] == "Pending"
    assert Decimal(view["deposit_amount"]) == Decimal("20000")
    assert Decimal(view["remaining_amount"]) == Decimal("80000")
    assert view["can_pay_remaining"] is True
    assert r.json()["payment"] is None


def test_order_route_redirects_preorder_numbers(client: TestClient) -> None:
    r = client.get("/v1/confirmation/orders/pre- 00001", follow_redirects=False)

    assert r.status_code == 307
    assert r.headers["location"] == "/v1/confirmation/preorders/PRE-00001"


def test_auto_pay_remaining_then_settle(client: TestClient) -> None:
    number = _place_deposit_preorder(client)

    r = client.get(
        f"/v1/confirmation/preorders/{number}", params={"action": "pay-remaining"}
    )

    assert r.status_code == 200, r.text
    body = r.json()
    assert body["auto_pay_consumed"] is True
    payment = body["payment"]
    assert Decimal(payment["session"]["amount"]) == Decimal("80000")
    assert payment["widget"]["amount"] == 8_000_000
    reference = payment["session"]["reference"]

    done = client.post(f"/v1/confirmation/payments/{reference}/success")
    assert done.status_code == 200, done.text
    assert done.json()["result"]["identifier"] == number
    assert done.json()["result"]["kind"] == "balance"
    assert get_runtime().backend.calls_for("verify_preorder_payment") == [reference]
    assert client.get(f"/v1/attempts/{reference}").json()["kind"] == "balance"
    assert done.json()["widget"] is None

    view = client.get(f"/v1/confirmation/preorders/{number}").json()["view"]
    assert view["payment_status"] == "fully_paid"
    assert view["is_fully_paid"] is True
    assert view["can_pay_remaining"] is False


def test_token_with_nothing_due_blocks_auto_pay(client: TestClient) -> None:
    number = _place_deposit_preorder(client)
    token = get_runtime().backend.issue_pay_token(number, amount_due=Decimal("0"))

    r = client.get(
        f"/v1/confirmation/preorders/{number}",
        params={"token": token, "action": "pay-remaining"},
    )

    body = r.json()
    assert body["view"]["can_pay_remaining"] is False
    assert body["auto_pay_consumed"] is False
    assert body["payment"] is None
    assert get_runtime().backend.calls_for("remaining_session") == []


def test_invalid_token_is_reported(client: TestClient) -> None:
    number = _place_deposit_preorder(client)

    r = client.get(f"/v1/confirmation/preorders/{number}", params={"token": "stale"})

    view = r.json()["view"]
    assert view["token_error"] == "Invalid or expired payment link"
    assert view["can_pay_remaining"] is True


def test_closing_balance_widget_marks_attempt_abandoned(client: TestClient) -> None:
    number = _place_deposit_preorder(client)

    r = client.post(f"/v1/confirmation/preorders/{number}/pay-remaining", json={})
    assert r.status_code == 200, r.text
    reference = r.json()["session"]["reference"]

    closed = client.post(f"/v1/confirmation/payments/{reference}/close").json()
    assert closed["abandoned"] is True
    assert closed["widget"] is None

    assert client.get(f"/v1/attempts/{reference}").json()["status"] == "abandoned"
    assert reference not in get_runtime().backend.calls_for("verify_preorder_payment")


def test_pay_remaining_refused_when_fully_paid(client: TestClient) -> None:
    number = _place_deposit_preorder(client)
    reference = client.post(
        f"/v1/confirmation/preorders/{number}/pay-remaining", json={}
    ).json()["session"]["reference"]
    client.post(f"/v1/confirmation/payments/{reference}/success")

    r = client.post(f"/v1/confirmation/preorders/{number}/pay-remaining", json={})

    assert r.status_code == 422
    assert r.json()["detail"]["step"] == "CONFIRMATION"


def test_unknown_confirmations_are_404(client: TestClient) -> None:
    r = client.get("/v1/confirmation/preorders/PRE-99999")
    assert r.status_code == 404
    assert r.json()["detail"] == "Pre-order not found"

    assert client.get("/v1/confirmation/orders/ORD-99999").status_code == 404
    assert client.post("/v1/confirmation/payments/ref_nope/success").status_code == 404


def test_balance_callbacks_without_open_widget_are_404(client: TestClient) -> None:
    number = _place_deposit_preorder(client)
    rt = get_runtime()
    resolver = rt.confirmation_resolver(number)
    session = resolver.pay_remaining(resolver.resolve(number))
    rt.store.save_payment(BalancePayment(session=session))

    for action in ("success", "close"):
        r = client.post(f"/v1/confirmation/payments/{session.reference}/{action}")
        assert r.status_code == 404
        assert r.json()["detail"] == "No payment widget is open for this payment"
