from __future__ import annotations

from decimal import Decimal

import pytest
from services.checkout.app.backend.fake import FakeBackendClient
from services.checkout.app.services.confirmation import (
    ConfirmationPage,
    ConfirmationResolver,
    is_preorder_number,
    normalize_identifier,
    normalize_status,
)
from services.checkout.app.services.errors import (
    NotFoundError,
    SessionInitError,
    ValidationError,
    VerificationError,
)
from services.checkout.app.services.gateway_mock import MockGateway
from services.checkout.app.services.intents import IntentKind, PaymentSession
from services.checkout.app.services.session_initiator import (
    SESSION_IN_FLIGHT_MESSAGE,
    SessionInitiator,
)
from services.checkout.app.services.store import Runtime
from services.checkout.app.services.verification import VerificationCoordinator


def _place_preorder(backend: FakeBackendClient, payment_type: str = "deposit") -> str:
    amount = "20000" if payment_type == "deposit" else "100000"
    session = backend.create_preorder_session(
        {
            "pre_order_id": "7",
            "quantity": 2,
            "payment_type": payment_type,
            "first_name": "Ada",
            "last_name": "Obi",
            "customer_email": "ada@example.com",
            "fulfillment_method": "delivery",
            "amount": amount,
        }
    )
    return backend.verify_preorder(session.reference).pre_order_number


def _resolver(backend: FakeBackendClient) -> ConfirmationResolver:
    return ConfirmationResolver(backend, initiator=SessionInitiator(backend))


def test_deposit_paid_preorder_offers_remaining_balance(backend: FakeBackendClient) -> None:
    number = _place_preorder(backend)

    view = _resolver(backend).resolve(number)

    assert view.kind == IntentKind.PREORDER
    assert view.payment_status == "deposit_paid"
    assert view.status_label == "Pending"
    assert view.customer_name == "Ada Obi"
    assert view.deposit_amount == Decimal("20000")
    assert view.remaining_amount == Decimal("80000")
    assert view.balance_due == Decimal("80000")
    assert view.can_pay_remaining is True
    assert view.is_fully_paid is False


def test_fully_paid_preorder_hides_remaining_balance(backend: FakeBackendClient) -> None:
    number = _place_preorder(backend, "full")

    view = _resolver(backend).resolve(number)

    assert view.payment_status == "fully_paid"
    assert view.is_fully_paid is True
    assert view.can_pay_remaining is False


def test_token_with_nothing_due_hides_pay_action(backend: FakeBackendClient) -> None:
    number = _place_preorder(backend)
    token = backend.issue_pay_token(number, amount_due=Decimal("0"))

    view = _resolver(backend).resolve(number, token=token)

    assert view.amount_due == Decimal("0")
    assert view.can_pay_remaining is False
    assert view.token_error is None


def test_valid_token_sets_amount_due(backend: FakeBackendClient) -> None:
    number = _place_preorder(backend)
    token = backend.issue_pay_token(number)

    view = _resolver(backend).resolve(number, token=token)

    assert view.amount_due == Decimal("80000")
    assert view.can_pay_remaining is True


def test_invalid_token_falls_back_to_record_state(backend: FakeBackendClient) -> None:
    number = _place_preorder(backend)

    view = _resolver(backend).resolve(number, token="expired")

    assert view.token_error == "Invalid or expired payment link"
    assert view.amount_due is None
    assert view.can_pay_remaining is True


def test_token_for_another_preorder_is_rejected(backend: FakeBackendClient) -> None:
    first = _place_preorder(backend)
    second = _place_preorder(backend)
    token = backend.issue_pay_token(second)

    view = _resolver(backend).resolve(first, token=token)

    assert view.token_error == "This payment link belongs to a different pre-order"
    assert view.identifier == first


def test_resolve_is_a_pure_read(backend: FakeBackendClient) -> None:
    number = _place_preorder(backend)
    resolver = _resolver(backend)

    assert resolver.resolve(number) == resolver.resolve(f"  {number.lower()} ")


def test_order_view(backend: FakeBackendClient) -> None:
    session = backend.create_order_session(
        {"first_name": "Ada", "last_name": "Obi", "amount": "45000", "cart_items": []}
    )
    number = backend.verify_order(session.reference).order_number

    view = _resolver(backend).resolve(number.lower())

    assert view.kind == IntentKind.ORDER
    assert view.identifier == "ORD-00001"
    assert view.formatted_total == "₦45,000.00"
    assert view.is_fully_paid is True
    assert view.can_pay_remaining is False


@pytest.mark.parametrize("identifier", ["PRE-99999", "ORD-99999", "   "])
def test_unknown_identifier_is_not_found(backend: FakeBackendClient, identifier: str) -> None:
    with pytest.raises(NotFoundError):
        _resolver(backend).resolve(identifier)


def test_identifier_and_status_normalization() -> None:
    assert normalize_identifier(" pre- 0042 ") == "PRE-0042"
    assert normalize_identifier(" ord-7 ") == "ORD-7"
    assert is_preorder_number("pre-1")
    assert not is_preorder_number("ORD-1")
    assert normalize_status("Canceled") == "cancelled"
    assert normalize_status("Ready for pickup") == "ready_for_pickup"
    assert normalize_status(None) == "pending"


def test_pay_remaining_refused_without_balance(backend: FakeBackendClient) -> None:
    number = _place_preorder(backend, "full")
    resolver = _resolver(backend)

    with pytest.raises(ValidationError) as exc:
        resolver.pay_remaining(resolver.resolve(number))

    assert exc.value.step == "CONFIRMATION"
    assert backend.calls_for("remaining_session") == []


def test_paying_remaining_balance_settles_preorder(backend: FakeBackendClient) -> None:
    number = _place_preorder(backend)
    resolver = _resolver(backend)

    session = resolver.pay_remaining(resolver.resolve(number))
    assert session.amount == Decimal("80000")
    assert session.amount_minor_units == 8_000_000
    assert session.intent.payer_email == "ada@example.com"
    assert session.intent.kind == IntentKind.BALANCE

    result = VerificationCoordinator(backend).verify_and_settle(
        session.reference, IntentKind.BALANCE
    )

    assert result.identifier == number
    assert result.confirmation_path == f"/pre-orders/confirmation/{number}"
    assert backend.calls_for("verify_preorder_payment") == [session.reference]
    assert session.reference not in backend.calls_for("verify_preorder")
    view = resolver.resolve(number)
    assert view.payment_status == "fully_paid"
    assert view.can_pay_remaining is False


def test_balance_reference_cannot_create_a_preorder(backend: FakeBackendClient) -> None:
    number = _place_preorder(backend)
    resolver = _resolver(backend)
    session = resolver.pay_remaining(resolver.resolve(number))

    with pytest.raises(VerificationError, match="Transaction reference not found"):
        VerificationCoordinator(backend).verify_and_settle(
            session.reference, IntentKind.PREORDER
        )

    assert resolver.resolve(number).payment_status == "deposit_paid"


def test_runtime_refuses_second_balance_session_for_same_preorder() -> None:
    inner_errors: list[SessionInitError] = []
    other_sessions: list[PaymentSession] = []

    class ReentrantBackend(FakeBackendClient):
        reentered = False

        def create_remaining_balance_session(self, payload):
            if not self.reentered:
                self.reentered = True
                resolver = rt.confirmation_resolver(number)
                try:
                    resolver.pay_remaining(resolver.resolve(number))
                except SessionInitError as e:
                    inner_errors.append(e)
                elsewhere = rt.confirmation_resolver(other)
                other_sessions.append(elsewhere.pay_remaining(elsewhere.resolve(other)))
            return super().create_remaining_balance_session(payload)

    reentrant = ReentrantBackend()
    number = _place_preorder(reentrant)
    other = _place_preorder(reentrant)
    rt = Runtime(
        backend=reentrant,
        gateway=MockGateway(),
        journal=None,
        coordinator=VerificationCoordinator(reentrant),
    )

    resolver = rt.confirmation_resolver(f" {number.lower()} ")
    session = resolver.pay_remaining(resolver.resolve(number))

    assert session.amount == Decimal("80000")
    assert [str(e) for e in inner_errors] == [SESSION_IN_FLIGHT_MESSAGE]
    assert len(other_sessions) == 1
    assert rt.balance_initiator(number) is rt.balance_initiator(number.lower())
    assert not rt.balance_initiator(number).in_flight


def test_auto_pay_fires_once_per_page_load(backend: FakeBackendClient) -> None:
    number = _place_preorder(backend)
    resolver = _resolver(backend)
    page = ConfirmationPage(resolver, resolver.resolve(number))

    assert page.maybe_auto_pay(None) is None
    first = page.maybe_auto_pay("pay-remaining")
    second = page.maybe_auto_pay("pay-remaining")

    assert first is not None
    assert second is None
    assert page.auto_pay_consumed is True
    assert len(backend.calls_for("remaining_session")) == 1


def test_auto_pay_ignored_when_nothing_is_due(backend: FakeBackendClient) -> None:
    number = _place_preorder(backend, "full")
    resolver = _resolver(backend)
    page = ConfirmationPage(resolver, resolver.resolve(number))

    assert page.maybe_auto_pay("pay-remaining") is None
    assert page.auto_pay_consumed is False
