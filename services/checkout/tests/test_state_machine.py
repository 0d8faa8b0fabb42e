from __future__ import annotations

import pytest
from services.checkout.app.services.errors import InvalidTransition
from services.checkout.app.services.state_machine import (
    CheckoutEvent as E,
)
from services.checkout.app.services.state_machine import (
    CheckoutState as S,
)
from services.checkout.app.services.state_machine import (
    transition,
)


def _walk(events: list[E], *, is_preorder: bool) -> S:
    state = S.CART_REVIEW
    for event in events:
        state = transition(state, event, is_preorder=is_preorder)
    return state


def test_preorder_happy_path() -> None:
    state = _walk(
        [
            E.DETAILS_SUBMITTED,
            E.PAYMENT_TYPE_CHOSEN,
            E.SESSION_REQUESTED,
            E.SESSION_CREATED,
            E.GATEWAY_SUCCESS,
            E.VERIFIED,
        ],
        is_preorder=True,
    )
    assert state == S.SETTLED


def test_order_path_skips_payment_type() -> None:
    state = _walk([E.DETAILS_SUBMITTED, E.SESSION_REQUESTED], is_preorder=False)
    assert state == S.SESSION_PENDING

    with pytest.raises(InvalidTransition):
        transition(S.FULFILLMENT_SELECTED, E.PAYMENT_TYPE_CHOSEN, is_preorder=False)


def test_preorder_needs_payment_type_before_session() -> None:
    with pytest.raises(InvalidTransition):
        transition(S.FULFILLMENT_SELECTED, E.SESSION_REQUESTED, is_preorder=True)


@pytest.mark.parametrize(
    ("is_preorder", "expected"),
    [(True, S.PAYMENT_TYPE_SELECTED), (False, S.CART_REVIEW)],
)
def test_close_resets_to_step_before_payment(is_preorder: bool, expected: S) -> None:
    abandoned = transition(S.GATEWAY_OPEN, E.GATEWAY_CLOSED, is_preorder=is_preorder)
    assert abandoned == S.ABANDONED
    assert transition(abandoned, E.RESET, is_preorder=is_preorder) == expected


@pytest.mark.parametrize(
    ("is_preorder", "expected"),
    [(True, S.PAYMENT_TYPE_SELECTED), (False, S.FULFILLMENT_SELECTED)],
)
def test_session_failure_returns_to_pre_session_state(is_preorder: bool, expected: S) -> None:
    assert transition(S.SESSION_PENDING, E.SESSION_FAILED, is_preorder=is_preorder) == expected


def test_failed_only_restarts_from_cart_review() -> None:
    assert transition(S.VERIFYING, E.VERIFICATION_FAILED, is_preorder=False) == S.FAILED
    assert transition(S.FAILED, E.RESTART, is_preorder=False) == S.CART_REVIEW

    for event in (E.GATEWAY_SUCCESS, E.SESSION_REQUESTED, E.VERIFIED):
        with pytest.raises(InvalidTransition):
            transition(S.FAILED, event, is_preorder=False)


def test_settled_is_terminal() -> None:
    for event in E:
        with pytest.raises(InvalidTransition):
            transition(S.SETTLED, event, is_preorder=True)


def test_gateway_success_requires_open_gateway() -> None:
    with pytest.raises(InvalidTransition) as exc:
        transition(S.SESSION_PENDING, E.GATEWAY_SUCCESS, is_preorder=False)

    assert exc.value.state == "SESSION_PENDING"
    assert exc.value.event == "gateway_success"
