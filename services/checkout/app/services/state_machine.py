"""Checkout states and the transitions between them.

``transition`` is pure: it never touches the cart, the backend or the gateway.
The checkout flow calls it before acting, so an event that is not allowed in
the current state fails before any side effect happens.
"""

from __future__ import annotations

from enum import Enum

from services.checkout.app.services.errors import InvalidTransition


class CheckoutState(str, Enum):
    CART_REVIEW = "CART_REVIEW"
    FULFILLMENT_SELECTED = "FULFILLMENT_SELECTED"
    PAYMENT_TYPE_SELECTED = "PAYMENT_TYPE_SELECTED"
    SESSION_PENDING = "SESSION_PENDING"
    GATEWAY_OPEN = "GATEWAY_OPEN"
    VERIFYING = "VERIFYING"
    SETTLED = "SETTLED"
    FAILED = "FAILED"
    ABANDONED = "ABANDONED"


class CheckoutEvent(str, Enum):
    DETAILS_SUBMITTED = "details_submitted"
    PAYMENT_TYPE_CHOSEN = "payment_type_chosen"
    SESSION_REQUESTED = "session_requested"
    SESSION_CREATED = "session_created"
    SESSION_FAILED = "session_failed"
    GATEWAY_SUCCESS = "gateway_success"
    GATEWAY_CLOSED = "gateway_closed"
    RESET = "reset"
    VERIFIED = "verified"
    VERIFICATION_FAILED = "verification_failed"
    RESTART = "restart"


TERMINAL_STATES = frozenset({CheckoutState.SETTLED, CheckoutState.FAILED})

_EDITABLE_STATES = frozenset(
    {
        CheckoutState.CART_REVIEW,
        CheckoutState.FULFILLMENT_SELECTED,
        CheckoutState.PAYMENT_TYPE_SELECTED,
    }
)

_FIXED: dict[tuple[CheckoutState, CheckoutEvent], CheckoutState] = {
    (CheckoutState.SESSION_PENDING, CheckoutEvent.SESSION_CREATED): CheckoutState.GATEWAY_OPEN,
    (CheckoutState.GATEWAY_OPEN, CheckoutEvent.GATEWAY_SUCCESS): CheckoutState.VERIFYING,
    (CheckoutState.GATEWAY_OPEN, CheckoutEvent.GATEWAY_CLOSED): CheckoutState.ABANDONED,
    (CheckoutState.VERIFYING, CheckoutEvent.VERIFIED): CheckoutState.SETTLED,
    (CheckoutState.VERIFYING, CheckoutEvent.VERIFICATION_FAILED): CheckoutState.FAILED,
    (CheckoutState.FAILED, CheckoutEvent.RESTART): CheckoutState.CART_REVIEW,
}


def pre_session_state(*, is_preorder: bool) -> CheckoutState:
    """State a checkout waits in right before a session is requested."""

    if is_preorder:
        return CheckoutState.PAYMENT_TYPE_SELECTED
    return CheckoutState.FULFILLMENT_SELECTED


def transition(state: CheckoutState, event: CheckoutEvent, *, is_preorder: bool) -> CheckoutState:
    fixed = _FIXED.get((state, event))
    if fixed is not None:
        return fixed

    # Details may be re-submitted from any step before a session exists.
    if event == CheckoutEvent.DETAILS_SUBMITTED and state in _EDITABLE_STATES:
        return CheckoutState.FULFILLMENT_SELECTED

    if event == CheckoutEvent.PAYMENT_TYPE_CHOSEN and is_preorder:
        if state in (CheckoutState.FULFILLMENT_SELECTED, CheckoutState.PAYMENT_TYPE_SELECTED):
            return CheckoutState.PAYMENT_TYPE_SELECTED

    if event == CheckoutEvent.SESSION_REQUESTED and state == pre_session_state(
        is_preorder=is_preorder
    ):
        return CheckoutState.SESSION_PENDING

    if event == CheckoutEvent.SESSION_FAILED and state == CheckoutState.SESSION_PENDING:
        return pre_session_state(is_preorder=is_preorder)

    if event == CheckoutEvent.RESET and state == CheckoutState.ABANDONED:
        if is_preorder:
            return CheckoutState.PAYMENT_TYPE_SELECTED
        return CheckoutState.CART_REVIEW

    raise InvalidTransition(state.value, event.value)
