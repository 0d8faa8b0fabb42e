from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from services.checkout.app.backend.base import (
    BackendClient,
    BackendError,
    PayTokenResponse,
)
from services.checkout.app.services.errors import NotFoundError, ValidationError
from services.checkout.app.services.intents import (
    IntentKind,
    PaymentSession,
    RemainingBalanceIntent,
)
from services.checkout.app.services.session_initiator import SessionInitiator

logger = logging.getLogger(__name__)

PREORDER_NUMBER_PREFIX = "PRE-"
PAY_REMAINING_ACTION = "pay-remaining"

STATUS_LABELS = {
    "pending": "Pending",
    "processing": "Processing",
    "paid": "Paid",
    "deposit_paid": "Deposit paid",
    "fully_paid": "Fully paid",
    "ready_for_pickup": "Ready for pickup",
    "completed": "Completed",
    "cancelled": "Cancelled",
}


def normalize_identifier(identifier: str) -> str:
    """Trim and upper-case; pre-order numbers also lose inner whitespace."""

    value = (identifier or "").strip()
    compact = re.sub(r"\s+", "", value).upper()
    if compact.startswith(PREORDER_NUMBER_PREFIX):
        return compact
    return value.upper()


def is_preorder_number(identifier: str) -> bool:
    return normalize_identifier(identifier).startswith(PREORDER_NUMBER_PREFIX)


def normalize_status(raw: str | None) -> str:
    value = re.sub(r"[\s-]+", "_", (raw or "").strip().lower())
    if value == "canceled":
        return "cancelled"
    return value or "pending"


@dataclass(frozen=True, slots=True)
class SettlementView:
    kind: IntentKind
    identifier: str
    status: str
    payment_status: str
    customer_name: str = ""
    customer_email: str = ""
    currency: str = "NGN"
    total_amount: Decimal | None = None
    deposit_amount: Decimal = Decimal("0")
    remaining_amount: Decimal = Decimal("0")
    amount_due: Decimal | None = None
    customer_pre_order_id: str | None = None
    can_pay_remaining: bool = False
    token_error: str | None = None
    formatted_total: str = ""
    fulfillment_method: str = ""
    items: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    @property
    def status_label(self) -> str:
        return STATUS_LABELS.get(self.status, self.status.replace("_", " ").capitalize())

    @property
    def is_fully_paid(self) -> bool:
        if self.kind == IntentKind.PREORDER:
            return self.payment_status == "fully_paid" or (
                self.payment_status == "deposit_paid" and self.remaining_amount <= 0
            )
        return self.payment_status in {"paid", "fully_paid", "success", "completed"}

    @property
    def balance_due(self) -> Decimal:
        if self.amount_due is not None:
            return self.amount_due
        return self.remaining_amount


class ConfirmationResolver:
    """Reads settlement state for a confirmation page.

    Reads never mutate anything, so resolving the same identifier twice with no
    backend change gives equal views.
    """

    def __init__(self, backend: BackendClient, *, initiator: SessionInitiator) -> None:
        self._backend = backend
        self._initiator = initiator

    def resolve(self, identifier: str, token: str | None = None) -> SettlementView:
        number = normalize_identifier(identifier)
        if not number:
            raise NotFoundError("Missing order number")

        if number.startswith(PREORDER_NUMBER_PREFIX):
            return self._resolve_preorder(number, token)
        return self._resolve_order(number)

    def pay_remaining(self, view: SettlementView) -> PaymentSession:
        if view.kind != IntentKind.PREORDER or not view.can_pay_remaining:
            raise ValidationError(
                "There is no outstanding balance to pay for this pre-order",
                step="CONFIRMATION",
            )
        if not view.customer_pre_order_id:
            raise ValidationError("Pre-order record is incomplete", step="CONFIRMATION")

        intent = RemainingBalanceIntent(
            customer_pre_order_id=view.customer_pre_order_id,
            pre_order_number=view.identifier,
            payer_email=view.customer_email,
            currency=view.currency,
            amount_due=view.balance_due,
        )
        return self._initiator.initialize_remaining_balance(intent)

    def _resolve_order(self, number: str) -> SettlementView:
        try:
            order = self._backend.get_order(number)
        except BackendError as e:
            if e.status_code == 404:
                raise NotFoundError(e.message) from e
            raise

        return SettlementView(
            kind=IntentKind.ORDER,
            identifier=order.order_number,
            status=normalize_status(order.status),
            payment_status=normalize_status(order.payment_status),
            customer_name=order.customer_name,
            customer_email=order.customer_email,
            formatted_total=order.formatted_total,
            fulfillment_method=order.fulfillment_method,
            items=tuple(order.items),
        )

    def _resolve_preorder(self, number: str, token: str | None) -> SettlementView:
        try:
            record = self._backend.get_customer_preorder(number)
        except BackendError as e:
            if e.status_code == 404:
                raise NotFoundError(e.message) from e
            raise

        payment_status = normalize_status(record.payment_status)
        state_path = payment_status == "deposit_paid" and record.remaining_amount > 0

        info, token_error = self._exchange_token(token, record.pre_order_number)
        if info is not None:
            # A valid deep link decides on its own.
            can_pay = info.amount_due > 0
            amount_due: Decimal | None = info.amount_due
        else:
            can_pay = state_path
            amount_due = None

        return SettlementView(
            kind=IntentKind.PREORDER,
            identifier=record.pre_order_number,
            status=normalize_status(record.status),
            payment_status=payment_status,
            customer_name=f"{record.first_name} {record.last_name}".strip(),
            customer_email=record.customer_email,
            currency=record.currency or "NGN",
            total_amount=record.total_amount,
            deposit_amount=record.deposit_amount,
            remaining_amount=record.remaining_amount,
            amount_due=amount_due,
            customer_pre_order_id=record.id,
            can_pay_remaining=can_pay,
            token_error=token_error,
            fulfillment_method=record.fulfillment_method,
        )

    def _exchange_token(
        self, token: str | None, pre_order_number: str
    ) -> tuple[PayTokenResponse | None, str | None]:
        if not token:
            return None, None

        try:
            info = self._backend.exchange_pay_token(token)
        except BackendError as e:
            logger.info("Pay token rejected for %s: %s", pre_order_number, e.message)
            return None, e.message

        linked = normalize_identifier(info.pre_order_number or "")
        if linked and linked != pre_order_number:
            logger.warning("Pay token for %s used on %s", info.pre_order_number, pre_order_number)
            return None, "This payment link belongs to a different pre-order"
        return info, None


class ConfirmationPage:
    """One load of a confirmation page.

    ``maybe_auto_pay`` honours ``action=pay-remaining`` at most once, however
    many times it is called for this load.
    """

    def __init__(self, resolver: ConfirmationResolver, view: SettlementView) -> None:
        self.resolver = resolver
        self.view = view
        self.auto_pay_consumed = False

    def maybe_auto_pay(self, action: str | None) -> PaymentSession | None:
        if action != PAY_REMAINING_ACTION or self.auto_pay_consumed:
            return None
        if not self.view.can_pay_remaining:
            return None

        self.auto_pay_consumed = True
        logger.info("Auto pay-remaining for %s", self.view.identifier)
        return self.resolver.pay_remaining(self.view)
