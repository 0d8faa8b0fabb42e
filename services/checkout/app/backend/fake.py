from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from uuid import uuid4

from services.checkout.app.backend.base import (
    BackendError,
    CustomerPreOrderRecord,
    OrderRecord,
    OrderSessionResponse,
    OrderVerifyResponse,
    PayTokenResponse,
    PreOrderPaymentVerifyResponse,
    PreOrderSessionResponse,
    PreOrderVerifyResponse,
    RemainingBalanceSessionResponse,
)
from services.checkout.app.backend.normalize import to_decimal


def _customer_name(payload: dict) -> str:
    return f"{payload.get('first_name', '')} {payload.get('last_name', '')}".strip()


@dataclass
class _PendingSession:
    kind: str
    payload: dict
    amount: Decimal
    currency: str
    customer_pre_order_id: str | None = None
    settled_identifier: str | None = None


@dataclass
class _CustomerPreOrder:
    id: str
    pre_order_id: str
    pre_order_number: str
    payload: dict
    unit_price: Decimal
    total: Decimal
    paid: Decimal
    deposit: Decimal
    currency: str
    status: str = "pending"

    @property
    def remaining(self) -> Decimal:
        return max(Decimal("0"), self.total - self.paid)


@dataclass
class FakeBackendClient:
    """Deterministic in-memory commerce backend for tests and local dev.

    Orders and pre-orders only come into existence on verify, matching the
    real backend's write-after-payment contract.
    """

    currency: str = "NGN"
    preorder_prices: dict[str, Decimal] = field(
        default_factory=lambda: {"7": Decimal("50000"), "8": Decimal("120000")}
    )
    amount_override: Decimal | None = None

    calls: list[tuple[str, str]] = field(default_factory=list)
    _sessions: dict[str, _PendingSession] = field(default_factory=dict)
    _orders: dict[str, OrderRecord] = field(default_factory=dict)
    _preorders: dict[str, _CustomerPreOrder] = field(default_factory=dict)
    _tokens: dict[str, PayTokenResponse] = field(default_factory=dict)
    _failures: dict[str, str] = field(default_factory=dict)
    _seq: int = 0

    def fail_next(self, operation: str, message: str) -> None:
        self._failures[operation] = message

    def calls_for(self, operation: str) -> list[str]:
        return [arg for op, arg in self.calls if op == operation]

    def issue_pay_token(self, pre_order_number: str, *, amount_due: Decimal | None = None) -> str:
        record = self._preorders.get(pre_order_number)
        if record is None:
            raise KeyError(pre_order_number)

        token = uuid4().hex
        self._tokens[token] = PayTokenResponse(
            pre_order_id=record.pre_order_id,
            pre_order_number=record.pre_order_number,
            allowed_payment_type="full",
            amount_due=record.remaining if amount_due is None else amount_due,
            customer_name=_customer_name(record.payload),
        )
        return token

    def create_order_session(self, payload: dict) -> OrderSessionResponse:
        reference, pending = self._open_session("order_session", "order", payload)
        return OrderSessionResponse(
            reference=reference,
            amount=pending.amount,
            currency=pending.currency,
            items_count=len(payload.get("cart_items") or []),
            customer_name=_customer_name(payload),
        )

    def create_preorder_session(self, payload: dict) -> PreOrderSessionResponse:
        reference, pending = self._open_session("preorder_session", "preorder", payload)
        return PreOrderSessionResponse(
            reference=reference,
            amount=pending.amount,
            currency=pending.currency,
            payment_type=str(payload.get("payment_type") or "full"),
        )

    def create_remaining_balance_session(self, payload: dict) -> RemainingBalanceSessionResponse:
        self._record("remaining_session", str(payload.get("customer_pre_order_id")))

        record = self._preorder_by_id(str(payload.get("customer_pre_order_id")))
        if record is None:
            raise BackendError("Pre-order not found", status_code=404)
        if record.remaining <= 0:
            raise BackendError("This pre-order has no outstanding balance", status_code=422)

        reference = f"ref_{uuid4().hex[:12]}"
        amount = self.amount_override if self.amount_override is not None else record.remaining
        self._sessions[reference] = _PendingSession(
            kind="balance",
            payload=dict(payload),
            amount=amount,
            currency=record.currency,
            customer_pre_order_id=record.id,
        )
        return RemainingBalanceSessionResponse(
            reference=reference, amount=amount, currency=record.currency
        )

    def verify_order(self, reference: str) -> OrderVerifyResponse:
        pending = self._verified_session("verify_order", reference, "order")
        if pending.settled_identifier is None:
            payload = pending.payload
            number = f"ORD-{self._next_seq():05d}"
            self._orders[number] = OrderRecord(
                order_number=number,
                customer_name=_customer_name(payload),
                customer_email=str(payload.get("customer_email") or ""),
                status="processing",
                payment_status="paid",
                formatted_total=f"₦{pending.amount:,.2f}",
                fulfillment_method=str(payload.get("fulfillment_method") or ""),
                shipping_address=payload.get("shipping_address"),
                pickup_location=payload.get("pickup_location"),
                items=list(payload.get("cart_items") or []),
            )
            pending.settled_identifier = number

        return OrderVerifyResponse(
            order_number=pending.settled_identifier, message="Payment verified successfully"
        )

    def verify_preorder(self, reference: str) -> PreOrderVerifyResponse:
        pending = self._verified_session("verify_preorder", reference, "preorder")
        if pending.settled_identifier is None:
            record = self._create_preorder(pending)
            pending.settled_identifier = record.pre_order_number
        else:
            record = self._preorders[pending.settled_identifier]

        return PreOrderVerifyResponse(
            pre_order_number=record.pre_order_number,
            payment_status=self._payment_status(record),
            message="Payment verified successfully",
        )

    def verify_preorder_payment(self, reference: str) -> PreOrderPaymentVerifyResponse:
        pending = self._verified_session("verify_preorder_payment", reference, "balance")
        record = self._preorder_by_id(pending.customer_pre_order_id)
        if record is None:
            raise BackendError("Pre-order not found", status_code=404)
        if pending.settled_identifier is None:
            record.paid += pending.amount
            pending.settled_identifier = record.pre_order_number

        return PreOrderPaymentVerifyResponse(
            pre_order_number=record.pre_order_number,
            payment_status=self._payment_status(record),
            remaining_amount=record.remaining,
            message="Payment verified successfully",
        )

    def exchange_pay_token(self, token: str) -> PayTokenResponse:
        self._record("exchange_pay_token", token)
        info = self._tokens.get(token)
        if info is None:
            raise BackendError("Invalid or expired payment link", status_code=404)
        return info

    def get_order(self, order_number: str) -> OrderRecord:
        self._record("get_order", order_number)
        order = self._orders.get(order_number)
        if order is None:
            raise BackendError("Order not found", status_code=404)
        return order

    def get_customer_preorder(self, pre_order_number: str) -> CustomerPreOrderRecord:
        self._record("get_customer_preorder", pre_order_number)
        record = self._preorders.get(pre_order_number)
        if record is None:
            raise BackendError("Pre-order not found", status_code=404)

        payload = record.payload
        return CustomerPreOrderRecord(
            id=record.id,
            pre_order_id=record.pre_order_id,
            pre_order_number=record.pre_order_number,
            customer_email=str(payload.get("customer_email") or ""),
            first_name=str(payload.get("first_name") or ""),
            last_name=str(payload.get("last_name") or ""),
            quantity=int(payload.get("quantity") or 1),
            unit_price=record.unit_price,
            deposit_amount=record.deposit,
            remaining_amount=record.remaining,
            total_amount=record.total,
            currency=record.currency,
            status=record.status,
            payment_status=self._payment_status(record),
            fulfillment_method=str(payload.get("fulfillment_method") or ""),
        )

    def _open_session(
        self, operation: str, kind: str, payload: dict
    ) -> tuple[str, _PendingSession]:
        self._record(operation, str(payload.get("customer_email") or ""))

        amount = self.amount_override
        if amount is None:
            amount = to_decimal(payload.get("amount"))
        if amount is None:
            raise BackendError("The amount field is required.", status_code=422)

        reference = f"ref_{uuid4().hex[:12]}"
        pending = _PendingSession(
            kind=kind, payload=dict(payload), amount=amount, currency=self.currency
        )
        self._sessions[reference] = pending
        return reference, pending

    def _verified_session(self, operation: str, reference: str, *kinds: str) -> _PendingSession:
        self._record(operation, reference)
        pending = self._sessions.get(reference)
        if pending is None or pending.kind not in kinds:
            raise BackendError("Transaction reference not found", status_code=404)
        return pending

    def _create_preorder(self, pending: _PendingSession) -> _CustomerPreOrder:
        payload = pending.payload
        pre_order_id = str(payload.get("pre_order_id"))
        quantity = int(payload.get("quantity") or 1)
        unit_price = self.preorder_prices.get(pre_order_id, pending.amount / quantity)

        seq = self._next_seq()
        record = _CustomerPreOrder(
            id=str(seq),
            pre_order_id=pre_order_id,
            pre_order_number=f"PRE-{seq:05d}",
            payload=payload,
            unit_price=unit_price,
            total=unit_price * quantity,
            paid=pending.amount,
            deposit=pending.amount if payload.get("payment_type") == "deposit" else Decimal("0"),
            currency=pending.currency,
        )
        self._preorders[record.pre_order_number] = record
        return record

    def _preorder_by_id(self, customer_pre_order_id: str | None) -> _CustomerPreOrder | None:
        return next((r for r in self._preorders.values() if r.id == customer_pre_order_id), None)

    @staticmethod
    def _payment_status(record: _CustomerPreOrder) -> str:
        return "deposit_paid" if record.remaining > 0 else "fully_paid"

    def _record(self, operation: str, arg: str) -> None:
        self.calls.append((operation, arg))
        message = self._failures.pop(operation, None)
        if message is not None:
            raise BackendError(message, status_code=400)

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq
