from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from dataclasses import replace
from decimal import Decimal

from services.checkout.app.backend.base import BackendClient, BackendError, SessionData
from services.checkout.app.services import payment_type as resolver
from services.checkout.app.services.cart_store import CartLine
from services.checkout.app.services.errors import SessionInitError, ValidationError
from services.checkout.app.services.intents import (
    OrderIntent,
    PaymentSession,
    PreOrderIntent,
    RemainingBalanceIntent,
)
from services.checkout.app.services.journal import AttemptJournal

logger = logging.getLogger(__name__)

SESSION_IN_FLIGHT_MESSAGE = "A payment session is already being initialized"


class SessionInitiator:
    """Creates gateway sessions through the backend.

    Nothing is persisted by the backend at this point; the order or pre-order
    only exists once verification succeeds.
    """

    def __init__(
        self,
        backend: BackendClient,
        *,
        journal: AttemptJournal | None = None,
        currency: str = "NGN",
    ) -> None:
        self._backend = backend
        self._journal = journal
        self._currency = currency
        self._lock = threading.Lock()

    @property
    def in_flight(self) -> bool:
        return self._lock.locked()

    def initialize_session(
        self,
        intent: OrderIntent | PreOrderIntent,
        lines: Sequence[CartLine],
        *,
        checkout_id: str | None = None,
    ) -> PaymentSession:
        if not self._lock.acquire(blocking=False):
            raise SessionInitError(SESSION_IN_FLIGHT_MESSAGE)
        try:
            notices: list[str] = []
            if isinstance(intent, PreOrderIntent):
                intent, payable, notice = self._price_preorder(intent, lines)
                if notice:
                    notices.append(notice)
                send = self._backend.create_preorder_session
            else:
                payable = resolver.resolve_order_total(lines)
                send = self._backend.create_order_session

            payload = {**intent.as_payload(), "amount": str(payable)}
            logger.info(
                "Requesting %s session for %s (payable %s)",
                intent.kind.value,
                intent.payer_email,
                payable,
            )
            try:
                data = send(payload)
            except BackendError as e:
                logger.warning("Session request refused: %s", e.message)
                raise SessionInitError(e.message) from e

            session = self._session_from(data, intent, fallback_amount=payable)
            session.notices.extend(notices)
            self._record(session, checkout_id)
            return session
        finally:
            self._lock.release()

    def initialize_remaining_balance(self, intent: RemainingBalanceIntent) -> PaymentSession:
        if not self._lock.acquire(blocking=False):
            raise SessionInitError(SESSION_IN_FLIGHT_MESSAGE)
        try:
            logger.info("Requesting remaining-balance session for %s", intent.pre_order_number)
            try:
                data = self._backend.create_remaining_balance_session(intent.as_payload())
            except BackendError as e:
                logger.warning("Remaining-balance session refused: %s", e.message)
                raise SessionInitError(e.message) from e

            # Widget config uses the stored pre-order's currency, not the session's.
            session = self._session_from(data, intent, fallback_amount=intent.amount_due)
            session.currency = intent.currency or session.currency
            self._record(session, None)
            return session
        finally:
            self._lock.release()

    def _price_preorder(
        self, intent: PreOrderIntent, lines: Sequence[CartLine]
    ) -> tuple[PreOrderIntent, Decimal, str | None]:
        line = next((line for line in lines if line.meta is not None), None)
        if line is None:
            raise ValidationError("Pre-order pricing is missing for this cart line")

        resolution = resolver.resolve(line.meta, intent.quantity, intent.payment_type)
        if resolution.payment_type != intent.payment_type:
            intent = replace(intent, payment_type=resolution.payment_type)
        return intent, resolution.payable, resolution.notice

    def _session_from(
        self,
        data: SessionData,
        intent: OrderIntent | PreOrderIntent | RemainingBalanceIntent,
        *,
        fallback_amount: Decimal,
    ) -> PaymentSession:
        amount = data.amount if data.amount is not None else fallback_amount
        if not amount.is_finite() or amount <= 0:
            logger.warning("Backend returned invalid amount %s for %s", amount, data.reference)
            raise SessionInitError("Payment session returned an invalid amount")

        session = PaymentSession(
            reference=data.reference,
            amount=amount,
            currency=(data.currency or self._currency).upper(),
            intent=intent,
        )
        logger.info(
            "Session %s created: %s %s", session.reference, session.amount, session.currency
        )
        return session

    def _record(self, session: PaymentSession, checkout_id: str | None) -> None:
        if self._journal is not None:
            self._journal.record_session(session, checkout_id=checkout_id)
