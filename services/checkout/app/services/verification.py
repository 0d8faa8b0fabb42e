"""Server-side confirmation of a gateway charge.

A gateway success callback is not proof of payment. Only the backend's
verify call turns a captured charge into an order, a pre-order or a paid
balance, and it must run at most once per reference at a time.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable

from services.checkout.app.backend.base import BackendClient, BackendError
from services.checkout.app.services.cart_store import CartStore
from services.checkout.app.services.errors import VerificationError, VerificationInFlight
from services.checkout.app.services.intents import (
    IntentKind,
    PaymentSession,
    SessionStatus,
    SettlementResult,
)
from services.checkout.app.services.journal import AttemptJournal

logger = logging.getLogger(__name__)

VERIFICATION_FAILED_MESSAGE = "Payment verification failed"
VERIFIED_MESSAGE = "Payment verified successfully"


class VerificationCoordinator:
    def __init__(self, backend: BackendClient, *, journal: AttemptJournal | None = None) -> None:
        self._backend = backend
        self._journal = journal
        self._lock = threading.Lock()
        self._in_flight: set[str] = set()
        self._settled: dict[str, SettlementResult] = {}

    def is_in_flight(self, reference: str) -> bool:
        with self._lock:
            return reference in self._in_flight

    def verify_and_settle(
        self,
        gateway_reference: str,
        kind: IntentKind,
        settled_line_ids: Iterable[str] = (),
        *,
        cart: CartStore | None = None,
        session: PaymentSession | None = None,
    ) -> SettlementResult:
        """Verify one charge and settle its intent.

        A reference that already settled returns the cached result. A reference
        whose verify is still running raises ``VerificationInFlight`` without
        calling the backend again. Failures are not retried and leave the cart
        untouched.
        """

        with self._lock:
            cached = self._settled.get(gateway_reference)
            if cached is not None:
                logger.info(
                    "Reference %s already settled as %s", gateway_reference, cached.identifier
                )
                return cached
            if gateway_reference in self._in_flight:
                logger.warning("Duplicate verify for %s ignored: in flight", gateway_reference)
                raise VerificationInFlight(gateway_reference)
            self._in_flight.add(gateway_reference)

        try:
            if session is not None:
                session.status = SessionStatus.VERIFYING
            if self._journal is not None:
                self._journal.mark_verifying(gateway_reference)

            try:
                identifier, message = self._call_backend(gateway_reference, kind)
            except BackendError as e:
                message = e.message or VERIFICATION_FAILED_MESSAGE
                logger.warning("Verify failed for %s: %s", gateway_reference, message)
                if session is not None:
                    session.status = SessionStatus.FAILED
                if self._journal is not None:
                    self._journal.mark_failed(gateway_reference, message)
                raise VerificationError(message, reference=gateway_reference) from e

            result = SettlementResult(
                success=True,
                identifier=identifier,
                kind=kind,
                message=message or VERIFIED_MESSAGE,
            )

            if cart is not None:
                cart.clear_lines(settled_line_ids)
            if session is not None:
                session.status = SessionStatus.CONFIRMED
            if self._journal is not None:
                self._journal.mark_confirmed(gateway_reference, identifier)

            logger.info("Reference %s settled as %s %s", gateway_reference, kind.value, identifier)
            with self._lock:
                self._settled[gateway_reference] = result
            return result
        finally:
            with self._lock:
                self._in_flight.discard(gateway_reference)

    def _call_backend(self, reference: str, kind: IntentKind) -> tuple[str, str]:
        # Settles an existing pre-order record.
        if kind == IntentKind.BALANCE:
            paid = self._backend.verify_preorder_payment(reference)
            return paid.pre_order_number, paid.message
        if kind == IntentKind.PREORDER:
            verified = self._backend.verify_preorder(reference)
            return verified.pre_order_number, verified.message
        order = self._backend.verify_order(reference)
        return order.order_number, order.message
