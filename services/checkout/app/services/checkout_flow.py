from __future__ import annotations

import logging
from typing import Any

from services.checkout.app.backend.base import BackendClient
from services.checkout.app.services import payment_type as resolver
from services.checkout.app.services.cart_store import CartLine, CartStore
from services.checkout.app.services.errors import (
    CheckoutError,
    InvalidTransition,
    ValidationError,
    VerificationError,
)
from services.checkout.app.services.gateway_base import (
    CloseCallback,
    GatewayAdapter,
    GatewayConfig,
    GatewayHandle,
    SuccessCallback,
)
from services.checkout.app.services.intents import (
    ContactDetails,
    Fulfillment,
    IntentKind,
    OrderIntent,
    OrderLineItem,
    PaymentSession,
    PaymentType,
    PreOrderIntent,
    SettlementResult,
    validate_details,
)
from services.checkout.app.services.journal import AttemptJournal
from services.checkout.app.services.session_initiator import SessionInitiator
from services.checkout.app.services.state_machine import (
    CheckoutEvent,
    CheckoutState,
    transition,
)
from services.checkout.app.services.verification import VerificationCoordinator

logger = logging.getLogger(__name__)

SESSION_UNAVAILABLE_MESSAGE = "Unable to start payment right now. Please try again."


def open_payment(
    gateway: GatewayAdapter,
    session: PaymentSession,
    *,
    on_success: SuccessCallback,
    on_close: CloseCallback,
) -> GatewayHandle:
    config = GatewayConfig(
        reference=session.reference,
        payer_email=session.intent.payer_email,
        amount_minor_units=session.amount_minor_units,
        currency=session.currency,
    )
    return gateway.open(config, on_success=on_success, on_close=on_close)


class CheckoutFlow:
    """Drives one cart through the checkout states up to settlement.

    ``submitting`` is the loading flag: it is raised when a session is requested
    and drops once the gateway closes or verification finishes.
    """

    def __init__(
        self,
        checkout_id: str,
        cart: CartStore,
        *,
        backend: BackendClient,
        gateway: GatewayAdapter,
        coordinator: VerificationCoordinator,
        journal: AttemptJournal | None = None,
        currency: str = "NGN",
    ) -> None:
        self.kind, _ = cart.checkout_lines()

        self.checkout_id = checkout_id
        self.cart = cart
        self.state = CheckoutState.CART_REVIEW
        self.submitting = False
        self.contact: ContactDetails | None = None
        self.fulfillment: Fulfillment | None = None
        self.promo_code: str | None = None
        self.notes: str | None = None
        self.payment_type: PaymentType | None = None
        self.payable_preview: str | None = None
        self.notices: list[str] = []
        self.error: str | None = None
        self.session: PaymentSession | None = None
        self.handle: GatewayHandle | None = None
        self.result: SettlementResult | None = None

        self._gateway = gateway
        self._coordinator = coordinator
        self._journal = journal
        self._initiator = SessionInitiator(backend, journal=journal, currency=currency)
        self._settled_line_ids: tuple[str, ...] = ()

    @property
    def is_preorder(self) -> bool:
        return self.kind == IntentKind.PREORDER

    @property
    def initiator(self) -> SessionInitiator:
        return self._initiator

    def submit_details(
        self,
        contact: ContactDetails,
        fulfillment: Fulfillment,
        *,
        promo_code: str | None = None,
        notes: str | None = None,
    ) -> None:
        next_state = self._next(CheckoutEvent.DETAILS_SUBMITTED)
        try:
            validate_details(contact, fulfillment)
        except ValidationError:
            self.state = CheckoutState.CART_REVIEW
            raise

        self.contact = contact
        self.fulfillment = fulfillment
        self.promo_code = (promo_code or "").strip() or None
        self.notes = notes
        self.error = None
        self.state = next_state

    def choose_payment_type(self, preference: PaymentType) -> resolver.PaymentResolution:
        next_state = self._next(CheckoutEvent.PAYMENT_TYPE_CHOSEN)

        line = self._preorder_line()
        resolution = resolver.resolve(line.meta, line.quantity, preference)

        self.payment_type = resolution.payment_type
        self.payable_preview = str(resolution.payable)
        self.notices = [resolution.notice] if resolution.notice else []
        self.state = next_state
        return resolution

    def start_session(self) -> PaymentSession:
        self._next(CheckoutEvent.SESSION_REQUESTED)

        kind, lines = self.cart.checkout_lines()
        if kind != self.kind:
            raise ValidationError("Cart contents changed; please review your cart again")
        intent = self._build_intent(lines)

        self.state = CheckoutState.SESSION_PENDING
        self.submitting = True
        self.error = None
        try:
            session = self._initiator.initialize_session(
                intent, lines, checkout_id=self.checkout_id
            )
        except CheckoutError as e:
            self._session_failed(str(e))
            raise
        except Exception:
            logger.exception("Session request failed for checkout %s", self.checkout_id)
            self._session_failed(SESSION_UNAVAILABLE_MESSAGE)
            raise

        self.session = session
        self.result = None
        self._settled_line_ids = tuple(line.id for line in lines)
        for notice in session.notices:
            if notice not in self.notices:
                self.notices.append(notice)

        self.state = self._next(CheckoutEvent.SESSION_CREATED)
        self.handle = open_payment(
            self._gateway, session, on_success=self._on_success, on_close=self._on_close
        )
        return session

    def gateway_success(self, gateway_reference: str | None = None) -> SettlementResult | None:
        """Forward the widget's success callback; returns None if it was dropped."""

        if self.handle is None or self.session is None:
            raise self._invalid(CheckoutEvent.GATEWAY_SUCCESS)
        return self.handle.success(gateway_reference or self.session.reference)

    def gateway_close(self) -> None:
        if self.handle is None:
            raise self._invalid(CheckoutEvent.GATEWAY_CLOSED)
        self.handle.close()

    def restart(self) -> None:
        self.state = self._next(CheckoutEvent.RESTART)
        self.session = None
        self.handle = None
        self.result = None
        self.error = None
        self.notices = []
        self.payment_type = None
        self.payable_preview = None
        self.submitting = False

    def snapshot(self) -> dict[str, Any]:
        session = None
        if self.session is not None:
            session = {
                "reference": self.session.reference,
                "amount": str(self.session.amount),
                "amount_minor_units": self.session.amount_minor_units,
                "currency": self.session.currency,
                "status": self.session.status.value,
            }

        result = None
        if self.result is not None:
            result = {
                "identifier": self.result.identifier,
                "kind": self.result.kind.value,
                "message": self.result.message,
                "confirmation_path": self.result.confirmation_path,
            }

        widget = None
        if self.handle is not None and self.state == CheckoutState.GATEWAY_OPEN:
            widget = self.handle.widget

        return {
            "checkout_id": self.checkout_id,
            "cart_id": self.cart.cart_id,
            "kind": self.kind.value,
            "state": self.state.value,
            "submitting": self.submitting,
            "payment_type": self.payment_type.value if self.payment_type else None,
            "payable_preview": self.payable_preview,
            "notices": list(self.notices),
            "error": self.error,
            "session": session,
            "widget": widget,
            "result": result,
        }

    def _session_failed(self, message: str) -> None:
        self.state = self._next(CheckoutEvent.SESSION_FAILED)
        self.submitting = False
        self.error = message

    def _on_success(self, gateway_reference: str) -> SettlementResult:
        if self.session is None:
            raise self._invalid(CheckoutEvent.GATEWAY_SUCCESS)
        if gateway_reference != self.session.reference:
            raise ValidationError(
                "Payment reference does not match this checkout", step=self.state.value
            )

        # Repeated callbacks go straight to the verify guard.
        if self.state in (CheckoutState.VERIFYING, CheckoutState.SETTLED):
            return self._verify(gateway_reference)

        self.state = self._next(CheckoutEvent.GATEWAY_SUCCESS)
        if self._journal is not None:
            self._journal.mark_gateway_success(gateway_reference)

        try:
            result = self._verify(gateway_reference)
        except VerificationError as e:
            self.state = self._next(CheckoutEvent.VERIFICATION_FAILED)
            self.submitting = False
            self.error = str(e)
            raise

        self.state = self._next(CheckoutEvent.VERIFIED)
        self.submitting = False
        self.result = result
        return result

    def _on_close(self) -> None:
        self.state = self._next(CheckoutEvent.GATEWAY_CLOSED)
        if self._journal is not None and self.session is not None:
            self._journal.mark_abandoned(self.session.reference)

        logger.info("Checkout %s abandoned at the gateway", self.checkout_id)
        self.state = self._next(CheckoutEvent.RESET)
        self.submitting = False

    def _verify(self, gateway_reference: str) -> SettlementResult:
        return self._coordinator.verify_and_settle(
            gateway_reference,
            self.kind,
            self._settled_line_ids,
            cart=self.cart,
            session=self.session,
        )

    def _build_intent(self, lines: list[CartLine]) -> OrderIntent | PreOrderIntent:
        if self.contact is None or self.fulfillment is None:
            raise ValidationError("Please complete your contact and fulfillment details")

        if self.is_preorder:
            line = lines[0]
            if line.meta is None:
                raise ValidationError("Pre-order pricing is missing for this cart line")
            return PreOrderIntent(
                pre_order_id=line.meta.pre_order_id,
                quantity=line.quantity,
                payment_type=self.payment_type or PaymentType.FULL,
                contact=self.contact,
                fulfillment=self.fulfillment,
                line_ids=(line.id,),
                notes=self.notes,
            )

        return OrderIntent(
            contact=self.contact,
            fulfillment=self.fulfillment,
            items=tuple(
                OrderLineItem(product_id=line.id, quantity=line.quantity) for line in lines
            ),
            line_ids=tuple(line.id for line in lines),
            promo_code=self.promo_code,
        )

    def _preorder_line(self) -> CartLine:
        lines = self.cart.preorder_lines()
        if not lines or lines[0].meta is None:
            raise ValidationError("Pre-order pricing is missing for this cart line")
        return lines[0]

    def _next(self, event: CheckoutEvent) -> CheckoutState:
        return transition(self.state, event, is_preorder=self.is_preorder)

    def _invalid(self, event: CheckoutEvent) -> InvalidTransition:
        return InvalidTransition(self.state.value, event.value)
