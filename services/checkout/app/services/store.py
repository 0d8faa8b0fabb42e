from __future__ import annotations

import os
import threading
from dataclasses import dataclass, field
from uuid import uuid4

from services.checkout.app.backend.base import BackendClient
from services.checkout.app.backend.factory import get_backend_client
from services.checkout.app.db.database import database_url
from services.checkout.app.services.cart_store import CartStore
from services.checkout.app.services.checkout_flow import CheckoutFlow, open_payment
from services.checkout.app.services.confirmation import ConfirmationResolver, normalize_identifier
from services.checkout.app.services.errors import NotFoundError, ValidationError
from services.checkout.app.services.gateway_base import GatewayAdapter, GatewayHandle
from services.checkout.app.services.gateway_factory import get_gateway_adapter
from services.checkout.app.services.intents import IntentKind, PaymentSession, SettlementResult
from services.checkout.app.services.journal import AttemptJournal
from services.checkout.app.services.session_initiator import SessionInitiator
from services.checkout.app.services.verification import VerificationCoordinator


@dataclass
class BalancePayment:
    """A remaining-balance payment started from a confirmation page."""

    session: PaymentSession
    handle: GatewayHandle | None = None
    result: SettlementResult | None = None
    abandoned: bool = False


class InMemoryStore:
    def __init__(self) -> None:
        self._carts: dict[str, CartStore] = {}
        self._checkouts: dict[str, CheckoutFlow] = {}
        self._payments: dict[str, BalancePayment] = {}

    def create_cart(self) -> CartStore:
        cart = CartStore(cart_id=uuid4().hex)
        self._carts[cart.cart_id] = cart
        return cart

    def get_cart(self, cart_id: str) -> CartStore:
        cart = self._carts.get(cart_id)
        if cart is None:
            raise NotFoundError("Cart not found")
        return cart

    def save_checkout(self, flow: CheckoutFlow) -> None:
        self._checkouts[flow.checkout_id] = flow

    def get_checkout(self, checkout_id: str) -> CheckoutFlow:
        flow = self._checkouts.get(checkout_id)
        if flow is None:
            raise NotFoundError("Checkout not found")
        return flow

    def save_payment(self, payment: BalancePayment) -> None:
        self._payments[payment.session.reference] = payment

    def get_payment(self, reference: str) -> BalancePayment:
        payment = self._payments.get(reference)
        if payment is None:
            raise NotFoundError("Payment not found")
        return payment


@dataclass
class Runtime:
    """Process-wide collaborators shared by every request."""

    backend: BackendClient
    gateway: GatewayAdapter
    journal: AttemptJournal
    coordinator: VerificationCoordinator
    currency: str = "NGN"
    store: InMemoryStore = field(default_factory=InMemoryStore)
    _balance_initiators: dict[str, SessionInitiator] = field(
        default_factory=dict, init=False, repr=False
    )
    _initiators_lock: threading.Lock = field(
        default_factory=threading.Lock, init=False, repr=False
    )

    def new_checkout(self, cart: CartStore) -> CheckoutFlow:
        flow = CheckoutFlow(
            uuid4().hex,
            cart,
            backend=self.backend,
            gateway=self.gateway,
            coordinator=self.coordinator,
            journal=self.journal,
            currency=self.currency,
        )
        self.store.save_checkout(flow)
        return flow

    def confirmation_resolver(self, identifier: str) -> ConfirmationResolver:
        """Resolver for one confirmation page.

        Every request for the same pre-order shares one ``SessionInitiator``, so
        a second balance session cannot start while one is being created.
        """

        return ConfirmationResolver(self.backend, initiator=self.balance_initiator(identifier))

    def balance_initiator(self, identifier: str) -> SessionInitiator:
        key = normalize_identifier(identifier)
        with self._initiators_lock:
            initiator = self._balance_initiators.get(key)
            if initiator is None:
                initiator = SessionInitiator(
                    self.backend, journal=self.journal, currency=self.currency
                )
                self._balance_initiators[key] = initiator
            return initiator

    def start_balance_payment(self, session: PaymentSession) -> BalancePayment:
        payment = BalancePayment(session=session)
        self.store.save_payment(payment)

        def on_success(gateway_reference: str) -> SettlementResult:
            if gateway_reference != session.reference:
                raise ValidationError(
                    "Payment reference does not match this payment", step="CONFIRMATION"
                )
            payment.result = self.coordinator.verify_and_settle(
                gateway_reference, IntentKind.BALANCE, session=session
            )
            return payment.result

        def on_close() -> None:
            payment.abandoned = True
            self.journal.mark_abandoned(session.reference)

        payment.handle = open_payment(
            self.gateway, session, on_success=on_success, on_close=on_close
        )
        return payment


_RUNTIME: Runtime | None = None
_RUNTIME_KEY: tuple[str, ...] | None = None
_RUNTIME_LOCK = threading.Lock()


def _runtime_key() -> tuple[str, ...]:
    return (
        os.getenv("VOLTCART_BACKEND", "fake").strip().lower(),
        os.getenv("VOLTCART_BACKEND_URL", ""),
        os.getenv("VOLTCART_GATEWAY_ADAPTER", "mock").strip().lower(),
        os.getenv("VOLTCART_PAYSTACK_PUBLIC_KEY", ""),
        os.getenv("VOLTCART_CURRENCY", "NGN").strip().upper(),
        database_url(),
    )


def get_runtime() -> Runtime:
    """Return the cached runtime.

    Cached on the configuring env vars so tests can switch adapters or point
    DATABASE_URL at a temp file before first use.
    """

    global _RUNTIME, _RUNTIME_KEY

    key = _runtime_key()
    with _RUNTIME_LOCK:
        if _RUNTIME is not None and _RUNTIME_KEY == key:
            return _RUNTIME

        backend = get_backend_client()
        journal = AttemptJournal()
        _RUNTIME = Runtime(
            backend=backend,
            gateway=get_gateway_adapter(),
            journal=journal,
            coordinator=VerificationCoordinator(backend, journal=journal),
            currency=key[4],
        )
        _RUNTIME_KEY = key
        return _RUNTIME


def reset_runtime() -> None:
    global _RUNTIME, _RUNTIME_KEY

    with _RUNTIME_LOCK:
        _RUNTIME = None
        _RUNTIME_KEY = None
