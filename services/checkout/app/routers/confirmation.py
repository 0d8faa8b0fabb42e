from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import RedirectResponse
from packages.shared.schemas.checkout_v1 import GatewayWidgetV1, PaymentSessionV1, SettlementV1
from services.checkout.app.models.confirmation import (
    BalancePaymentOut,
    ConfirmationPageOut,
    PayRemainingRequest,
    SettlementViewOut,
)
from services.checkout.app.routers.http_errors import raise_checkout_http_error, runtime
from services.checkout.app.services.confirmation import (
    ConfirmationPage,
    SettlementView,
    is_preorder_number,
    normalize_identifier,
)
from services.checkout.app.services.errors import NotFoundError
from services.checkout.app.services.gateway_base import GatewayHandle
from services.checkout.app.services.store import BalancePayment, Runtime

router = APIRouter()


@router.get("/v1/confirmation/orders/{order_number}", response_model=ConfirmationPageOut)
def order_confirmation(
    order_number: str,
    rt: Runtime = Depends(runtime),
) -> ConfirmationPageOut | RedirectResponse:
    if is_preorder_number(order_number):
        return RedirectResponse(
            url=f"/v1/confirmation/preorders/{normalize_identifier(order_number)}",
            status_code=307,
        )

    try:
        view = rt.confirmation_resolver(order_number).resolve(order_number)
    except Exception as e:
        raise_checkout_http_error(e)
    return ConfirmationPageOut(view=_view_out(view))


@router.get("/v1/confirmation/preorders/{pre_order_number}", response_model=ConfirmationPageOut)
def preorder_confirmation(
    pre_order_number: str,
    token: str | None = None,
    action: str | None = None,
    rt: Runtime = Depends(runtime),
) -> ConfirmationPageOut:
    try:
        resolver = rt.confirmation_resolver(pre_order_number)
        page = ConfirmationPage(resolver, resolver.resolve(pre_order_number, token))
        session = page.maybe_auto_pay(action)
        payment = rt.start_balance_payment(session) if session is not None else None
    except Exception as e:
        raise_checkout_http_error(e)

    return ConfirmationPageOut(
        view=_view_out(page.view),
        auto_pay_consumed=page.auto_pay_consumed,
        payment=_payment_out(payment) if payment is not None else None,
    )


@router.post(
    "/v1/confirmation/preorders/{pre_order_number}/pay-remaining",
    response_model=BalancePaymentOut,
)
def pay_remaining(
    pre_order_number: str,
    payload: PayRemainingRequest,
    rt: Runtime = Depends(runtime),
) -> BalancePaymentOut:
    try:
        resolver = rt.confirmation_resolver(pre_order_number)
        view = resolver.resolve(pre_order_number, payload.token)
        payment = rt.start_balance_payment(resolver.pay_remaining(view))
    except Exception as e:
        raise_checkout_http_error(e)
    return _payment_out(payment)


@router.post("/v1/confirmation/payments/{reference}/success", response_model=BalancePaymentOut)
def balance_payment_success(reference: str, rt: Runtime = Depends(runtime)) -> BalancePaymentOut:
    try:
        payment = rt.store.get_payment(reference)
        _handle(payment).success(reference)
    except Exception as e:
        raise_checkout_http_error(e)
    return _payment_out(payment)


@router.post("/v1/confirmation/payments/{reference}/close", response_model=BalancePaymentOut)
def balance_payment_close(reference: str, rt: Runtime = Depends(runtime)) -> BalancePaymentOut:
    try:
        payment = rt.store.get_payment(reference)
        _handle(payment).close()
    except Exception as e:
        raise_checkout_http_error(e)
    return _payment_out(payment)


def _handle(payment: BalancePayment) -> GatewayHandle:
    if payment.handle is None:
        raise NotFoundError("No payment widget is open for this payment")
    return payment.handle


def _view_out(view: SettlementView) -> SettlementViewOut:
    return SettlementViewOut(
        kind=view.kind.value,
        identifier=view.identifier,
        status=view.status,
        status_label=view.status_label,
        payment_status=view.payment_status,
        is_fully_paid=view.is_fully_paid,
        customer_name=view.customer_name,
        customer_email=view.customer_email,
        currency=view.currency,
        formatted_total=view.formatted_total,
        fulfillment_method=view.fulfillment_method,
        total_amount=view.total_amount,
        deposit_amount=view.deposit_amount,
        remaining_amount=view.remaining_amount,
        amount_due=view.amount_due,
        can_pay_remaining=view.can_pay_remaining,
        token_error=view.token_error,
        items=list(view.items),
    )


def _payment_out(payment: BalancePayment) -> BalancePaymentOut:
    session = payment.session
    widget = None
    if payment.handle is not None and payment.handle.outcome is None:
        widget = GatewayWidgetV1(**payment.handle.widget)

    result = None
    if payment.result is not None:
        result = SettlementV1(
            identifier=payment.result.identifier,
            kind=payment.result.kind.value,
            message=payment.result.message,
            confirmation_path=payment.result.confirmation_path,
        )

    return BalancePaymentOut(
        session=PaymentSessionV1(
            reference=session.reference,
            amount=session.amount,
            amount_minor_units=session.amount_minor_units,
            currency=session.currency,
            status=session.status.value,
        ),
        widget=widget,
        result=result,
        abandoned=payment.abandoned,
    )
