from __future__ import annotations

from fastapi import APIRouter, Depends
from services.checkout.app.models.checkout import (
    CheckoutOut,
    CheckoutStartRequest,
    DetailsRequest,
    GatewaySuccessRequest,
    PaymentTypeRequest,
)
from services.checkout.app.routers.http_errors import raise_checkout_http_error, runtime
from services.checkout.app.services.checkout_flow import CheckoutFlow
from services.checkout.app.services.intents import ContactDetails, Fulfillment
from services.checkout.app.services.store import Runtime

router = APIRouter()


@router.post("/v1/checkouts", response_model=CheckoutOut)
def start_checkout(payload: CheckoutStartRequest, rt: Runtime = Depends(runtime)) -> CheckoutOut:
    try:
        cart = rt.store.get_cart(payload.cart_id)
        flow = rt.new_checkout(cart)
    except Exception as e:
        raise_checkout_http_error(e)
    return _checkout_out(flow)


@router.get("/v1/checkouts/{checkout_id}", response_model=CheckoutOut)
def get_checkout(checkout_id: str, rt: Runtime = Depends(runtime)) -> CheckoutOut:
    try:
        flow = rt.store.get_checkout(checkout_id)
    except Exception as e:
        raise_checkout_http_error(e)
    return _checkout_out(flow)


@router.post("/v1/checkouts/{checkout_id}/details", response_model=CheckoutOut)
def submit_details(
    checkout_id: str,
    payload: DetailsRequest,
    rt: Runtime = Depends(runtime),
) -> CheckoutOut:
    try:
        flow = rt.store.get_checkout(checkout_id)
        flow.submit_details(
            ContactDetails(**payload.contact.model_dump()),
            Fulfillment(**payload.fulfillment.model_dump()),
            promo_code=payload.promo_code,
            notes=payload.notes,
        )
    except Exception as e:
        raise_checkout_http_error(e)
    return _checkout_out(flow)


@router.post("/v1/checkouts/{checkout_id}/payment-type", response_model=CheckoutOut)
def choose_payment_type(
    checkout_id: str,
    payload: PaymentTypeRequest,
    rt: Runtime = Depends(runtime),
) -> CheckoutOut:
    try:
        flow = rt.store.get_checkout(checkout_id)
        flow.choose_payment_type(payload.payment_type)
    except Exception as e:
        raise_checkout_http_error(e)
    return _checkout_out(flow)


@router.post("/v1/checkouts/{checkout_id}/session", response_model=CheckoutOut)
def start_session(checkout_id: str, rt: Runtime = Depends(runtime)) -> CheckoutOut:
    try:
        flow = rt.store.get_checkout(checkout_id)
        flow.start_session()
    except Exception as e:
        raise_checkout_http_error(e)
    return _checkout_out(flow)


@router.post("/v1/checkouts/{checkout_id}/gateway/success", response_model=CheckoutOut)
def gateway_success(
    checkout_id: str,
    payload: GatewaySuccessRequest,
    rt: Runtime = Depends(runtime),
) -> CheckoutOut:
    try:
        flow = rt.store.get_checkout(checkout_id)
        flow.gateway_success(payload.reference)
    except Exception as e:
        raise_checkout_http_error(e)
    return _checkout_out(flow)


@router.post("/v1/checkouts/{checkout_id}/gateway/close", response_model=CheckoutOut)
def gateway_close(checkout_id: str, rt: Runtime = Depends(runtime)) -> CheckoutOut:
    try:
        flow = rt.store.get_checkout(checkout_id)
        flow.gateway_close()
    except Exception as e:
        raise_checkout_http_error(e)
    return _checkout_out(flow)


@router.post("/v1/checkouts/{checkout_id}/restart", response_model=CheckoutOut)
def restart_checkout(checkout_id: str, rt: Runtime = Depends(runtime)) -> CheckoutOut:
    try:
        flow = rt.store.get_checkout(checkout_id)
        flow.restart()
    except Exception as e:
        raise_checkout_http_error(e)
    return _checkout_out(flow)


def _checkout_out(flow: CheckoutFlow) -> CheckoutOut:
    return CheckoutOut(**flow.snapshot())
