"""One normalizer per backend endpoint.

The backend wraps most payloads as ``{success, data, message}`` but some
endpoints return bare objects or nest the record one level deeper. Every
shape difference is handled here so call sites only see the DTOs.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from services.checkout.app.backend.base import (
    BackendError,
    CustomerPreOrderRecord,
    MalformedResponseError,
    OrderRecord,
    OrderSessionResponse,
    OrderVerifyResponse,
    PayTokenResponse,
    PreOrderPaymentVerifyResponse,
    PreOrderSessionResponse,
    PreOrderVerifyResponse,
    RemainingBalanceSessionResponse,
)


def extract_message(payload: Any) -> str | None:
    if not isinstance(payload, dict):
        return None

    message = payload.get("message")
    if isinstance(message, str) and message.strip():
        return message

    error = payload.get("error")
    if isinstance(error, dict):
        nested = error.get("message")
        if isinstance(nested, str) and nested.strip():
            return nested
    if isinstance(error, str) and error.strip():
        return error

    errors = payload.get("errors")
    if isinstance(errors, dict):
        msgs: list[str] = []
        for value in errors.values():
            if isinstance(value, list):
                msgs.extend(str(v) for v in value if v)
            elif value:
                msgs.append(str(value))
        if msgs:
            return " ".join(msgs)

    return None


def to_decimal(value: Any) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        return None
    if not amount.is_finite():
        return None
    return amount


def _envelope(endpoint: str, payload: Any, default_message: str) -> dict:
    if not isinstance(payload, dict):
        raise MalformedResponseError(endpoint, payload)

    if payload.get("success") is False:
        raise BackendError(extract_message(payload) or default_message, payload=payload)

    data = payload.get("data")
    if isinstance(data, dict):
        return data
    return payload


def _session_fields(endpoint: str, data: dict) -> dict:
    reference = data.get("reference")
    if not reference:
        raise MalformedResponseError(endpoint, data)

    return {
        "reference": str(reference),
        "amount": to_decimal(data.get("amount")),
        "currency": data.get("currency") or None,
        "authorization_url": data.get("authorization_url"),
        "access_code": data.get("access_code"),
    }


def normalize_order_session(payload: Any) -> OrderSessionResponse:
    endpoint = "orders/initialize-payment-session"
    data = _envelope(endpoint, payload, "Failed to initialize payment session")
    items_count = data.get("items_count")
    return OrderSessionResponse(
        **_session_fields(endpoint, data),
        customer_name=data.get("customer_name"),
        items_count=int(items_count) if str(items_count or "").isdigit() else None,
    )


def normalize_preorder_session(payload: Any) -> PreOrderSessionResponse:
    endpoint = "customer-pre-orders/initialize-payment-session"
    data = _envelope(endpoint, payload, "Failed to initialize payment session")
    return PreOrderSessionResponse(
        **_session_fields(endpoint, data),
        payment_type=data.get("payment_type"),
        product_name=data.get("product_name"),
        customer_name=data.get("customer_name"),
    )


def normalize_remaining_balance_session(payload: Any) -> RemainingBalanceSessionResponse:
    endpoint = "customer-pre-orders/initialize-payment"
    data = _envelope(endpoint, payload, "Failed to initialize payment")
    return RemainingBalanceSessionResponse(
        **_session_fields(endpoint, data),
        payment_type=str(data.get("payment_type") or "full"),
    )


def normalize_order_verify(payload: Any) -> OrderVerifyResponse:
    endpoint = "orders/verify-payment-and-create"
    data = _envelope(endpoint, payload, "Payment verification failed")

    order = data.get("order") if isinstance(data.get("order"), dict) else data
    order_number = order.get("order_number")
    if not order_number:
        raise MalformedResponseError(endpoint, payload)

    return OrderVerifyResponse(
        order_number=str(order_number),
        message=extract_message(payload) or "",
    )


def normalize_preorder_verify(payload: Any) -> PreOrderVerifyResponse:
    endpoint = "customer-pre-orders/verify-payment-and-create"
    data = _envelope(endpoint, payload, "Payment verification failed")

    record = data.get("pre_order") if isinstance(data.get("pre_order"), dict) else data
    number = record.get("pre_order_number")
    if not number:
        raise MalformedResponseError(endpoint, payload)

    return PreOrderVerifyResponse(
        pre_order_number=str(number),
        payment_status=record.get("payment_status"),
        message=extract_message(payload) or "",
    )


def normalize_preorder_payment_verify(payload: Any) -> PreOrderPaymentVerifyResponse:
    """The balance verify returns the updated customer pre-order record."""

    endpoint = "customer-pre-orders/verify-payment"
    data = _envelope(endpoint, payload, "Payment verification failed")

    record = data.get("pre_order") if isinstance(data.get("pre_order"), dict) else data
    number = record.get("pre_order_number")
    if not number:
        raise MalformedResponseError(endpoint, payload)

    return PreOrderPaymentVerifyResponse(
        pre_order_number=str(number),
        payment_status=record.get("payment_status"),
        remaining_amount=to_decimal(record.get("remaining_amount")),
        message=extract_message(payload) or "",
    )


def normalize_pay_token(payload: Any) -> PayTokenResponse:
    endpoint = "customer-pre-orders/pay-ticket"
    data = _envelope(endpoint, payload, "Invalid or expired payment link")

    pre_order_id = data.get("pre_order_id")
    return PayTokenResponse(
        pre_order_id=str(pre_order_id) if pre_order_id is not None else None,
        pre_order_number=data.get("pre_order_number"),
        allowed_payment_type=str(data.get("allowed_payment_type") or "full"),
        amount_due=to_decimal(data.get("amount_due")) or Decimal("0"),
        customer_name=str(data.get("customer_name") or ""),
    )


def normalize_order_record(payload: Any) -> OrderRecord:
    endpoint = "orders/by-number"
    if not isinstance(payload, dict):
        raise MalformedResponseError(endpoint, payload)

    raw = payload.get("order")
    if not isinstance(raw, dict):
        raw = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    if not raw.get("order_number"):
        raise MalformedResponseError(endpoint, payload)

    try:
        return OrderRecord(
            order_number=str(raw["order_number"]),
            customer_name=str(raw.get("customer_name") or ""),
            customer_email=str(raw.get("customer_email") or ""),
            status=str(raw.get("status") or "pending"),
            payment_status=str(raw.get("payment_status") or ""),
            formatted_total=str(raw.get("formatted_total") or ""),
            fulfillment_method=str(raw.get("fulfillment_method") or ""),
            shipping_address=raw.get("shipping_address"),
            pickup_location=raw.get("pickup_location"),
            items=list(raw.get("order_items") or raw.get("items") or []),
        )
    except PydanticValidationError as e:
        raise MalformedResponseError(endpoint, payload) from e


def normalize_customer_preorder(payload: Any) -> CustomerPreOrderRecord:
    endpoint = "customer-pre-orders/{number}"
    if not isinstance(payload, dict):
        raise MalformedResponseError(endpoint, payload)

    raw = payload.get("data") if isinstance(payload.get("data"), dict) else payload
    if not raw.get("pre_order_number") or raw.get("id") is None:
        raise MalformedResponseError(endpoint, payload)

    def money(key: str) -> Decimal:
        return to_decimal(raw.get(key)) or Decimal("0")

    try:
        return CustomerPreOrderRecord(
            id=str(raw["id"]),
            pre_order_id=str(raw["pre_order_id"]) if raw.get("pre_order_id") is not None else None,
            pre_order_number=str(raw["pre_order_number"]),
            customer_email=str(raw.get("customer_email") or ""),
            first_name=str(raw.get("first_name") or ""),
            last_name=str(raw.get("last_name") or ""),
            quantity=int(raw.get("quantity") or 1),
            unit_price=money("unit_price"),
            deposit_amount=money("deposit_amount"),
            remaining_amount=money("remaining_amount"),
            total_amount=money("total_amount"),
            currency=str(raw.get("currency") or "NGN"),
            status=str(raw.get("status") or "pending"),
            payment_status=str(raw.get("payment_status") or "pending"),
            fulfillment_method=str(raw.get("fulfillment_method") or ""),
        )
    except (PydanticValidationError, ValueError) as e:
        raise MalformedResponseError(endpoint, payload) from e
