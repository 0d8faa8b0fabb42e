from __future__ import annotations

from decimal import Decimal
from typing import Any, Protocol

from pydantic import BaseModel, Field

from services.checkout.app.services.errors import GENERIC_NETWORK_MESSAGE


class BackendError(Exception):
    """The commerce backend refused a request or could not be reached.

    ``message`` is the backend's own message when it sent one.
    """

    def __init__(
        self,
        message: str = GENERIC_NETWORK_MESSAGE,
        *,
        status_code: int | None = None,
        payload: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.payload = payload


class MalformedResponseError(BackendError):
    def __init__(self, endpoint: str, payload: Any) -> None:
        super().__init__(f"Unexpected response from {endpoint}", payload=payload)
        self.endpoint = endpoint


class SessionData(BaseModel):
    reference: str
    amount: Decimal | None = None
    currency: str | None = None
    authorization_url: str | None = None
    access_code: str | None = None


class OrderSessionResponse(SessionData):
    customer_name: str | None = None
    items_count: int | None = None


class PreOrderSessionResponse(SessionData):
    payment_type: str | None = None
    product_name: str | None = None
    customer_name: str | None = None


class RemainingBalanceSessionResponse(SessionData):
    payment_type: str = "full"


class OrderVerifyResponse(BaseModel):
    order_number: str
    message: str = ""


class PreOrderVerifyResponse(BaseModel):
    pre_order_number: str
    payment_status: str | None = None
    message: str = ""


class PreOrderPaymentVerifyResponse(BaseModel):
    pre_order_number: str
    payment_status: str | None = None
    remaining_amount: Decimal | None = None
    message: str = ""


class PayTokenResponse(BaseModel):
    pre_order_id: str | None = None
    pre_order_number: str | None = None
    allowed_payment_type: str = "full"
    amount_due: Decimal = Decimal("0")
    customer_name: str = ""


class OrderRecord(BaseModel):
    order_number: str
    customer_name: str = ""
    customer_email: str = ""
    status: str = "pending"
    payment_status: str = ""
    formatted_total: str = ""
    fulfillment_method: str = ""
    shipping_address: str | None = None
    pickup_location: str | None = None
    items: list[dict[str, Any]] = Field(default_factory=list)


class CustomerPreOrderRecord(BaseModel):
    id: str
    pre_order_id: str | None = None
    pre_order_number: str
    customer_email: str = ""
    first_name: str = ""
    last_name: str = ""
    quantity: int = 1
    unit_price: Decimal = Decimal("0")
    deposit_amount: Decimal = Decimal("0")
    remaining_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    currency: str = "NGN"
    status: str = "pending"
    payment_status: str = "pending"
    fulfillment_method: str = ""


class BackendClient(Protocol):
    def create_order_session(self, payload: dict) -> OrderSessionResponse: ...

    def create_preorder_session(self, payload: dict) -> PreOrderSessionResponse: ...

    def create_remaining_balance_session(
        self, payload: dict
    ) -> RemainingBalanceSessionResponse: ...

    def verify_order(self, reference: str) -> OrderVerifyResponse: ...

    def verify_preorder(self, reference: str) -> PreOrderVerifyResponse: ...

    def verify_preorder_payment(self, reference: str) -> PreOrderPaymentVerifyResponse: ...

    def exchange_pay_token(self, token: str) -> PayTokenResponse: ...

    def get_order(self, order_number: str) -> OrderRecord: ...

    def get_customer_preorder(self, pre_order_number: str) -> CustomerPreOrderRecord: ...
