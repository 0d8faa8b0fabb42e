from __future__ import annotations

from packages.shared.schemas.checkout_v1 import (
    CheckoutStateV1,
    GatewayWidgetV1,
    PaymentSessionV1,
    SettlementV1,
)
from pydantic import BaseModel, Field
from services.checkout.app.services.intents import FulfillmentMethod, PaymentType


class CheckoutStartRequest(BaseModel):
    cart_id: str


class ContactInput(BaseModel):
    # Blank fields are reported by the checkout itself, with every missing field named.
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""


class FulfillmentInput(BaseModel):
    method: FulfillmentMethod
    shipping_address: str | None = None
    city: str | None = None
    state: str | None = None
    pickup_location: str | None = None


class DetailsRequest(BaseModel):
    contact: ContactInput
    fulfillment: FulfillmentInput
    promo_code: str | None = None
    notes: str | None = None


class PaymentTypeRequest(BaseModel):
    payment_type: PaymentType


class GatewaySuccessRequest(BaseModel):
    reference: str | None = None


class CheckoutOut(BaseModel):
    checkout_id: str
    cart_id: str
    kind: str
    state: CheckoutStateV1
    submitting: bool
    payment_type: str | None = None
    payable_preview: str | None = None
    notices: list[str] = Field(default_factory=list)
    error: str | None = None

    session: PaymentSessionV1 | None = None
    widget: GatewayWidgetV1 | None = None
    result: SettlementV1 | None = None
