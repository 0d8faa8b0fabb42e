from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Union

from services.checkout.app.services.errors import ValidationError


class PaymentType(str, Enum):
    DEPOSIT = "deposit"
    FULL = "full"


class FulfillmentMethod(str, Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class IntentKind(str, Enum):
    ORDER = "order"
    PREORDER = "preorder"
    BALANCE = "balance"


class SessionStatus(str, Enum):
    PENDING = "pending"
    VERIFYING = "verifying"
    CONFIRMED = "confirmed"
    FAILED = "failed"


def to_minor_units(amount: Decimal) -> int:
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True, slots=True)
class ContactDetails:
    first_name: str
    last_name: str
    email: str
    phone: str

    def missing_fields(self) -> list[str]:
        missing = []
        for name in ("first_name", "last_name", "email", "phone"):
            if not str(getattr(self, name) or "").strip():
                missing.append(name)
        if "email" not in missing and "@" not in self.email:
            missing.append("email")
        return missing


@dataclass(frozen=True, slots=True)
class Fulfillment:
    method: FulfillmentMethod
    shipping_address: str | None = None
    city: str | None = None
    state: str | None = None
    pickup_location: str | None = None

    def missing_fields(self) -> list[str]:
        if self.method == FulfillmentMethod.DELIVERY:
            required = ("shipping_address", "city", "state")
        else:
            required = ("pickup_location",)
        return [name for name in required if not str(getattr(self, name) or "").strip()]

    def as_payload(self) -> dict[str, str]:
        payload = {"fulfillment_method": self.method.value}
        if self.method == FulfillmentMethod.DELIVERY:
            payload.update(
                {
                    "shipping_address": self.shipping_address or "",
                    "city": self.city or "",
                    "state": self.state or "",
                }
            )
        else:
            payload["pickup_location"] = self.pickup_location or ""
        return payload


def validate_details(contact: ContactDetails, fulfillment: Fulfillment) -> None:
    """Raise ValidationError unless contact and fulfillment fields are complete."""

    missing = contact.missing_fields() + fulfillment.missing_fields()
    if missing:
        raise ValidationError(
            "Please complete your contact and fulfillment details: " + ", ".join(missing),
            step="CART_REVIEW",
            fields=missing,
        )


def contact_payload(contact: ContactDetails) -> dict[str, str]:
    return {
        "customer_email": contact.email.strip(),
        "customer_phone": contact.phone.strip(),
        "first_name": contact.first_name.strip(),
        "last_name": contact.last_name.strip(),
    }


@dataclass(frozen=True, slots=True)
class OrderLineItem:
    product_id: str
    quantity: int


@dataclass(frozen=True, slots=True)
class OrderIntent:
    contact: ContactDetails
    fulfillment: Fulfillment
    items: tuple[OrderLineItem, ...]
    line_ids: tuple[str, ...] = ()
    promo_code: str | None = None
    payment_method: str = "card"

    kind = IntentKind.ORDER

    @property
    def payer_email(self) -> str:
        return self.contact.email

    def as_payload(self) -> dict:
        payload: dict = {
            **contact_payload(self.contact),
            **self.fulfillment.as_payload(),
            "payment_method": self.payment_method,
            "cart_items": [
                {"product_id": item.product_id, "quantity": item.quantity} for item in self.items
            ],
        }
        if self.promo_code:
            payload["promo_code"] = self.promo_code
        return payload


@dataclass(frozen=True, slots=True)
class PreOrderIntent:
    pre_order_id: str
    quantity: int
    payment_type: PaymentType
    contact: ContactDetails
    fulfillment: Fulfillment
    line_ids: tuple[str, ...] = ()
    notes: str | None = None

    kind = IntentKind.PREORDER

    @property
    def payer_email(self) -> str:
        return self.contact.email

    def as_payload(self) -> dict:
        payload: dict = {
            "pre_order_id": self.pre_order_id,
            "quantity": self.quantity,
            "payment_type": self.payment_type.value,
            **contact_payload(self.contact),
            **self.fulfillment.as_payload(),
        }
        if self.notes:
            payload["notes"] = self.notes
        return payload


@dataclass(frozen=True, slots=True)
class RemainingBalanceIntent:
    customer_pre_order_id: str
    pre_order_number: str
    payer_email: str
    currency: str
    amount_due: Decimal
    payment_type: PaymentType = PaymentType.FULL
    line_ids: tuple[str, ...] = ()

    kind = IntentKind.BALANCE

    def as_payload(self) -> dict:
        return {
            "customer_pre_order_id": self.customer_pre_order_id,
            "payment_type": PaymentType.FULL.value,
        }


Intent = Union[OrderIntent, PreOrderIntent, RemainingBalanceIntent]


@dataclass(slots=True)
class PaymentSession:
    reference: str
    amount: Decimal
    currency: str
    intent: Intent
    status: SessionStatus = SessionStatus.PENDING
    notices: list[str] = field(default_factory=list)

    @property
    def amount_minor_units(self) -> int:
        return to_minor_units(self.amount)


@dataclass(frozen=True, slots=True)
class SettlementResult:
    success: bool
    identifier: str
    kind: IntentKind
    message: str

    @property
    def confirmation_path(self) -> str:
        if self.kind in (IntentKind.PREORDER, IntentKind.BALANCE):
            return f"/pre-orders/confirmation/{self.identifier}"
        return f"/order-confirmation/{self.identifier}"
