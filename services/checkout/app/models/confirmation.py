from __future__ import annotations

from decimal import Decimal
from typing import Any

from packages.shared.schemas.checkout_v1 import GatewayWidgetV1, PaymentSessionV1, SettlementV1
from pydantic import BaseModel, Field


class SettlementViewOut(BaseModel):
    kind: str
    identifier: str
    status: str
    status_label: str
    payment_status: str
    is_fully_paid: bool

    customer_name: str = ""
    customer_email: str = ""
    currency: str = "NGN"
    formatted_total: str = ""
    fulfillment_method: str = ""

    total_amount: Decimal | None = None
    deposit_amount: Decimal = Decimal("0")
    remaining_amount: Decimal = Decimal("0")
    amount_due: Decimal | None = None

    can_pay_remaining: bool = False
    token_error: str | None = None
    items: list[dict[str, Any]] = Field(default_factory=list)


class BalancePaymentOut(BaseModel):
    session: PaymentSessionV1
    widget: GatewayWidgetV1 | None = None
    result: SettlementV1 | None = None
    abandoned: bool = False


class ConfirmationPageOut(BaseModel):
    view: SettlementViewOut
    auto_pay_consumed: bool = False
    payment: BalancePaymentOut | None = None


class PayRemainingRequest(BaseModel):
    token: str | None = None
