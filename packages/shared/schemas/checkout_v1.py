"""Shared checkout payload schema (v1).

The storefront renders these payloads and hands ``GatewayWidgetV1`` to the
hosted payment widget unchanged. Keep them backwards compatible once shipped.
"""

from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class CheckoutStateV1(str, Enum):
    CART_REVIEW = "CART_REVIEW"
    FULFILLMENT_SELECTED = "FULFILLMENT_SELECTED"
    PAYMENT_TYPE_SELECTED = "PAYMENT_TYPE_SELECTED"
    SESSION_PENDING = "SESSION_PENDING"
    GATEWAY_OPEN = "GATEWAY_OPEN"
    VERIFYING = "VERIFYING"
    SETTLED = "SETTLED"
    FAILED = "FAILED"
    ABANDONED = "ABANDONED"


class GatewayWidgetV1(BaseModel):
    """Widget config. ``amount`` is in minor currency units."""

    model_config = ConfigDict(populate_by_name=True)

    reference: str
    email: str
    amount: int = Field(..., gt=0)
    public_key: str = Field(..., alias="publicKey")
    currency: str


class PaymentSessionV1(BaseModel):
    reference: str
    amount: Decimal
    amount_minor_units: int
    currency: str
    status: str


class SettlementV1(BaseModel):
    identifier: str
    kind: str
    message: str
    confirmation_path: str
