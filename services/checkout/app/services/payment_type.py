"""Deposit vs. full payment resolution for pre-order lines.

Deposit is offered only when the catalog carries a positive per-unit deposit.
A non-positive payable under any path is bad catalog data and blocks checkout.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from services.checkout.app.services.cart_store import CartLine, PreOrderMeta
from services.checkout.app.services.errors import PricingError
from services.checkout.app.services.intents import PaymentType

logger = logging.getLogger(__name__)

DEPOSIT_UNAVAILABLE_NOTICE = (
    "Deposit payment is not available for this pre-order; the full amount will be charged."
)


@dataclass(frozen=True, slots=True)
class PaymentResolution:
    payment_type: PaymentType
    payable: Decimal
    notice: str | None = None


def deposit_available(meta: PreOrderMeta) -> bool:
    return meta.deposit_per_unit is not None and meta.deposit_per_unit > 0


def resolve(meta: PreOrderMeta, quantity: int, preference: PaymentType) -> PaymentResolution:
    notice = None
    if not deposit_available(meta):
        if preference == PaymentType.DEPOSIT:
            logger.info("Deposit unavailable for pre-order %s; forcing full", meta.pre_order_id)
        payment_type = PaymentType.FULL
        notice = DEPOSIT_UNAVAILABLE_NOTICE
        payable = meta.unit_price * quantity
    elif preference == PaymentType.DEPOSIT:
        payment_type = PaymentType.DEPOSIT
        payable = meta.deposit_per_unit * quantity
    else:
        payment_type = PaymentType.FULL
        payable = meta.unit_price * quantity

    if payable <= 0:
        raise PricingError(payable, line_id=f"preorder:{meta.pre_order_id}")

    return PaymentResolution(payment_type=payment_type, payable=payable, notice=notice)


def resolve_order_total(lines: Iterable[CartLine]) -> Decimal:
    lines = list(lines)
    payable = sum((line.line_total for line in lines), start=Decimal("0"))
    if payable <= 0:
        raise PricingError(payable)
    return payable


def _to_decimal(value: Any) -> Decimal | None:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value).replace(",", "").strip())
    except InvalidOperation:
        return None


def deposit_per_unit_from_catalog(raw: Mapping[str, Any]) -> Decimal | None:
    """Derive the per-unit deposit from a catalog pre-order row.

    ``deposit_amount`` wins. ``deposit_percentage`` applies only when no amount
    is present and a price is known.
    """

    amount = _to_decimal(raw.get("deposit_amount"))
    if amount is not None:
        return amount

    pct = _to_decimal(raw.get("deposit_percentage"))
    price = _to_decimal(
        raw.get("preorder_price") or raw.get("pre_order_price") or raw.get("price")
    )
    if pct is None or not price:
        return None

    return (pct / 100 * price).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
