from __future__ import annotations

from decimal import Decimal

import pytest
from services.checkout.app.services.cart_store import PreOrderMeta
from services.checkout.app.services.errors import PricingError
from services.checkout.app.services.intents import PaymentType
from services.checkout.app.services.payment_type import (
    DEPOSIT_UNAVAILABLE_NOTICE,
    deposit_per_unit_from_catalog,
    resolve,
    resolve_order_total,
)
from services.checkout.tests.factories import ordinary_line


def _meta(price: str, deposit: str | None) -> PreOrderMeta:
    return PreOrderMeta(
        pre_order_id="7",
        unit_price=Decimal(price),
        deposit_per_unit=Decimal(deposit) if deposit is not None else None,
    )


def test_deposit_preference_charges_deposit_per_unit() -> None:
    resolution = resolve(_meta("50000", "10000"), 2, PaymentType.DEPOSIT)

    assert resolution.payment_type == PaymentType.DEPOSIT
    assert resolution.payable == Decimal("20000")
    assert resolution.notice is None


def test_full_preference_charges_unit_price() -> None:
    resolution = resolve(_meta("50000", "10000"), 2, PaymentType.FULL)

    assert resolution.payment_type == PaymentType.FULL
    assert resolution.payable == Decimal("100000")


@pytest.mark.parametrize("deposit", [None, "0", "-5"])
@pytest.mark.parametrize("preference", [PaymentType.DEPOSIT, PaymentType.FULL])
def test_missing_deposit_forces_full(deposit: str | None, preference: PaymentType) -> None:
    resolution = resolve(_meta("50000", deposit), 2, preference)

    assert resolution.payment_type == PaymentType.FULL
    assert resolution.payable == Decimal("100000")
    assert resolution.notice == DEPOSIT_UNAVAILABLE_NOTICE


def test_zero_price_is_a_pricing_error() -> None:
    with pytest.raises(PricingError) as exc:
        resolve(_meta("0", None), 1, PaymentType.FULL)

    assert exc.value.line_id == "preorder:7"


def test_order_total_is_cart_total() -> None:
    line = ordinary_line("12", "15000")
    line.quantity = 3

    assert resolve_order_total([line]) == Decimal("45000")


def test_order_total_rejects_free_cart() -> None:
    with pytest.raises(PricingError):
        resolve_order_total([ordinary_line("12", "0")])


def test_catalog_deposit_amount_wins_over_percentage() -> None:
    raw = {"deposit_amount": "12000", "deposit_percentage": "50", "price": "50000"}
    assert deposit_per_unit_from_catalog(raw) == Decimal("12000")


def test_catalog_deposit_percentage_used_without_amount() -> None:
    raw = {"deposit_amount": None, "deposit_percentage": "25", "preorder_price": "50,000"}
    assert deposit_per_unit_from_catalog(raw) == Decimal("12500")


def test_catalog_without_deposit_info() -> None:
    assert deposit_per_unit_from_catalog({"price": "50000"}) is None
