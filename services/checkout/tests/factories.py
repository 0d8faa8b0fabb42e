from __future__ import annotations

from decimal import Decimal

from services.checkout.app.services.cart_store import CartLine, PreOrderMeta
from services.checkout.app.services.intents import (
    ContactDetails,
    Fulfillment,
    FulfillmentMethod,
)

CONTACT = ContactDetails(
    first_name="Ada",
    last_name="Obi",
    email="ada@example.com",
    phone="08030000000",
)
DELIVERY = Fulfillment(
    method=FulfillmentMethod.DELIVERY,
    shipping_address="12 Marina Road",
    city="Lagos",
    state="Lagos",
)

DETAILS_PAYLOAD = {
    "contact": {
        "first_name": "Ada",
        "last_name": "Obi",
        "email": "ada@example.com",
        "phone": "08030000000",
    },
    "fulfillment": {
        "method": "delivery",
        "shipping_address": "12 Marina Road",
        "city": "Lagos",
        "state": "Lagos",
    },
}


def ordinary_line(line_id: str = "12", price: str = "15000") -> CartLine:
    return CartLine(id=line_id, name=f"Product {line_id}", unit_price=Decimal(price), quantity=1)


def preorder_line(
    pre_order_id: str = "7",
    price: str = "50000",
    deposit: str | None = "10000",
) -> CartLine:
    return CartLine(
        id=f"preorder-{pre_order_id}",
        name=f"Pre-order {pre_order_id}",
        unit_price=Decimal(price),
        quantity=1,
        meta=PreOrderMeta(
            pre_order_id=pre_order_id,
            unit_price=Decimal(price),
            deposit_per_unit=Decimal(deposit) if deposit is not None else None,
        ),
    )
