from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class PreOrderMetaInput(BaseModel):
    pre_order_id: str = Field(..., min_length=1)
    deposit_amount: Decimal | None = None
    deposit_percentage: Decimal | None = None


class CartLineInput(BaseModel):
    id: str = Field(..., min_length=1)
    name: str
    unit_price: Decimal
    quantity: int = Field(1, ge=1)
    image_ref: str = ""
    category: str = ""
    preorder: PreOrderMetaInput | None = None


class QuantityUpdate(BaseModel):
    # Anything below 1 removes the line.
    quantity: int


class CartLineOut(BaseModel):
    id: str
    name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal
    image_ref: str = ""
    category: str = ""
    is_preorder: bool = False
    deposit_per_unit: Decimal | None = None


class CartOut(BaseModel):
    cart_id: str
    lines: list[CartLineOut] = Field(default_factory=list)
    cart_count: int
    cart_total: Decimal
