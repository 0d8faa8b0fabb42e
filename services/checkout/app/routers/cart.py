from __future__ import annotations

from fastapi import APIRouter, Depends
from services.checkout.app.models.cart import CartLineInput, CartLineOut, CartOut, QuantityUpdate
from services.checkout.app.routers.http_errors import raise_checkout_http_error, runtime
from services.checkout.app.services.cart_store import (
    CartLine,
    CartStore,
    PreOrderMeta,
    is_preorder_line_id,
)
from services.checkout.app.services.errors import ValidationError
from services.checkout.app.services.payment_type import deposit_per_unit_from_catalog
from services.checkout.app.services.store import Runtime

router = APIRouter()


@router.post("/v1/carts", response_model=CartOut)
def create_cart(rt: Runtime = Depends(runtime)) -> CartOut:
    return _cart_out(rt.store.create_cart())


@router.get("/v1/carts/{cart_id}", response_model=CartOut)
def get_cart(cart_id: str, rt: Runtime = Depends(runtime)) -> CartOut:
    try:
        cart = rt.store.get_cart(cart_id)
    except Exception as e:
        raise_checkout_http_error(e)
    return _cart_out(cart)


@router.post("/v1/carts/{cart_id}/lines", response_model=CartOut)
def add_line(cart_id: str, payload: CartLineInput, rt: Runtime = Depends(runtime)) -> CartOut:
    try:
        cart = rt.store.get_cart(cart_id)
        cart.add_to_cart(_line_from_input(payload), payload.quantity)
    except Exception as e:
        raise_checkout_http_error(e)
    return _cart_out(cart)


@router.patch("/v1/carts/{cart_id}/lines/{line_id}", response_model=CartOut)
def update_line(
    cart_id: str,
    line_id: str,
    payload: QuantityUpdate,
    rt: Runtime = Depends(runtime),
) -> CartOut:
    try:
        cart = rt.store.get_cart(cart_id)
        cart.update_quantity(line_id, payload.quantity)
    except Exception as e:
        raise_checkout_http_error(e)
    return _cart_out(cart)


@router.delete("/v1/carts/{cart_id}/lines/{line_id}", response_model=CartOut)
def remove_line(cart_id: str, line_id: str, rt: Runtime = Depends(runtime)) -> CartOut:
    try:
        cart = rt.store.get_cart(cart_id)
        cart.remove_from_cart(line_id)
    except Exception as e:
        raise_checkout_http_error(e)
    return _cart_out(cart)


@router.delete("/v1/carts/{cart_id}/lines", response_model=CartOut)
def clear_cart(cart_id: str, rt: Runtime = Depends(runtime)) -> CartOut:
    try:
        cart = rt.store.get_cart(cart_id)
        cart.clear_cart()
    except Exception as e:
        raise_checkout_http_error(e)
    return _cart_out(cart)


def _line_from_input(payload: CartLineInput) -> CartLine:
    meta = None
    if is_preorder_line_id(payload.id):
        if payload.preorder is None:
            raise ValidationError("Pre-order lines need pre-order details", fields=["preorder"])
        meta = PreOrderMeta(
            pre_order_id=payload.preorder.pre_order_id,
            unit_price=payload.unit_price,
            deposit_per_unit=deposit_per_unit_from_catalog(
                {
                    "deposit_amount": payload.preorder.deposit_amount,
                    "deposit_percentage": payload.preorder.deposit_percentage,
                    "price": payload.unit_price,
                }
            ),
        )
    elif payload.preorder is not None:
        raise ValidationError(
            "Pre-order line ids must start with 'preorder-'", fields=["id"]
        )

    return CartLine(
        id=payload.id,
        name=payload.name,
        unit_price=payload.unit_price,
        quantity=payload.quantity,
        image_ref=payload.image_ref,
        category=payload.category,
        meta=meta,
    )


def _cart_out(cart: CartStore) -> CartOut:
    return CartOut(
        cart_id=cart.cart_id,
        lines=[
            CartLineOut(
                id=line.id,
                name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
                line_total=line.line_total,
                image_ref=line.image_ref,
                category=line.category,
                is_preorder=line.is_preorder,
                deposit_per_unit=line.meta.deposit_per_unit if line.meta else None,
            )
            for line in cart.lines
        ],
        cart_count=cart.cart_count,
        cart_total=cart.cart_total,
    )
