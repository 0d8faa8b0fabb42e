from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from decimal import Decimal

from services.checkout.app.services.errors import ValidationError
from services.checkout.app.services.intents import IntentKind

logger = logging.getLogger(__name__)

PREORDER_LINE_PREFIX = "preorder-"


def is_preorder_line_id(line_id: str) -> bool:
    return line_id.startswith(PREORDER_LINE_PREFIX)


@dataclass(frozen=True, slots=True)
class PreOrderMeta:
    pre_order_id: str
    unit_price: Decimal
    deposit_per_unit: Decimal | None = None


@dataclass(slots=True)
class CartLine:
    id: str
    name: str
    unit_price: Decimal
    quantity: int
    image_ref: str = ""
    category: str = ""
    meta: PreOrderMeta | None = None

    @property
    def is_preorder(self) -> bool:
        return is_preorder_line_id(self.id)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True, slots=True)
class CartEvent:
    kind: str
    line_id: str | None
    cart_count: int
    cart_total: Decimal


CartListener = Callable[[CartEvent], None]


class CartStore:
    """Insertion-ordered cart lines keyed by line id.

    Every mutation recomputes ``cart_count`` and ``cart_total`` before
    listeners are notified.
    """

    def __init__(self, cart_id: str = "") -> None:
        self.cart_id = cart_id
        self._lines: dict[str, CartLine] = {}
        self._listeners: list[CartListener] = []
        self.cart_count = 0
        self.cart_total = Decimal("0")

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    def get_line(self, line_id: str) -> CartLine | None:
        return self._lines.get(line_id)

    def is_empty(self) -> bool:
        return not self._lines

    def subscribe(self, listener: CartListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add_to_cart(self, item: CartLine, quantity: int) -> CartLine:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", fields=["quantity"])

        existing = self._lines.get(item.id)
        if existing is not None:
            existing.quantity += quantity
            line = existing
            logger.debug("Cart %s: %s quantity now %s", self.cart_id, item.id, line.quantity)
        else:
            line = replace(item, quantity=quantity)
            self._lines[item.id] = line
            logger.debug("Cart %s: added %s x%s", self.cart_id, item.id, quantity)

        self._changed("added", item.id)
        return line

    def remove_from_cart(self, line_id: str) -> None:
        if self._lines.pop(line_id, None) is not None:
            self._changed("removed", line_id)

    def update_quantity(self, line_id: str, quantity: int) -> None:
        if quantity < 1:
            self.remove_from_cart(line_id)
            return

        line = self._lines.get(line_id)
        if line is None:
            return
        line.quantity = quantity
        self._changed("updated", line_id)

    def clear_cart(self) -> None:
        self._lines.clear()
        self._changed("cleared", None)

    def clear_lines(self, line_ids: Iterable[str]) -> None:
        removed = [line_id for line_id in line_ids if self._lines.pop(line_id, None) is not None]
        if removed:
            self._changed("settled", None)

    def preorder_lines(self) -> list[CartLine]:
        return [line for line in self._lines.values() if line.is_preorder]

    def ordinary_lines(self) -> list[CartLine]:
        return [line for line in self._lines.values() if not line.is_preorder]

    def checkout_lines(self) -> tuple[IntentKind, list[CartLine]]:
        if not self._lines:
            raise ValidationError("Your cart is empty")

        preorders = self.preorder_lines()
        ordinary = self.ordinary_lines()

        if preorders and ordinary:
            raise ValidationError(
                "Pre-order items must be checked out separately from other items",
                fields=[line.id for line in preorders],
            )
        if len(preorders) > 1:
            raise ValidationError(
                "Only one pre-order can be checked out at a time",
                fields=[line.id for line in preorders],
            )
        if preorders:
            return IntentKind.PREORDER, preorders
        return IntentKind.ORDER, ordinary

    def _changed(self, kind: str, line_id: str | None) -> None:
        self.cart_count = sum(line.quantity for line in self._lines.values())
        self.cart_total = sum(
            (line.line_total for line in self._lines.values()), start=Decimal("0")
        )

        event = CartEvent(
            kind=kind,
            line_id=line_id,
            cart_count=self.cart_count,
            cart_total=self.cart_total,
        )
        for listener in list(self._listeners):
            listener(event)
