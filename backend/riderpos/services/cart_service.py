# Overview: In-memory cart for one POS checkout session.

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Iterable

from ..errors import InsufficientStock
from ..validation import ValidationError
from .inventory_service import InventoryPosition, get_rider_inventory, require_rider
from .tax_service import TaxPolicySnapshot, compute_totals


@dataclass(frozen=True)
class CartLine:
    product_id: int
    sku: str
    name: str
    unit_price: int
    quantity: int

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "sku": self.sku,
            "name": self.name,
            "unit_price": self.unit_price,
            "quantity": self.quantity,
            "subtotal": self.subtotal,
        }


class Cart:
    """
    Line items for one checkout session of one rider.

    Availability comes from the inventory snapshot the cart was opened
    with; the checkout service re-checks live stock when committing. A
    failed add leaves the cart exactly as it was.
    """

    def __init__(self, rider_id: int, positions: Iterable[InventoryPosition]):
        self.rider_id = rider_id
        self._positions = {p.product_id: p for p in positions}
        self._lines: dict[int, CartLine] = {}

    @property
    def lines(self) -> list[CartLine]:
        return list(self._lines.values())

    @property
    def is_empty(self) -> bool:
        return not self._lines

    def available(self, product_id: int) -> int:
        """On-hand quantity minus what this cart already holds."""
        position = self._positions.get(product_id)
        on_hand = position.quantity if position else 0
        line = self._lines.get(product_id)
        return on_hand - (line.quantity if line else 0)

    def add_item(self, product_id: int, quantity: int) -> CartLine:
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError("quantity must be an integer >= 1")

        position = self._positions.get(product_id)
        available = self.available(product_id)
        if position is None or quantity > available:
            raise InsufficientStock(
                product_id,
                quantity,
                max(available, 0),
                product_name=position.name if position else None,
            )

        existing = self._lines.get(product_id)
        if existing is not None:
            line = replace(existing, quantity=existing.quantity + quantity)
        else:
            line = CartLine(
                product_id=position.product_id,
                sku=position.sku,
                name=position.name,
                unit_price=position.unit_price,
                quantity=quantity,
            )
        self._lines[product_id] = line
        return line

    def remove_item(self, product_id: int) -> None:
        self._lines.pop(product_id, None)

    def subtotal(self) -> int:
        return sum(line.subtotal for line in self._lines.values())

    def clear(self) -> None:
        self._lines.clear()

    def to_dict(self, policy: TaxPolicySnapshot | None = None) -> dict:
        totals = compute_totals(self.subtotal(), policy)
        return {
            "rider_id": self.rider_id,
            "lines": [line.to_dict() for line in self._lines.values()],
            "tax_policy": policy.to_dict() if policy else None,
            **totals.to_dict(),
        }


def open_cart(rider_id: int) -> Cart:
    """Start a checkout session from the rider's current stock."""
    require_rider(rider_id)
    return Cart(rider_id, get_rider_inventory(rider_id, include_empty=False))


def build_cart(rider_id: int, items: Iterable[tuple[int, int]]) -> Cart:
    """Open a cart and add (product_id, quantity) pairs in order."""
    cart = open_cart(rider_id)
    for product_id, quantity in items:
        cart.add_item(product_id, quantity)
    return cart
