from collections.abc import Iterator
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from cashdesk.core.errors import ValidationError
from cashdesk.core.money import to_money


@dataclass
class CartLine:
    product_id: str
    name: str
    unit_price: Decimal
    quantity: int
    stock: int

    @property
    def subtotal(self) -> Decimal:
        return to_money(self.unit_price * self.quantity)


class Cart:
    """Lines picked at the register before checkout.

    Name and unit price are copied from the product when it is added, so a
    later price edit does not change a cart that is already being rung up.
    """

    def __init__(self):
        self._lines: dict[str, CartLine] = {}

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[CartLine]:
        return iter(self._lines.values())

    def __bool__(self) -> bool:
        return bool(self._lines)

    @property
    def subtotal(self) -> Decimal:
        return to_money(sum((line.subtotal for line in self._lines.values()), Decimal("0")))

    @property
    def item_count(self) -> int:
        return sum(line.quantity for line in self._lines.values())

    def get(self, product_id: str) -> CartLine | None:
        return self._lines.get(product_id)

    def add(self, product: dict[str, Any], quantity: int = 1) -> CartLine:
        _check_quantity(quantity)
        if not product.get("is_active", True):
            raise ValidationError(f"Product is not active: {product['name']}")

        stock = int(product.get("stock") or 0)
        if stock <= 0:
            raise ValidationError(f"Out of stock: {product['name']}")

        line = self._lines.get(product["id"])
        wanted = quantity + (line.quantity if line else 0)
        if wanted > stock:
            raise ValidationError(f"Insufficient stock for {product['name']}. Available: {stock}")

        if line:
            line.quantity = wanted
            line.stock = stock
        else:
            line = CartLine(
                product_id=product["id"],
                name=product["name"],
                unit_price=to_money(product["price"]),
                quantity=quantity,
                stock=stock,
            )
            self._lines[product["id"]] = line
        return line

    def update_quantity(self, product_id: str, quantity: int) -> CartLine | None:
        if quantity < 1:
            self.remove(product_id)
            return None

        line = self._lines.get(product_id)
        if line is None:
            raise ValidationError(f"Product not in cart: {product_id}")
        _check_quantity(quantity)
        if quantity > line.stock:
            raise ValidationError(f"Insufficient stock for {line.name}. Available: {line.stock}")
        line.quantity = quantity
        return line

    def remove(self, product_id: str) -> None:
        self._lines.pop(product_id, None)

    def clear(self) -> None:
        self._lines.clear()


def _check_quantity(quantity) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Quantity must be a positive whole number")
