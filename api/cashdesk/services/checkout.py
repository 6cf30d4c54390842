"""Record a cart as a sale: header and items in one transaction, then stock for cash sales."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy.exc import SQLAlchemyError

from cashdesk.core.config import settings
from cashdesk.core.errors import NotFoundError, PersistenceError, ValidationError
from cashdesk.core.money import to_money
from cashdesk.db.store import SqlStore
from cashdesk.schemas.sales import AccountType, SaleItemInput, SaleStatus
from cashdesk.services.cart import Cart

logger = logging.getLogger(__name__)


@dataclass
class CustomerInfo:
    name: str | None = None
    phone: str | None = None
    address: str | None = None


@dataclass
class CommittedSale:
    sale: dict[str, Any]
    items: list[dict[str, Any]]
    stock_warnings: list[str] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.sale["id"]

    @property
    def number(self) -> int:
        return self.sale["sale_number"]


def build_cart(store: SqlStore, lines: list[SaleItemInput]) -> Cart:
    """Load each product and add it to a fresh cart, snapshotting its price."""
    products = store.get_products([line.product_id for line in lines])
    cart = Cart()
    for line in lines:
        product = products.get(line.product_id)
        if product is None:
            raise NotFoundError(f"Product not found: {line.product_id}")
        cart.add(product, line.quantity)
    return cart


def status_for(account_type: AccountType) -> SaleStatus:
    return SaleStatus.PENDING if account_type == AccountType.CREDIT else SaleStatus.COMPLETED


class SaleRecorder:
    def __init__(self, store: SqlStore, occasional_customer: str | None = None):
        self.store = store
        self.occasional_customer = occasional_customer or settings.occasional_customer_name

    def commit(
        self,
        cart: Cart,
        customer: CustomerInfo | None = None,
        account_type: AccountType = AccountType.CASH,
        payment_method: str = "cash",
        delivery_fee: Decimal | int | str = 0,
        product_state: str | None = None,
        created_by: str | None = None,
    ) -> CommittedSale:
        customer = customer or CustomerInfo()
        try:
            account_type = AccountType(account_type)
        except ValueError as exc:
            raise ValidationError(f"Unknown account type: {account_type}") from exc
        try:
            delivery_fee = to_money(delivery_fee)
        except ValueError as exc:
            raise ValidationError(f"Invalid delivery fee: {delivery_fee}") from exc

        if not cart:
            raise ValidationError("Cart is empty")
        for line in cart:
            if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
                raise ValidationError(f"Invalid quantity for {line.name}")
        if delivery_fee < 0:
            raise ValidationError("Delivery fee cannot be negative")

        subtotal = cart.subtotal
        total = subtotal + delivery_fee
        if total <= 0:
            raise ValidationError("Total must be greater than zero")

        status = status_for(account_type)
        items = [
            {
                "product_id": line.product_id,
                "product_name": line.name,
                "quantity": line.quantity,
                "unit_price": line.unit_price,
                "subtotal": line.subtotal,
            }
            for line in cart
        ]

        try:
            header = self.store.insert_sale(
                {
                    "customer_name": (customer.name or "").strip() or self.occasional_customer,
                    "phone": customer.phone or None,
                    "address": customer.address or None,
                    "account_type": account_type.value,
                    "product_state": product_state,
                    "payment_method": str(getattr(payment_method, "value", payment_method)),
                    "delivery_fee": delivery_fee,
                    "subtotal": subtotal,
                    "total_amount": total,
                    "status": status.value,
                },
                created_by=created_by,
            )
            self.store.insert_sale_items(header["id"], items)
            self.store.commit()
        except SQLAlchemyError as exc:
            self.store.rollback()
            logger.error("Sale could not be recorded, nothing was kept: %s", exc)
            raise PersistenceError("Failed to record sale") from exc

        logger.info(
            "Sale #%s recorded (%s, %s, total=%s, %d lines)",
            header["sale_number"],
            account_type.value,
            status.value,
            total,
            len(items),
        )

        warnings = []
        if account_type == AccountType.CASH:
            warnings = self._take_stock(cart, header["sale_number"])

        sale = self.store.get_sale(header["id"])
        return CommittedSale(sale=sale, items=self.store.get_sale_items(header["id"]), stock_warnings=warnings)

    def _take_stock(self, cart: Cart, sale_number: int) -> list[str]:
        warnings = []
        for line in cart:
            try:
                updated = self.store.decrement_stock(line.product_id, line.quantity)
                self.store.commit()
            except SQLAlchemyError as exc:
                self.store.rollback()
                logger.error(
                    "Sale #%s: stock for %s (%s) not decremented by %d: %s",
                    sale_number,
                    line.name,
                    line.product_id,
                    line.quantity,
                    exc,
                )
                warnings.append(f"Stock not updated for {line.name}")
                continue

            if not updated:
                logger.error("Sale #%s: product %s no longer exists, stock untouched", sale_number, line.product_id)
                warnings.append(f"Stock not updated for {line.name}")
        return warnings
