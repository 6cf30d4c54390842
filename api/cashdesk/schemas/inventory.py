from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from cashdesk.core.validators import (
    has_at_most_two_decimals,
    is_valid_barcode,
    is_valid_sku,
)


def _check_price(value: Decimal | None, label: str) -> Decimal | None:
    if value is None:
        return value
    if value <= 0 or not has_at_most_two_decimals(value):
        raise ValueError(f"{label} must be a positive number with at most 2 decimals")
    return value


class ProductFields(BaseModel):
    description: str | None = None
    cost: Decimal | None = None
    sku: str | None = None
    barcode: str | None = None
    category: str | None = Field(default=None, max_length=100)

    @field_validator("cost")
    @classmethod
    def cost_is_money(cls, value):
        return _check_price(value, "Cost")

    @field_validator("barcode")
    @classmethod
    def barcode_is_ean13(cls, value):
        if value and not is_valid_barcode(value):
            raise ValueError("Barcode must be a valid EAN-13")
        return value or None

    @field_validator("sku")
    @classmethod
    def sku_format(cls, value):
        if value and not is_valid_sku(value):
            raise ValueError("SKU may only contain letters, digits, hyphens and underscores (3-50)")
        return value or None


class ProductCreate(ProductFields):
    name: str = Field(min_length=2, max_length=250)
    price: Decimal
    stock: int = Field(default=0, ge=0)
    min_stock: int = Field(default=5, ge=0)
    is_active: bool = True

    @field_validator("name")
    @classmethod
    def strip_name(cls, value: str) -> str:
        value = value.strip()
        if len(value) < 2:
            raise ValueError("Product name needs at least 2 characters")
        return value

    @field_validator("price")
    @classmethod
    def price_is_money(cls, value):
        return _check_price(value, "Price")


class ProductUpdate(ProductFields):
    name: str | None = Field(default=None, min_length=2, max_length=250)
    price: Decimal | None = None
    stock: int | None = Field(default=None, ge=0)
    min_stock: int | None = Field(default=None, ge=0)
    is_active: bool | None = None

    @field_validator("price")
    @classmethod
    def price_is_money(cls, value):
        return _check_price(value, "Price")


class StockUpdate(BaseModel):
    stock: int = Field(ge=0)


class ProductOut(BaseModel):
    id: str
    name: str
    description: str | None
    price: float
    cost: float | None
    stock: int
    min_stock: int
    category: str
    sku: str | None
    barcode: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime


class LowStockItem(BaseModel):
    product_id: str
    name: str
    category: str
    stock: int
    min_stock: int


class ImportRowError(BaseModel):
    row: int
    error: str


class ImportResult(BaseModel):
    total: int
    success: int
    failed: int
    errors: list[ImportRowError]
    products: list[ProductOut]
