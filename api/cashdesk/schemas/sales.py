from datetime import date, datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from cashdesk.core.validators import is_valid_phone


class AccountType(str, Enum):
    CASH = "cash"
    CREDIT = "credit"


class PaymentMethod(str, Enum):
    CASH = "cash"
    TRANSFER = "transfer"


class ProductState(str, Enum):
    FROZEN = "frozen"
    FRIED = "fried"


class SaleStatus(str, Enum):
    COMPLETED = "completed"
    PENDING = "pending"
    CANCELLED = "cancelled"


# labels used by the shop's existing tills and spreadsheets
ACCOUNT_TYPE_ALIASES = {"contado": "cash", "credito": "credit", "crédito": "credit"}
PAYMENT_METHOD_ALIASES = {"efectivo": "cash", "transferencia": "transfer"}
PRODUCT_STATE_ALIASES = {"congelado": "frozen", "frito": "fried"}


def _alias(value, aliases: dict[str, str]):
    if isinstance(value, str):
        key = value.strip().lower()
        return aliases.get(key, key)
    return value


class SaleItemInput(BaseModel):
    product_id: str
    quantity: int = Field(gt=0)


class CheckoutRequest(BaseModel):
    items: list[SaleItemInput]
    customer_name: str | None = Field(default=None, max_length=250)
    customer_phone: str | None = Field(default=None, max_length=50)
    customer_address: str | None = None
    account_type: AccountType = AccountType.CASH
    payment_method: PaymentMethod = PaymentMethod.CASH
    product_state: ProductState = ProductState.FROZEN
    delivery_fee: Decimal = Field(default=Decimal("0"), ge=0)

    @field_validator("account_type", mode="before")
    @classmethod
    def account_type_alias(cls, value):
        return _alias(value, ACCOUNT_TYPE_ALIASES)

    @field_validator("payment_method", mode="before")
    @classmethod
    def payment_method_alias(cls, value):
        return _alias(value, PAYMENT_METHOD_ALIASES)

    @field_validator("product_state", mode="before")
    @classmethod
    def product_state_alias(cls, value):
        return _alias(value, PRODUCT_STATE_ALIASES)

    @field_validator("customer_phone")
    @classmethod
    def phone_format(cls, value):
        if value and not is_valid_phone(value):
            raise ValueError("Invalid phone number")
        return value or None


class CheckoutResponse(BaseModel):
    sale_id: str
    sale_number: int
    status: SaleStatus
    account_type: AccountType
    payment_method: PaymentMethod
    subtotal: float
    delivery_fee: float
    total: float
    currency: str
    receipt_url: str
    stock_warnings: list[str] = []


class SaleItemOut(BaseModel):
    product_id: str | None
    product_name: str
    quantity: int
    unit_price: float
    subtotal: float


class SaleOut(BaseModel):
    id: str
    sale_number: int
    customer_name: str
    phone: str | None
    address: str | None
    account_type: str
    product_state: str | None
    payment_method: str
    delivery_fee: float
    subtotal: float
    total_amount: float
    status: str
    created_at: datetime


class SaleDetail(SaleOut):
    items: list[SaleItemOut]


class SalePage(BaseModel):
    items: list[SaleOut]
    total: int
    page: int
    page_size: int
    pages: int


class SaleStatusUpdate(BaseModel):
    status: SaleStatus


class DashboardSummary(BaseModel):
    today_revenue: float
    today_sales: int
    total_revenue: float
    total_sales: int
    active_products: int
    low_stock_products: int


class TopProduct(BaseModel):
    name: str
    quantity: int
    revenue: float


class DaySales(BaseModel):
    day: date
    sales: int
    revenue: float


class ReportSummary(BaseModel):
    start_date: date | None
    end_date: date | None
    total_sales: int
    total_revenue: float
    average_ticket: float
    top_products: list[TopProduct]
    sales_by_day: list[DaySales]
