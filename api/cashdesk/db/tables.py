from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
)

metadata = MetaData()

MONEY = Numeric(12, 2)

users = Table(
    "users",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(254), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("full_name", String(250)),
    Column("role", String(20), nullable=False, default="cashier"),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("last_login_at", DateTime(timezone=True)),
)

products = Table(
    "products",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", String(250), nullable=False),
    Column("description", Text),
    Column("price", MONEY, nullable=False),
    Column("cost", MONEY),
    Column("stock", Integer, nullable=False, default=0),
    Column("min_stock", Integer, nullable=False, default=5),
    Column("category", String(100), nullable=False, default="General"),
    Column("sku", String(50)),
    Column("barcode", String(13)),
    Column("is_active", Boolean, nullable=False, default=True),
    Column("created_by", String(36), ForeignKey("users.id")),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

sales = Table(
    "sales",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("sale_number", Integer, nullable=False, unique=True),
    Column("customer_name", String(250), nullable=False),
    Column("phone", String(50)),
    Column("address", Text),
    Column("account_type", String(20), nullable=False),
    Column("product_state", String(20)),
    Column("payment_method", String(30), nullable=False),
    Column("delivery_fee", MONEY, nullable=False, default=0),
    Column("subtotal", MONEY, nullable=False),
    Column("total_amount", MONEY, nullable=False),
    Column("status", String(20), nullable=False),
    Column("created_by", String(36), ForeignKey("users.id")),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

sale_items = Table(
    "sale_items",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("sale_id", String(36), ForeignKey("sales.id"), nullable=False, index=True),
    # no FK, items keep their snapshot after the product is deleted
    Column("product_id", String(36)),
    Column("line_no", Integer, nullable=False, default=1),
    Column("product_name", String(250), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", MONEY, nullable=False),
    Column("subtotal", MONEY, nullable=False),
)
