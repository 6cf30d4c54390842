"""SQL access for products, sales and users. Methods never commit; the caller does."""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import text
from sqlalchemy.orm import Session

from cashdesk.core.money import to_money
from cashdesk.db.session import as_datetime, utcnow

PRODUCT_MONEY = ("price", "cost")
SALE_MONEY = ("delivery_fee", "subtotal", "total_amount")
ITEM_MONEY = ("unit_price", "subtotal")

SALE_SORT_FIELDS = {"created_at", "sale_number", "customer_name", "phone", "total_amount"}

PRODUCT_COLUMNS = (
    "id, name, description, price, cost, stock, min_stock, category, sku, barcode, "
    "is_active, created_by, created_at, updated_at"
)
SALE_COLUMNS = (
    "id, sale_number, customer_name, phone, address, account_type, product_state, "
    "payment_method, delivery_fee, subtotal, total_amount, status, created_by, created_at"
)


def new_id() -> str:
    return str(uuid.uuid4())


def _normalize(row, money: tuple[str, ...] = (), dates: tuple[str, ...] = ()) -> dict[str, Any]:
    data = dict(row)
    for key in money:
        if key in data and data[key] is not None:
            data[key] = to_money(data[key])
    for key in dates:
        if key in data:
            data[key] = as_datetime(data[key])
    if "is_active" in data and data["is_active"] is not None:
        data["is_active"] = bool(data["is_active"])
    return data


def _product(row) -> dict[str, Any]:
    return _normalize(row, PRODUCT_MONEY, ("created_at", "updated_at"))


def _sale(row) -> dict[str, Any]:
    return _normalize(row, SALE_MONEY, ("created_at",))


def _item(row) -> dict[str, Any]:
    return _normalize(row, ITEM_MONEY)


def _user(row) -> dict[str, Any]:
    return _normalize(row, dates=("created_at", "updated_at", "last_login_at"))


class SqlStore:
    def __init__(self, db: Session):
        self.db = db

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    # -------------------------
    # Users
    # -------------------------
    def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        row = self.db.execute(
            text(
                """
                SELECT id, email, password_hash, full_name, role, is_active,
                       created_at, updated_at, last_login_at
                FROM users
                WHERE LOWER(email) = LOWER(:email)
                LIMIT 1
                """
            ),
            {"email": email},
        ).mappings().first()
        return _user(row) if row else None

    def get_user(self, user_id: str) -> dict[str, Any] | None:
        row = self.db.execute(
            text(
                """
                SELECT id, email, password_hash, full_name, role, is_active,
                       created_at, updated_at, last_login_at
                FROM users
                WHERE id = :user_id
                """
            ),
            {"user_id": user_id},
        ).mappings().first()
        return _user(row) if row else None

    def insert_user(
        self, email: str, password_hash: str, full_name: str | None, role: str = "cashier"
    ) -> dict[str, Any]:
        now = utcnow()
        user_id = new_id()
        self.db.execute(
            text(
                """
                INSERT INTO users (id, email, password_hash, full_name, role, is_active, created_at, updated_at)
                VALUES (:id, :email, :password_hash, :full_name, :role, :is_active, :now, :now)
                """
            ),
            {
                "id": user_id,
                "email": email.lower(),
                "password_hash": password_hash,
                "full_name": full_name or email,
                "role": role,
                "is_active": True,
                "now": now,
            },
        )
        return self.get_user(user_id)

    def update_user(self, user_id: str, **values: Any) -> None:
        if not values:
            return
        values["updated_at"] = utcnow()
        assignments = ", ".join(f"{key} = :{key}" for key in values)
        self.db.execute(
            text(f"UPDATE users SET {assignments} WHERE id = :user_id"),
            {**values, "user_id": user_id},
        )

    def touch_login(self, user_id: str) -> None:
        self.db.execute(
            text("UPDATE users SET last_login_at = :now WHERE id = :user_id"),
            {"now": utcnow(), "user_id": user_id},
        )

    # -------------------------
    # Products
    # -------------------------
    def get_product(self, product_id: str) -> dict[str, Any] | None:
        row = self.db.execute(
            text(f"SELECT {PRODUCT_COLUMNS} FROM products WHERE id = :product_id"),
            {"product_id": product_id},
        ).mappings().first()
        return _product(row) if row else None

    def get_products(self, product_ids: list[str]) -> dict[str, dict[str, Any]]:
        found = {}
        for product_id in dict.fromkeys(product_ids):
            product = self.get_product(product_id)
            if product:
                found[product_id] = product
        return found

    def list_products(
        self,
        *,
        search: str | None = None,
        category: str | None = None,
        active: bool | None = None,
        low_stock: bool = False,
    ) -> list[dict[str, Any]]:
        clauses = []
        params: dict[str, Any] = {}

        if search:
            clauses.append(
                "(LOWER(name) LIKE :term OR LOWER(COALESCE(description, '')) LIKE :term "
                "OR COALESCE(barcode, '') LIKE :term OR LOWER(COALESCE(sku, '')) LIKE :term)"
            )
            params["term"] = f"%{search.strip().lower()}%"
        if category:
            clauses.append("category = :category")
            params["category"] = category
        if active is not None:
            clauses.append("is_active = :active")
            params["active"] = active
        if low_stock:
            clauses.append("stock > 0 AND stock <= min_stock")

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.db.execute(
            text(f"SELECT {PRODUCT_COLUMNS} FROM products {where} ORDER BY name ASC"),
            params,
        ).mappings().all()
        return [_product(row) for row in rows]

    def list_categories(self) -> list[str]:
        rows = self.db.execute(
            text(
                """
                SELECT DISTINCT category
                FROM products
                WHERE is_active = :active AND category IS NOT NULL AND category <> ''
                ORDER BY category ASC
                """
            ),
            {"active": True},
        ).scalars().all()
        return list(rows)

    def insert_product(self, values: dict[str, Any], created_by: str | None = None) -> dict[str, Any]:
        now = utcnow()
        product_id = new_id()
        self.db.execute(
            text(
                """
                INSERT INTO products (
                  id, name, description, price, cost, stock, min_stock, category,
                  sku, barcode, is_active, created_by, created_at, updated_at
                )
                VALUES (
                  :id, :name, :description, :price, :cost, :stock, :min_stock, :category,
                  :sku, :barcode, :is_active, :created_by, :now, :now
                )
                """
            ),
            {
                "id": product_id,
                "name": values["name"],
                "description": values.get("description"),
                "price": values["price"],
                "cost": values.get("cost"),
                "stock": values.get("stock", 0),
                "min_stock": values.get("min_stock", 5),
                "category": values.get("category") or "General",
                "sku": values.get("sku") or None,
                "barcode": values.get("barcode") or None,
                "is_active": values.get("is_active", True),
                "created_by": created_by,
                "now": now,
            },
        )
        return self.get_product(product_id)

    def update_product(self, product_id: str, values: dict[str, Any]) -> dict[str, Any] | None:
        if values:
            values = {**values, "updated_at": utcnow()}
            assignments = ", ".join(f"{key} = :{key}" for key in values)
            self.db.execute(
                text(f"UPDATE products SET {assignments} WHERE id = :product_id"),
                {**values, "product_id": product_id},
            )
        return self.get_product(product_id)

    def delete_product(self, product_id: str) -> int:
        result = self.db.execute(
            text("DELETE FROM products WHERE id = :product_id"),
            {"product_id": product_id},
        )
        return result.rowcount

    def product_has_sales(self, product_id: str) -> bool:
        found = self.db.execute(
            text("SELECT 1 FROM sale_items WHERE product_id = :product_id LIMIT 1"),
            {"product_id": product_id},
        ).first()
        return found is not None

    def decrement_stock(self, product_id: str, quantity: int) -> int:
        """Plain read-modify-write; concurrent checkouts can still over-sell."""
        result = self.db.execute(
            text(
                """
                UPDATE products
                SET stock = stock - :quantity,
                    updated_at = :now
                WHERE id = :product_id
                """
            ),
            {"quantity": quantity, "now": utcnow(), "product_id": product_id},
        )
        return result.rowcount

    def count_products(self) -> dict[str, int]:
        row = self.db.execute(
            text(
                """
                SELECT
                  COALESCE(SUM(CASE WHEN is_active = :active THEN 1 ELSE 0 END), 0) AS active_products,
                  COALESCE(SUM(CASE WHEN stock > 0 AND stock <= min_stock THEN 1 ELSE 0 END), 0)
                    AS low_stock_products
                FROM products
                """
            ),
            {"active": True},
        ).mappings().first()
        return {key: int(value) for key, value in row.items()}

    # -------------------------
    # Sales
    # -------------------------
    def insert_sale(self, values: dict[str, Any], created_by: str | None = None) -> dict[str, Any]:
        row = self.db.execute(
            text(
                """
                INSERT INTO sales (
                  id, sale_number, customer_name, phone, address, account_type,
                  product_state, payment_method, delivery_fee, subtotal,
                  total_amount, status, created_by, created_at
                )
                VALUES (
                  :id,
                  (SELECT COALESCE(MAX(sale_number), 0) + 1 FROM sales),
                  :customer_name, :phone, :address, :account_type,
                  :product_state, :payment_method, :delivery_fee, :subtotal,
                  :total_amount, :status, :created_by, :created_at
                )
                RETURNING id, sale_number
                """
            ),
            {
                "id": new_id(),
                "customer_name": values["customer_name"],
                "phone": values.get("phone"),
                "address": values.get("address"),
                "account_type": values["account_type"],
                "product_state": values.get("product_state"),
                "payment_method": values["payment_method"],
                "delivery_fee": values["delivery_fee"],
                "subtotal": values["subtotal"],
                "total_amount": values["total_amount"],
                "status": values["status"],
                "created_by": created_by,
                "created_at": values.get("created_at") or utcnow(),
            },
        ).mappings().first()
        return dict(row)

    def insert_sale_items(self, sale_id: str, items: list[dict[str, Any]]) -> None:
        for line_no, item in enumerate(items, start=1):
            self.db.execute(
                text(
                    """
                    INSERT INTO sale_items (
                      id, sale_id, line_no, product_id, product_name, quantity, unit_price, subtotal
                    )
                    VALUES (
                      :id, :sale_id, :line_no, :product_id, :product_name, :quantity, :unit_price, :subtotal
                    )
                    """
                ),
                {
                    "id": new_id(),
                    "sale_id": sale_id,
                    "line_no": line_no,
                    "product_id": item.get("product_id"),
                    "product_name": item["product_name"],
                    "quantity": item["quantity"],
                    "unit_price": item["unit_price"],
                    "subtotal": item["subtotal"],
                },
            )

    def get_sale(self, sale_id: str) -> dict[str, Any] | None:
        row = self.db.execute(
            text(f"SELECT {SALE_COLUMNS} FROM sales WHERE id = :sale_id"),
            {"sale_id": sale_id},
        ).mappings().first()
        return _sale(row) if row else None

    def get_sale_items(self, sale_id: str) -> list[dict[str, Any]]:
        rows = self.db.execute(
            text(
                """
                SELECT id, sale_id, line_no, product_id, product_name, quantity, unit_price, subtotal
                FROM sale_items
                WHERE sale_id = :sale_id
                ORDER BY line_no ASC
                """
            ),
            {"sale_id": sale_id},
        ).mappings().all()
        return [_item(row) for row in rows]

    def update_sale_status(self, sale_id: str, status: str) -> None:
        self.db.execute(
            text("UPDATE sales SET status = :status WHERE id = :sale_id"),
            {"status": status, "sale_id": sale_id},
        )

    def _sale_filters(
        self,
        *,
        search: str | None = None,
        account_type: str | None = None,
        payment_method: str | None = None,
        product_state: str | None = None,
        status: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> tuple[str, dict[str, Any]]:
        clauses = []
        params: dict[str, Any] = {}

        if search:
            clauses.append(
                "(LOWER(customer_name) LIKE :term OR CAST(sale_number AS TEXT) LIKE :term "
                "OR LOWER(COALESCE(phone, '')) LIKE :term)"
            )
            params["term"] = f"%{search.strip().lower()}%"
        for column, value in (
            ("account_type", account_type),
            ("payment_method", payment_method),
            ("product_state", product_state),
            ("status", status),
        ):
            if value:
                clauses.append(f"{column} = :{column}")
                params[column] = value
        if start:
            clauses.append("created_at >= :start")
            params["start"] = start
        if end:
            clauses.append("created_at < :end")
            params["end"] = end

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def list_sales(
        self,
        *,
        sort: str = "created_at",
        direction: str = "desc",
        limit: int | None = None,
        offset: int = 0,
        **filters: Any,
    ) -> tuple[list[dict[str, Any]], int]:
        if sort not in SALE_SORT_FIELDS:
            raise ValueError(f"Cannot sort by {sort!r}")
        order = "ASC" if direction.lower() == "asc" else "DESC"
        where, params = self._sale_filters(**filters)

        total = self.db.execute(text(f"SELECT COUNT(*) FROM sales {where}"), params).scalar_one()

        query = f"SELECT {SALE_COLUMNS} FROM sales {where} ORDER BY {sort} {order}, sale_number {order}"
        if limit is not None:
            query += " LIMIT :limit OFFSET :offset"
            params = {**params, "limit": limit, "offset": offset}
        rows = self.db.execute(text(query), params).mappings().all()
        return [_sale(row) for row in rows], int(total)

    def items_for_sales(self, sale_ids: list[str]) -> dict[str, list[dict[str, Any]]]:
        return {sale_id: self.get_sale_items(sale_id) for sale_id in sale_ids}

    def sales_totals(self, start: datetime | None = None, end: datetime | None = None) -> dict[str, Any]:
        where, params = self._sale_filters(start=start, end=end)
        row = self.db.execute(
            text(f"SELECT COUNT(*) AS sales, COALESCE(SUM(total_amount), 0) AS revenue FROM sales {where}"),
            params,
        ).mappings().first()
        return {"sales": int(row["sales"]), "revenue": to_money(row["revenue"])}
