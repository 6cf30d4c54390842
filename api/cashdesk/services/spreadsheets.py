"""Excel export of sales and products, and product import from Excel."""

import io
import logging
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any
from zipfile import BadZipFile

import openpyxl
from openpyxl.styles import Font, PatternFill
from openpyxl.utils.exceptions import InvalidFileException
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import SQLAlchemyError

from cashdesk.core.config import settings
from cashdesk.core.errors import NotFoundError, ValidationError
from cashdesk.db.store import SqlStore
from cashdesk.schemas.inventory import ProductCreate
from cashdesk.services.reports import sales_with_items

logger = logging.getLogger(__name__)

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
IMPORT_BATCH_SIZE = 50

# accepted headers per field, first match wins
COLUMN_ALIASES = {
    "name": ("nombre", "name", "producto", "product"),
    "price": ("precio", "price", "valor"),
    "description": ("descripcion", "description"),
    "cost": ("costo", "cost"),
    "stock": ("stock", "cantidad", "inventario"),
    "barcode": ("codigo_barras", "barcode", "codigo"),
    "sku": ("sku", "codigo"),
    "category": ("categoria", "category"),
    "min_stock": ("stock_minimo", "min_stock"),
}

TEMPLATE_ROWS = [
    {
        "nombre": "Americano Coffee",
        "descripcion": "Black americano coffee",
        "precio": 2.50,
        "costo": 1.00,
        "stock": 100,
        "codigo_barras": "1234567890128",
        "sku": "CAF-001",
        "categoria": "Drinks",
        "stock_minimo": 10,
    },
    {
        "nombre": "Ham Sandwich",
        "descripcion": "Ham and cheese sandwich",
        "precio": 5.00,
        "costo": 2.50,
        "stock": 50,
        "codigo_barras": "1234567890135",
        "sku": "SAN-001",
        "categoria": "Food",
        "stock_minimo": 5,
    },
]


def _append_sheet(workbook, title: str, rows: list[dict[str, Any]], headers: list[str] | None = None):
    worksheet = workbook.create_sheet(title)
    headers = headers or (list(rows[0].keys()) if rows else [])
    worksheet.append(headers)
    for cell in worksheet[1]:
        cell.font = Font(bold=True)
        cell.fill = PatternFill(start_color="CCCCCC", end_color="CCCCCC", fill_type="solid")
    for row in rows:
        worksheet.append([_cell(row.get(header)) for header in headers])
    _adjust_columns(worksheet)
    return worksheet


def _cell(value):
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _adjust_columns(worksheet) -> None:
    for column in worksheet.columns:
        width = max((len(str(cell.value)) for cell in column if cell.value is not None), default=8)
        worksheet.column_dimensions[column[0].column_letter].width = min(width + 2, 50)


def _to_bytes(workbook) -> bytes:
    if "Sheet" in workbook.sheetnames and len(workbook.sheetnames) > 1:
        del workbook["Sheet"]
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def export_sales(store: SqlStore, start_date: date | None = None, end_date: date | None = None) -> bytes:
    sales = sales_with_items(store, start_date, end_date)
    if not sales:
        raise NotFoundError("No sales in the selected period")

    sales_rows = [
        {
            "Number": sale["sale_number"],
            "Date": sale["created_at"].date(),
            "Time": sale["created_at"].strftime("%H:%M:%S"),
            "Customer": sale["customer_name"] or settings.occasional_customer_name,
            "Phone": sale["phone"] or "",
            "Account Type": sale["account_type"],
            "Payment Method": sale["payment_method"],
            "Delivery Fee": sale["delivery_fee"],
            "Total": sale["total_amount"],
            "Status": sale["status"],
        }
        for sale in sales
    ]
    item_rows = [
        {
            "Sale": sale["sale_number"],
            "Product": item["product_name"],
            "Quantity": item["quantity"],
            "Unit Price": item["unit_price"],
            "Subtotal": item["subtotal"],
            "Date": sale["created_at"].date(),
        }
        for sale in sales
        for item in sale["items"]
    ]
    revenue = sum((sale["total_amount"] for sale in sales), Decimal("0"))
    summary_rows = [
        {
            "Total Sales": len(sales),
            "Total Revenue": revenue,
            "Period": f"{start_date or 'Start'} - {end_date or 'Today'}",
            "Exported At": datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
        }
    ]

    workbook = openpyxl.Workbook()
    _append_sheet(workbook, "Sales", sales_rows)
    _append_sheet(
        workbook,
        "Items Sold",
        item_rows,
        headers=["Sale", "Product", "Quantity", "Unit Price", "Subtotal", "Date"],
    )
    _append_sheet(workbook, "Summary", summary_rows)
    logger.info("Exported %d sales (%d items)", len(sales), len(item_rows))
    return _to_bytes(workbook)


def export_products(store: SqlStore) -> bytes:
    rows = [
        {
            "Name": product["name"],
            "Description": product["description"] or "",
            "Price": product["price"],
            "Cost": product["cost"],
            "Stock": product["stock"],
            "Min Stock": product["min_stock"],
            "Barcode": product["barcode"] or "",
            "SKU": product["sku"] or "",
            "Category": product["category"],
            "Status": "Active" if product["is_active"] else "Inactive",
            "Created": product["created_at"].date() if product["created_at"] else None,
        }
        for product in store.list_products()
    ]
    workbook = openpyxl.Workbook()
    _append_sheet(
        workbook,
        "Products",
        rows,
        headers=[
            "Name", "Description", "Price", "Cost", "Stock", "Min Stock",
            "Barcode", "SKU", "Category", "Status", "Created",
        ],
    )
    return _to_bytes(workbook)


def import_template() -> bytes:
    workbook = openpyxl.Workbook()
    _append_sheet(workbook, "Products", TEMPLATE_ROWS)
    return _to_bytes(workbook)


def _pick(row: dict[str, Any], field: str):
    for header in COLUMN_ALIASES[field]:
        value = row.get(header)
        if value not in (None, ""):
            return value
    return None


def _text(value) -> str | None:
    # numeric cells come back as float: 1234567890128.0
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip() if value not in (None, "") else None


def _row_to_product(row: dict[str, Any]) -> ProductCreate:
    name = _pick(row, "name")
    price = _pick(row, "price")
    if not name or price is None:
        raise ValueError("Name and price are required")
    try:
        price = Decimal(str(price)).quantize(Decimal("0.01"))
    except InvalidOperation as exc:
        raise ValueError("Invalid price") from exc
    if price <= 0:
        raise ValueError("Invalid price")

    cost = _pick(row, "cost")
    try:
        return ProductCreate(
            name=str(name).strip(),
            price=price,
            description=str(_pick(row, "description") or "") or None,
            cost=Decimal(str(cost)).quantize(Decimal("0.01")) if cost is not None else None,
            stock=int(_pick(row, "stock") or 0),
            barcode=_text(_pick(row, "barcode")),
            sku=_text(_pick(row, "sku")),
            category=str(_pick(row, "category") or settings.default_category),
            min_stock=int(_pick(row, "min_stock") or settings.default_min_stock),
        )
    except (InvalidOperation, TypeError) as exc:
        raise ValueError("Invalid number") from exc
    except PydanticValidationError as exc:
        raise ValueError("; ".join(error["msg"] for error in exc.errors())) from exc


def read_rows(content: bytes) -> list[dict[str, Any]]:
    try:
        workbook = openpyxl.load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError) as exc:
        raise ValidationError("Could not read the Excel file") from exc

    try:
        rows = workbook.worksheets[0].iter_rows(values_only=True)
        headers = next(rows, None)
        if not headers:
            return []
        keys = [str(header).strip().lower() if header is not None else "" for header in headers]
        return [
            dict(zip(keys, values))
            for values in rows
            if any(value not in (None, "") for value in values)
        ]
    finally:
        workbook.close()


def import_products(store: SqlStore, content: bytes, created_by: str | None = None) -> dict[str, Any]:
    rows = read_rows(content)
    if not rows:
        raise ValidationError("The Excel file is empty")

    parsed: list[ProductCreate] = []
    errors = []
    for index, row in enumerate(rows):
        try:
            parsed.append(_row_to_product(row))
        except ValueError as exc:
            # row 1 holds the headers
            errors.append({"row": index + 2, "error": str(exc)})

    if not parsed:
        raise ValidationError("No products could be read from the file", errors=[e["error"] for e in errors])

    inserted = []
    failed = 0
    for start in range(0, len(parsed), IMPORT_BATCH_SIZE):
        batch = parsed[start:start + IMPORT_BATCH_SIZE]
        try:
            created = [store.insert_product(product.model_dump(), created_by=created_by) for product in batch]
            store.commit()
        except SQLAlchemyError as exc:
            store.rollback()
            failed += len(batch)
            logger.error("Import batch starting at row %d failed: %s", start + 2, exc)
            continue
        inserted.extend(created)

    logger.info("Imported %d of %d product rows", len(inserted), len(rows))
    return {
        "total": len(rows),
        "success": len(inserted),
        "failed": failed + len(errors),
        "errors": errors,
        "products": inserted,
    }
