import logging
import math
from contextlib import asynccontextmanager
from datetime import date

from fastapi import BackgroundTasks, Depends, FastAPI, File, HTTPException, Query, UploadFile, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from sqlalchemy.exc import IntegrityError

from cashdesk.core.config import settings
from cashdesk.core.errors import ConflictError, NotFoundError, ValidationError, register_exception_handlers
from cashdesk.core.logging import configure_logging
from cashdesk.core.security import check_password, create_access_token, hash_password
from cashdesk.db.session import init_db
from cashdesk.db.store import SqlStore
from cashdesk.schemas.auth import LoginRequest, ProfileUpdate, RegisterRequest, TokenResponse, UserOut
from cashdesk.schemas.inventory import (
    ImportResult,
    LowStockItem,
    ProductCreate,
    ProductOut,
    ProductUpdate,
    StockUpdate,
)
from cashdesk.schemas.sales import (
    CheckoutRequest,
    CheckoutResponse,
    DashboardSummary,
    ReportSummary,
    SaleDetail,
    SaleOut,
    SalePage,
    SaleStatus,
    SaleStatusUpdate,
)
from cashdesk.services import reports, spreadsheets
from cashdesk.services.checkout import CustomerInfo, SaleRecorder, build_cart
from cashdesk.services.deps import get_current_user, get_store
from cashdesk.services.notifier import SheetsNotifier, get_notifier, sale_snapshot
from cashdesk.services.receipt import render_receipt, render_receipt_text
from cashdesk.services.reports import day_bounds

logger = logging.getLogger(__name__)

NULLABLE_PRODUCT_FIELDS = {"description", "cost", "sku", "barcode"}


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging(settings.log_level)
    init_db()
    logger.info("cashdesk API ready")
    yield


app = FastAPI(title="Cashdesk API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)


def get_product_or_404(store: SqlStore, product_id: str) -> dict:
    product = store.get_product(product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def get_sale_or_404(store: SqlStore, sale_id: str) -> dict:
    sale = store.get_sale(sale_id)
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


def xlsx_response(content: bytes, filename: str) -> Response:
    return Response(
        content=content,
        media_type=spreadsheets.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/health")
def health():
    return {"status": "ok"}


# -------------------------
# Auth & profile
# -------------------------
@app.post("/auth/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def register(payload: RegisterRequest, store: SqlStore = Depends(get_store)):
    if store.get_user_by_email(payload.email):
        raise ConflictError("Email already registered")

    try:
        user = store.insert_user(payload.email, hash_password(payload.password), payload.full_name)
        store.commit()
    except IntegrityError:
        store.rollback()
        raise ConflictError("Email already registered")

    logger.info("Registered user %s", user["email"])
    return user


@app.post("/auth/login", response_model=TokenResponse)
def login(payload: LoginRequest, store: SqlStore = Depends(get_store)):
    user = store.get_user_by_email(payload.email)

    if not user or not user["is_active"]:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    if not check_password(payload.password, user["password_hash"]):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    store.touch_login(user["id"])
    store.commit()

    token = create_access_token(user)
    return TokenResponse(
        access_token=token,
        user_id=user["id"],
        email=user["email"],
        full_name=user["full_name"],
        role=user["role"],
    )


@app.get("/users/me", response_model=UserOut)
def read_profile(user: dict = Depends(get_current_user)):
    return user


@app.patch("/users/me", response_model=UserOut)
def update_profile(
    payload: ProfileUpdate,
    store: SqlStore = Depends(get_store),
    user: dict = Depends(get_current_user),
):
    changes = {}
    if payload.full_name is not None:
        changes["full_name"] = payload.full_name.strip()
    if payload.new_password:
        if not check_password(payload.current_password, user["password_hash"]):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
        changes["password_hash"] = hash_password(payload.new_password)

    store.update_user(user["id"], **changes)
    store.commit()
    return store.get_user(user["id"])


# -------------------------
# Catalog
# -------------------------
@app.get("/products", response_model=list[ProductOut])
def list_products(
    search: str | None = None,
    category: str | None = None,
    active: bool | None = None,
    low_stock: bool = False,
    store: SqlStore = Depends(get_store),
    _: dict = Depends(get_current_user),
):
    return store.list_products(search=search, category=category, active=active, low_stock=low_stock)


@app.get("/products/categories", response_model=list[str])
def list_categories(store: SqlStore = Depends(get_store), _: dict = Depends(get_current_user)):
    return store.list_categories()


@app.get("/products/import/template")
def product_import_template(_: dict = Depends(get_current_user)):
    return xlsx_response(spreadsheets.import_template(), "products_template.xlsx")


@app.post("/products/import", response_model=ImportResult)
async def import_products(
    file: UploadFile = File(...),
    store: SqlStore = Depends(get_store),
    user: dict = Depends(get_current_user),
):
    if not (file.filename or "").lower().endswith((".xlsx", ".xlsm")):
        raise ValidationError("Upload an .xlsx file")
    content = await file.read()
    return spreadsheets.import_products(store, content, created_by=user["id"])


@app.post("/products", response_model=ProductOut, status_code=status.HTTP_201_CREATED)
def create_product(
    payload: ProductCreate,
    store: SqlStore = Depends(get_store),
    user: dict = Depends(get_current_user),
):
    values = payload.model_dump()
    values["category"] = values.get("category") or settings.default_category
    product = store.insert_product(values, created_by=user["id"])
    store.commit()
    logger.info("Product %s created by %s", product["name"], user["email"])
    return product


@app.get("/products/{product_id}", response_model=ProductOut)
def read_product(product_id: str, store: SqlStore = Depends(get_store), _: dict = Depends(get_current_user)):
    return get_product_or_404(store, product_id)


@app.patch("/products/{product_id}", response_model=ProductOut)
def update_product(
    product_id: str,
    payload: ProductUpdate,
    store: SqlStore = Depends(get_store),
    _: dict = Depends(get_current_user),
):
    get_product_or_404(store, product_id)
    values = {
        key: value
        for key, value in payload.model_dump(exclude_unset=True).items()
        if value is not None or key in NULLABLE_PRODUCT_FIELDS
    }
    product = store.update_product(product_id, values)
    store.commit()
    return product


@app.delete("/products/{product_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_product(product_id: str, store: SqlStore = Depends(get_store), _: dict = Depends(get_current_user)):
    get_product_or_404(store, product_id)
    if store.product_has_sales(product_id):
        raise ConflictError("Product appears in recorded sales; deactivate it instead")
    store.delete_product(product_id)
    store.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.post("/products/{product_id}/toggle-active", response_model=ProductOut)
def toggle_product(product_id: str, store: SqlStore = Depends(get_store), _: dict = Depends(get_current_user)):
    product = get_product_or_404(store, product_id)
    product = store.update_product(product_id, {"is_active": not product["is_active"]})
    store.commit()
    return product


@app.post("/products/{product_id}/stock", response_model=ProductOut)
def set_product_stock(
    product_id: str,
    payload: StockUpdate,
    store: SqlStore = Depends(get_store),
    _: dict = Depends(get_current_user),
):
    get_product_or_404(store, product_id)
    product = store.update_product(product_id, {"stock": payload.stock})
    store.commit()
    return product


@app.get("/inventory/alerts/low-stock", response_model=list[LowStockItem])
def low_stock_alerts(store: SqlStore = Depends(get_store), _: dict = Depends(get_current_user)):
    return [
        LowStockItem(
            product_id=product["id"],
            name=product["name"],
            category=product["category"],
            stock=product["stock"],
            min_stock=product["min_stock"],
        )
        for product in store.list_products(active=True, low_stock=True)
    ]


# -------------------------
# Register & sales
# -------------------------
@app.post("/sales/checkout", response_model=CheckoutResponse)
def checkout(
    payload: CheckoutRequest,
    background_tasks: BackgroundTasks,
    store: SqlStore = Depends(get_store),
    notifier: SheetsNotifier = Depends(get_notifier),
    user: dict = Depends(get_current_user),
):
    cart = build_cart(store, payload.items)
    committed = SaleRecorder(store).commit(
        cart,
        CustomerInfo(
            name=payload.customer_name,
            phone=payload.customer_phone,
            address=payload.customer_address,
        ),
        account_type=payload.account_type,
        payment_method=payload.payment_method.value,
        delivery_fee=payload.delivery_fee,
        product_state=payload.product_state.value,
        created_by=user["id"],
    )

    background_tasks.add_task(notifier.notify, sale_snapshot(committed.sale, committed.items))

    sale = committed.sale
    return CheckoutResponse(
        sale_id=sale["id"],
        sale_number=sale["sale_number"],
        status=sale["status"],
        account_type=sale["account_type"],
        payment_method=sale["payment_method"],
        subtotal=float(sale["subtotal"]),
        delivery_fee=float(sale["delivery_fee"]),
        total=float(sale["total_amount"]),
        currency=settings.currency,
        receipt_url=f"/sales/{sale['id']}/receipt",
        stock_warnings=committed.stock_warnings,
    )


@app.get("/sales", response_model=SalePage)
def list_sales(
    search: str | None = None,
    account_type: str | None = None,
    payment_method: str | None = None,
    product_state: str | None = None,
    sale_status: str | None = Query(default=None, alias="status"),
    start_date: date | None = None,
    end_date: date | None = None,
    sort: str = "created_at",
    direction: str = Query(default="desc", pattern="^(asc|desc)$"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    store: SqlStore = Depends(get_store),
    _: dict = Depends(get_current_user),
):
    start, end = day_bounds(start_date, end_date)
    try:
        sales, total = store.list_sales(
            search=search,
            account_type=account_type,
            payment_method=payment_method,
            product_state=product_state,
            status=sale_status,
            start=start,
            end=end,
            sort=sort,
            direction=direction,
            limit=page_size,
            offset=(page - 1) * page_size,
        )
    except ValueError as exc:
        raise ValidationError(str(exc))

    return SalePage(
        items=[SaleOut(**sale) for sale in sales],
        total=total,
        page=page,
        page_size=page_size,
        pages=math.ceil(total / page_size) if total else 0,
    )


@app.get("/sales/{sale_id}", response_model=SaleDetail)
def read_sale(sale_id: str, store: SqlStore = Depends(get_store), _: dict = Depends(get_current_user)):
    sale = get_sale_or_404(store, sale_id)
    return {**sale, "items": store.get_sale_items(sale_id)}


@app.get("/sales/{sale_id}/receipt")
def sale_receipt(
    sale_id: str,
    output: str = Query(default="html", alias="format", pattern="^(html|text)$"),
    store: SqlStore = Depends(get_store),
    _: dict = Depends(get_current_user),
):
    sale = get_sale_or_404(store, sale_id)
    items = store.get_sale_items(sale_id)
    if output == "text":
        return PlainTextResponse(render_receipt_text(sale, items))
    return HTMLResponse(render_receipt(sale, items))


@app.post("/sales/{sale_id}/status", response_model=SaleOut)
def update_sale_status(
    sale_id: str,
    payload: SaleStatusUpdate,
    store: SqlStore = Depends(get_store),
    user: dict = Depends(get_current_user),
):
    sale = get_sale_or_404(store, sale_id)
    if sale["status"] != SaleStatus.PENDING.value or payload.status == SaleStatus.PENDING:
        raise ConflictError(f"Cannot move a {sale['status']} sale to {payload.status.value}")

    store.update_sale_status(sale_id, payload.status.value)
    store.commit()
    logger.info("Sale #%s marked %s by %s", sale["sale_number"], payload.status.value, user["email"])
    return store.get_sale(sale_id)


# -------------------------
# Dashboard & reports
# -------------------------
@app.get("/dashboard/summary", response_model=DashboardSummary)
def dashboard_summary(store: SqlStore = Depends(get_store), _: dict = Depends(get_current_user)):
    return reports.dashboard_summary(store)


@app.get("/reports/summary", response_model=ReportSummary)
def report_summary(
    start_date: date | None = None,
    end_date: date | None = None,
    store: SqlStore = Depends(get_store),
    _: dict = Depends(get_current_user),
):
    return reports.report_summary(store, start_date, end_date)


@app.get("/reports/sales.xlsx")
def export_sales(
    start_date: date | None = None,
    end_date: date | None = None,
    store: SqlStore = Depends(get_store),
    _: dict = Depends(get_current_user),
):
    content = spreadsheets.export_sales(store, start_date, end_date)
    return xlsx_response(content, f"sales_{date.today().isoformat()}.xlsx")


@app.get("/reports/products.xlsx")
def export_products(store: SqlStore = Depends(get_store), _: dict = Depends(get_current_user)):
    return xlsx_response(spreadsheets.export_products(store), f"products_{date.today().isoformat()}.xlsx")
