from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any

from cashdesk.core.money import to_money
from cashdesk.db.store import SqlStore


def day_bounds(start_date: date | None, end_date: date | None) -> tuple[datetime | None, datetime | None]:
    """Inclusive calendar dates to a half-open UTC range."""
    start = datetime.combine(start_date, time.min, tzinfo=timezone.utc) if start_date else None
    end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc) if end_date else None
    return start, end


def dashboard_summary(store: SqlStore, today: date | None = None) -> dict[str, Any]:
    today = today or datetime.now(timezone.utc).date()
    today_totals = store.sales_totals(*day_bounds(today, today))
    all_totals = store.sales_totals()
    counts = store.count_products()
    return {
        "today_revenue": today_totals["revenue"],
        "today_sales": today_totals["sales"],
        "total_revenue": all_totals["revenue"],
        "total_sales": all_totals["sales"],
        **counts,
    }


def sales_with_items(
    store: SqlStore, start_date: date | None = None, end_date: date | None = None
) -> list[dict[str, Any]]:
    start, end = day_bounds(start_date, end_date)
    sales, _ = store.list_sales(start=start, end=end)
    grouped = store.items_for_sales([sale["id"] for sale in sales])
    return [{**sale, "items": grouped[sale["id"]]} for sale in sales]


def report_summary(
    store: SqlStore, start_date: date | None = None, end_date: date | None = None, top: int = 5
) -> dict[str, Any]:
    sales = sales_with_items(store, start_date, end_date)
    revenue = to_money(sum((sale["total_amount"] for sale in sales), Decimal("0")))
    average = to_money(revenue / len(sales)) if sales else Decimal("0.00")

    by_product: dict[str, dict[str, Any]] = {}
    by_day: dict[date, dict[str, Any]] = defaultdict(lambda: {"sales": 0, "revenue": Decimal("0")})
    for sale in sales:
        day = by_day[sale["created_at"].date()]
        day["sales"] += 1
        day["revenue"] += sale["total_amount"]
        for item in sale["items"]:
            entry = by_product.setdefault(
                item["product_name"],
                {"name": item["product_name"], "quantity": 0, "revenue": Decimal("0")},
            )
            entry["quantity"] += item["quantity"]
            entry["revenue"] += item["subtotal"]

    top_products = sorted(by_product.values(), key=lambda entry: (-entry["quantity"], entry["name"]))[:top]
    return {
        "start_date": start_date,
        "end_date": end_date,
        "total_sales": len(sales),
        "total_revenue": revenue,
        "average_ticket": average,
        "top_products": top_products,
        "sales_by_day": [{"day": day, **values} for day, values in sorted(by_day.items())],
    }
