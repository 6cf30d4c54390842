import io
from datetime import date, timedelta

import openpyxl
import pytest


@pytest.fixture
def sold(client, auth_headers, make_product):
    coffee = make_product("Coffee", "2.50", stock=20, min_stock=5)
    sandwich = make_product("Sandwich", "5.00", stock=4, min_stock=5)

    def sell(lines, **extra):
        body = {"items": [{"product_id": p["id"], "quantity": q} for p, q in lines], **extra}
        response = client.post("/sales/checkout", json=body, headers=auth_headers)
        assert response.status_code == 200
        return response.json()

    sell([(coffee, 2), (sandwich, 1)], customer_name="Lucia")
    sell([(coffee, 3)], delivery_fee="2.00")
    sell([(sandwich, 1)], account_type="credit", customer_name="Bruno")
    return coffee, sandwich


def test_dashboard_summary(client, auth_headers, sold):
    summary = client.get("/dashboard/summary", headers=auth_headers).json()

    assert summary["today_sales"] == 3
    assert summary["total_sales"] == 3
    assert summary["total_revenue"] == 24.5
    assert summary["today_revenue"] == 24.5
    assert summary["active_products"] == 2
    assert summary["low_stock_products"] == 1


def test_dashboard_with_no_sales(client, auth_headers):
    summary = client.get("/dashboard/summary", headers=auth_headers).json()

    assert summary["total_sales"] == 0
    assert summary["total_revenue"] == 0


def test_report_summary(client, auth_headers, sold):
    report = client.get("/reports/summary", headers=auth_headers).json()

    assert report["total_sales"] == 3
    assert report["total_revenue"] == 24.5
    assert report["average_ticket"] == 8.17
    assert report["top_products"] == [
        {"name": "Coffee", "quantity": 5, "revenue": 12.5},
        {"name": "Sandwich", "quantity": 2, "revenue": 10.0},
    ]
    assert len(report["sales_by_day"]) == 1
    assert report["sales_by_day"][0]["sales"] == 3


def test_report_summary_outside_period(client, auth_headers, sold):
    last_year = date.today() - timedelta(days=400)
    report = client.get(
        "/reports/summary",
        params={"start_date": last_year.isoformat(), "end_date": (last_year + timedelta(days=1)).isoformat()},
        headers=auth_headers,
    ).json()

    assert report["total_sales"] == 0
    assert report["average_ticket"] == 0
    assert report["top_products"] == []


def test_sales_export(client, auth_headers, sold):
    response = client.get("/reports/sales.xlsx", headers=auth_headers)

    assert response.status_code == 200
    assert "attachment" in response.headers["content-disposition"]

    workbook = openpyxl.load_workbook(io.BytesIO(response.content))
    assert workbook.sheetnames == ["Sales", "Items Sold", "Summary"]

    sales = list(workbook["Sales"].iter_rows(values_only=True))
    assert sales[0][0] == "Number"
    assert len(sales) == 4

    items = list(workbook["Items Sold"].iter_rows(values_only=True))
    assert len(items) == 5

    summary = list(workbook["Summary"].iter_rows(values_only=True))
    assert summary[1][:2] == (3, 24.5)


def test_sales_export_without_sales(client, auth_headers):
    response = client.get("/reports/sales.xlsx", headers=auth_headers)

    assert response.status_code == 404


def test_products_export(client, auth_headers, make_product):
    make_product("Coffee", "2.50", stock=20, sku="CAF-001")
    make_product("Tea", "1.00", stock=0, is_active=False)

    response = client.get("/reports/products.xlsx", headers=auth_headers)

    workbook = openpyxl.load_workbook(io.BytesIO(response.content))
    assert workbook.sheetnames == ["Products"]
    rows = list(workbook["Products"].iter_rows(values_only=True))
    assert rows[1][0] == "Coffee"
    assert rows[1][7] == "CAF-001"
    assert rows[2][9] == "Inactive"


def upload(client, auth_headers, content: bytes, filename="products.xlsx"):
    return client.post(
        "/products/import",
        files={"file": (filename, content, "application/octet-stream")},
        headers=auth_headers,
    )


def test_import_template_round_trip(client, auth_headers):
    template = client.get("/products/import/template", headers=auth_headers)
    assert template.status_code == 200

    result = upload(client, auth_headers, template.content).json()

    assert result["total"] == 2
    assert result["success"] == 2
    assert result["failed"] == 0
    assert {product["sku"] for product in result["products"]} == {"CAF-001", "SAN-001"}
    assert {product["barcode"] for product in result["products"]} == {"1234567890128", "1234567890135"}


def test_import_reports_bad_rows(client, auth_headers, store):
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    sheet.append(["Name", "Price", "Stock", "Barcode"])
    sheet.append(["Empanada", 1.5, 30, None])
    sheet.append(["No price", None, 5, None])
    sheet.append(["Bad barcode", 2, 5, "1234567890123"])
    sheet.append(["Arepa", "abc", 5, None])
    buffer = io.BytesIO()
    workbook.save(buffer)

    result = upload(client, auth_headers, buffer.getvalue()).json()

    assert result["total"] == 4
    assert result["success"] == 1
    assert result["failed"] == 3
    assert [error["row"] for error in result["errors"]] == [3, 4, 5]
    assert result["products"][0]["category"] == "General"
    assert [product["name"] for product in store.list_products()] == ["Empanada"]


def test_import_rejects_other_files(client, auth_headers):
    response = upload(client, auth_headers, b"name,price\nTea,1.00\n", filename="products.csv")

    assert response.status_code == 422


def test_import_rejects_unreadable_workbook(client, auth_headers):
    response = upload(client, auth_headers, b"not a workbook")

    assert response.status_code == 422


def test_imported_workbook_is_closed(monkeypatch):
    from cashdesk.services import spreadsheets

    opened = []
    load_workbook = openpyxl.load_workbook

    def tracking_load(*args, **kwargs):
        workbook = load_workbook(*args, **kwargs)
        closed = []
        close = workbook.close
        workbook.close = lambda: (closed.append(True), close())
        opened.append(closed)
        return workbook

    monkeypatch.setattr(spreadsheets.openpyxl, "load_workbook", tracking_load)

    rows = spreadsheets.read_rows(spreadsheets.import_template())

    assert [row["nombre"] for row in rows] == ["Americano Coffee", "Ham Sandwich"]
    assert opened == [[True]]
