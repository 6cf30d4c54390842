"""Checkout endpoint, sales history and back-office status changes."""

import pytest

from cashdesk.main import app
from cashdesk.services.notifier import get_notifier
from conftest import RecordingNotifier


@pytest.fixture
def coffee(make_product):
    return make_product("Coffee", "2.50", stock=20)


@pytest.fixture
def sandwich(make_product):
    return make_product("Sandwich", "5.00", stock=8)


def checkout(client, auth_headers, lines, **extra):
    body = {"items": [{"product_id": p["id"], "quantity": q} for p, q in lines], **extra}
    return client.post("/sales/checkout", json=body, headers=auth_headers)


def test_checkout_cash(client, auth_headers, store, notifier, coffee, sandwich):
    response = checkout(
        client,
        auth_headers,
        [(coffee, 2), (sandwich, 1)],
        delivery_fee="1.00",
        customer_name="Lucia",
        customer_phone="3001234567",
    )

    assert response.status_code == 200
    data = response.json()
    assert data["sale_number"] == 1
    assert data["status"] == "completed"
    assert data["subtotal"] == 10.0
    assert data["total"] == 11.0
    assert data["receipt_url"] == f"/sales/{data['sale_id']}/receipt"
    assert data["stock_warnings"] == []

    assert store.get_product(coffee["id"])["stock"] == 18
    assert store.get_product(sandwich["id"])["stock"] == 7

    assert len(notifier.payloads) == 1
    assert notifier.payloads[0]["saleNumber"] == 1
    assert notifier.payloads[0]["customerName"] == "Lucia"


def test_checkout_credit_with_spanish_labels(client, auth_headers, store, coffee, sandwich):
    response = checkout(
        client,
        auth_headers,
        [(coffee, 2), (sandwich, 1)],
        account_type="credito",
        payment_method="transferencia",
        product_state="frito",
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "pending"
    assert data["account_type"] == "credit"
    assert data["payment_method"] == "transfer"
    assert store.get_product(coffee["id"])["stock"] == 20
    assert store.get_product(sandwich["id"])["stock"] == 8

    sale = client.get(f"/sales/{data['sale_id']}", headers=auth_headers).json()
    assert sale["product_state"] == "fried"
    assert sale["customer_name"] == "Occasional customer"


def test_checkout_empty_cart(client, auth_headers, notifier, count_rows):
    response = client.post("/sales/checkout", json={"items": []}, headers=auth_headers)

    assert response.status_code == 422
    assert response.json()["detail"] == "Cart is empty"
    assert count_rows("sales") == 0
    assert notifier.payloads == []


def test_checkout_beyond_stock_keeps_nothing(client, auth_headers, store, sandwich, count_rows):
    response = checkout(client, auth_headers, [(sandwich, 9)])

    assert response.status_code == 422
    assert "Insufficient stock" in response.json()["detail"]
    assert count_rows("sales") == 0
    assert store.get_product(sandwich["id"])["stock"] == 8


def test_checkout_unknown_product(client, auth_headers):
    response = client.post(
        "/sales/checkout",
        json={"items": [{"product_id": "nope", "quantity": 1}]},
        headers=auth_headers,
    )

    assert response.status_code == 404


def test_checkout_rejects_non_positive_quantity(client, auth_headers, coffee):
    response = checkout(client, auth_headers, [(coffee, 0)])

    assert response.status_code == 422


def test_notifier_failure_does_not_affect_sale(client, auth_headers, store, coffee):
    outage = RecordingNotifier(fail=True)
    app.dependency_overrides[get_notifier] = lambda: outage

    response = checkout(client, auth_headers, [(coffee, 2)])

    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert len(outage.payloads) == 1
    assert store.get_product(coffee["id"])["stock"] == 18


def test_checkout_requires_auth(client, coffee):
    response = client.post("/sales/checkout", json={"items": [{"product_id": coffee["id"], "quantity": 1}]})

    assert response.status_code == 401


def test_sales_history_filters_and_pagination(client, auth_headers, coffee, sandwich):
    checkout(client, auth_headers, [(coffee, 1)], customer_name="Ana")
    checkout(client, auth_headers, [(sandwich, 1)], customer_name="Bruno", account_type="credit")
    checkout(client, auth_headers, [(coffee, 3)], customer_name="Carla", customer_phone="3109876543")

    everything = client.get("/sales", headers=auth_headers).json()
    assert everything["total"] == 3
    assert [sale["sale_number"] for sale in everything["items"]] == [3, 2, 1]

    credit = client.get("/sales", params={"account_type": "credit"}, headers=auth_headers).json()
    assert [sale["customer_name"] for sale in credit["items"]] == ["Bruno"]

    pending = client.get("/sales", params={"status": "pending"}, headers=auth_headers).json()
    assert pending["total"] == 1

    by_phone = client.get("/sales", params={"search": "98765"}, headers=auth_headers).json()
    assert [sale["customer_name"] for sale in by_phone["items"]] == ["Carla"]

    page = client.get(
        "/sales",
        params={"sort": "total_amount", "direction": "asc", "page": 2, "page_size": 2},
        headers=auth_headers,
    ).json()
    assert page["pages"] == 2
    assert [sale["customer_name"] for sale in page["items"]] == ["Carla"]


def test_sales_history_rejects_unknown_sort(client, auth_headers):
    response = client.get("/sales", params={"sort": "password"}, headers=auth_headers)

    assert response.status_code == 422


def test_sale_detail_and_receipt(client, auth_headers, coffee):
    sale_id = checkout(client, auth_headers, [(coffee, 2)], delivery_fee="1.50").json()["sale_id"]

    detail = client.get(f"/sales/{sale_id}", headers=auth_headers).json()
    assert detail["items"] == [
        {
            "product_id": coffee["id"],
            "product_name": "Coffee",
            "quantity": 2,
            "unit_price": 2.5,
            "subtotal": 5.0,
        }
    ]

    receipt = client.get(f"/sales/{sale_id}/receipt", headers=auth_headers)
    assert receipt.status_code == 200
    assert receipt.headers["content-type"].startswith("text/html")
    assert "$6.50" in receipt.text

    text_receipt = client.get(f"/sales/{sale_id}/receipt", params={"format": "text"}, headers=auth_headers)
    assert text_receipt.headers["content-type"].startswith("text/plain")
    assert "Receipt #1" in text_receipt.text


def test_unknown_sale_is_404(client, auth_headers):
    assert client.get("/sales/missing", headers=auth_headers).status_code == 404


def test_pending_sale_can_be_settled_once(client, auth_headers, coffee):
    sale_id = checkout(client, auth_headers, [(coffee, 1)], account_type="credit").json()["sale_id"]

    settled = client.post(f"/sales/{sale_id}/status", json={"status": "completed"}, headers=auth_headers)
    assert settled.status_code == 200
    assert settled.json()["status"] == "completed"

    again = client.post(f"/sales/{sale_id}/status", json={"status": "cancelled"}, headers=auth_headers)
    assert again.status_code == 409


def test_completed_cash_sale_cannot_be_cancelled(client, auth_headers, coffee):
    sale_id = checkout(client, auth_headers, [(coffee, 1)]).json()["sale_id"]

    response = client.post(f"/sales/{sale_id}/status", json={"status": "cancelled"}, headers=auth_headers)

    assert response.status_code == 409
