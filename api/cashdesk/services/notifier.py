"""Mirror committed sales to the bookkeeping spreadsheet webhook."""

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from cashdesk.core.config import settings
from cashdesk.core.errors import NotificationError

logger = logging.getLogger(__name__)


@dataclass
class NotificationResult:
    success: bool
    skipped: bool = False
    error: str | None = None


def sale_snapshot(sale: dict[str, Any], items: list[dict[str, Any]]) -> dict[str, Any]:
    """JSON body the spreadsheet script expects."""
    return {
        "saleId": sale["id"],
        "saleNumber": sale["sale_number"],
        "customerName": sale["customer_name"],
        "customerPhone": sale.get("phone") or "",
        "customerAddress": sale.get("address") or "",
        "accountType": sale["account_type"],
        "productState": sale.get("product_state") or "",
        "deliveryFee": float(sale["delivery_fee"]),
        "subtotal": float(sale["subtotal"]),
        "total": float(sale["total_amount"]),
        "paymentMethod": sale["payment_method"],
        "status": sale["status"],
        "createdAt": sale["created_at"].isoformat() if sale.get("created_at") else None,
        "items": [
            {
                "name": item["product_name"],
                "quantity": item["quantity"],
                "price": float(item["unit_price"]),
                "state": sale.get("product_state") or "",
                "subtotal": float(item["subtotal"]),
            }
            for item in items
        ],
    }


class SheetsNotifier:
    def __init__(
        self,
        url: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.url = url
        self.timeout = timeout if timeout is not None else settings.sheets_timeout_seconds
        self.transport = transport

    def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            response = client.post(self.url, json=payload)

        if response.status_code >= 300:
            raise NotificationError(f"Webhook answered HTTP {response.status_code}")
        try:
            body = response.json()
        except ValueError as exc:
            raise NotificationError("Webhook answered with a non-JSON body") from exc
        if isinstance(body, dict) and body.get("success") is False:
            raise NotificationError(f"Webhook reported failure: {body.get('error', 'unknown error')}")
        return body

    def notify(self, payload: dict[str, Any]) -> NotificationResult:
        if not self.url:
            logger.debug("Sheets webhook not configured, sale #%s not mirrored", payload.get("saleNumber"))
            return NotificationResult(success=False, skipped=True)

        try:
            self._post(payload)
        except (httpx.HTTPError, NotificationError) as exc:
            logger.warning(
                "Sale #%s saved but not mirrored to sheets: %s",
                payload.get("saleNumber"),
                exc,
            )
            return NotificationResult(success=False, error=str(exc))
        except Exception as exc:
            logger.warning(
                "Sale #%s saved but sheets mirroring crashed: %r",
                payload.get("saleNumber"),
                exc,
            )
            return NotificationResult(success=False, error=repr(exc))

        logger.info("Sale #%s mirrored to sheets", payload.get("saleNumber"))
        return NotificationResult(success=True)


def get_notifier() -> SheetsNotifier:
    return SheetsNotifier(url=settings.sheets_webhook_url)
