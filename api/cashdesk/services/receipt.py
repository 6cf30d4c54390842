from datetime import datetime
from html import escape
from typing import Any

from cashdesk.core.config import settings
from cashdesk.core.money import format_money, to_money

PAYMENT_LABELS = {"cash": "Cash", "transfer": "Transfer"}
ACCOUNT_LABELS = {"cash": "Cash", "credit": "Credit"}
STATE_LABELS = {"frozen": "FROZEN", "fried": "FRIED"}

RECEIPT_CSS = """
body { font-family: 'Courier New', monospace; width: 80mm; padding: 10px; margin: 0; }
.header { text-align: center; margin-bottom: 15px; padding-bottom: 10px; border-bottom: 1px dashed #000; }
.item { display: flex; justify-content: space-between; margin: 5px 0; font-size: 12px; }
.item-detail { display: flex; flex-direction: column; }
.subtotal { border-top: 1px solid #000; margin-top: 10px; padding-top: 10px; }
.total { border-top: 2px solid #000; margin-top: 10px; padding-top: 10px; font-weight: bold; }
.footer { text-align: center; margin-top: 20px; font-size: 10px; color: #666; }
.separator { border-top: 1px dashed #ccc; margin: 10px 0; }
.badge { display: inline-block; padding: 2px 6px; border-radius: 4px; font-size: 10px; font-weight: bold; margin-left: 5px; }
.badge-credit { background: #fef3c7; color: #92400e; }
.badge-fried { background: #fee2e2; color: #991b1b; }
.badge-frozen { background: #dbeafe; color: #1e40af; }
"""


def _receipt_lines(sale: dict[str, Any], items: list[dict[str, Any]]) -> dict[str, Any]:
    subtotal = to_money(sum((to_money(item["subtotal"]) for item in items), to_money(0)))
    delivery_fee = to_money(sale.get("delivery_fee"))
    created_at = sale.get("created_at")
    account_type = sale.get("account_type") or "cash"
    payment_method = sale.get("payment_method") or ""
    return {
        "number": sale.get("sale_number", ""),
        "timestamp": created_at.strftime("%Y-%m-%d %H:%M") if isinstance(created_at, datetime) else "",
        "customer": sale.get("customer_name") or settings.occasional_customer_name,
        "phone": sale.get("phone"),
        "address": sale.get("address"),
        "state": sale.get("product_state"),
        "subtotal": subtotal,
        "delivery_fee": delivery_fee,
        "total": subtotal + delivery_fee,
        "payment": PAYMENT_LABELS.get(payment_method, payment_method.title()),
        "account_type": account_type,
        "account": ACCOUNT_LABELS.get(account_type, account_type.title()),
    }


def render_receipt(sale: dict[str, Any], items: list[dict[str, Any]]) -> str:
    """Printable HTML ticket for a committed sale."""
    r = _receipt_lines(sale, items)
    state_badge = ""
    if r["state"]:
        state_badge = (
            f'<div><span class="badge badge-{escape(r["state"])}">'
            f'{escape(STATE_LABELS.get(r["state"], r["state"].upper()))}</span></div>'
        )

    rows = "".join(
        f"""
        <div class="item">
          <div class="item-detail">
            <div>{escape(item["product_name"])}</div>
            <div>{item["quantity"]} x {format_money(item["unit_price"])}</div>
            {state_badge}
          </div>
          <div>{format_money(item["subtotal"])}</div>
        </div>"""
        for item in items
    )

    delivery = ""
    if r["delivery_fee"] > 0:
        delivery = f"""
        <div class="item"><div>Delivery</div><div>{format_money(r["delivery_fee"])}</div></div>"""

    credit_badge = ' <span class="badge badge-credit">CREDIT</span>' if r["account_type"] == "credit" else ""

    contact = ""
    for label, value in (("Customer", r["customer"]), ("Phone", r["phone"]), ("Address", r["address"])):
        if value:
            contact += f"""
        <div class="item"><div>{label}:</div><div>{escape(value)}</div></div>"""

    title = f"Receipt #{r['number']}"
    business = escape(settings.business_name)
    return f"""<html>
  <head>
    <title>{title}</title>
    <style>{RECEIPT_CSS}</style>
  </head>
  <body>
    <div class="header">
      <h2 style="margin: 0">{business}</h2>
      <p style="margin: 5px 0">{title}</p>
      <p style="margin: 5px 0">{r["timestamp"]}</p>
    </div>
    <div class="separator"></div>
    {rows}
    <div class="separator"></div>
    <div class="item subtotal"><div>Subtotal</div><div>{format_money(r["subtotal"])}</div></div>{delivery}
    <div class="item total"><div>TOTAL</div><div>{format_money(r["total"])}</div></div>
    <div class="separator"></div>
    <div class="item"><div>Payment method:</div><div>{escape(r["payment"])}</div></div>
    <div class="item"><div>Account type:</div><div>{escape(r["account"])}{credit_badge}</div></div>{contact}
    <div class="footer">
      <p>Thank you for your purchase!</p>
      <p>{business}</p>
    </div>
  </body>
</html>
"""


def render_receipt_text(sale: dict[str, Any], items: list[dict[str, Any]], width: int = 40) -> str:
    r = _receipt_lines(sale, items)

    def row(left: str, right: str = "") -> str:
        gap = max(width - len(left) - len(right), 1)
        return f"{left}{' ' * gap}{right}"

    out = [
        settings.business_name.center(width),
        f"Receipt #{r['number']}".center(width),
        r["timestamp"].center(width),
        "-" * width,
    ]
    for item in items:
        out.append(item["product_name"][:width])
        out.append(row(f"  {item['quantity']} x {format_money(item['unit_price'])}", format_money(item["subtotal"])))
    if r["state"]:
        out.append(f"[{STATE_LABELS.get(r['state'], r['state'].upper())}]")
    out.append("-" * width)
    out.append(row("Subtotal", format_money(r["subtotal"])))
    if r["delivery_fee"] > 0:
        out.append(row("Delivery", format_money(r["delivery_fee"])))
    out.append(row("TOTAL", format_money(r["total"])))
    out.append("-" * width)
    out.append(row("Payment method:", r["payment"]))
    out.append(row("Account type:", r["account"] + (" [CREDIT]" if r["account_type"] == "credit" else "")))
    for label, value in (("Customer", r["customer"]), ("Phone", r["phone"]), ("Address", r["address"])):
        if value:
            out.append(row(f"{label}:", value))
    return "\n".join(out) + "\n"
