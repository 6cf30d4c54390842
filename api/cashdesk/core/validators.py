import re
from decimal import Decimal

SKU_RE = re.compile(r"^[A-Za-z0-9\-_]+$")
PHONE_RE = re.compile(r"^\+?[0-9\s\-()]{8,}$")


def is_valid_barcode(barcode: str | None) -> bool:
    """EAN-13 with check digit. Empty means "no barcode" and is accepted."""
    if not barcode:
        return True
    if len(barcode) != 13 or not barcode.isdigit():
        return False

    total = sum(int(d) if i % 2 == 0 else int(d) * 3 for i, d in enumerate(barcode[:12]))
    check_digit = (10 - total % 10) % 10
    return check_digit == int(barcode[12])


def is_valid_sku(sku: str | None) -> bool:
    if not sku:
        return True
    return bool(SKU_RE.match(sku)) and 3 <= len(sku) <= 50


def is_valid_phone(phone: str | None) -> bool:
    if not phone:
        return True
    return bool(PHONE_RE.match(phone))


def has_at_most_two_decimals(value: Decimal) -> bool:
    return value == value.quantize(Decimal("0.01"))
