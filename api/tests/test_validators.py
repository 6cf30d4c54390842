from decimal import Decimal

import pytest

from cashdesk.core.money import format_money, to_money
from cashdesk.core.validators import has_at_most_two_decimals, is_valid_barcode, is_valid_phone, is_valid_sku


@pytest.mark.parametrize(
    "barcode, expected",
    [
        ("1234567890128", True),
        ("4006381333931", True),
        ("1234567890123", False),
        ("123456789012", False),
        ("12345678901a8", False),
        ("", True),
        (None, True),
    ],
)
def test_barcode(barcode, expected):
    assert is_valid_barcode(barcode) is expected


@pytest.mark.parametrize(
    "sku, expected",
    [("CAF-001", True), ("san_02", True), ("AB", False), ("has space", False), ("x" * 51, False), (None, True)],
)
def test_sku(sku, expected):
    assert is_valid_sku(sku) is expected


def test_phone():
    assert is_valid_phone("+57 300 123 4567")
    assert is_valid_phone("(601) 555-0100")
    assert not is_valid_phone("12345")
    assert not is_valid_phone("call me")


def test_two_decimals():
    assert has_at_most_two_decimals(Decimal("2.5"))
    assert has_at_most_two_decimals(Decimal("10"))
    assert not has_at_most_two_decimals(Decimal("1.005"))


def test_money_helpers():
    assert to_money("2.345") == Decimal("2.35")
    assert to_money(None) == Decimal("0.00")
    assert to_money(1.1) == Decimal("1.10")
    assert format_money(Decimal("1234.5")) == "$1,234.50"
