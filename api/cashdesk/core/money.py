from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

TWOPLACES = Decimal("0.01")


def to_money(value) -> Decimal:
    """Coerce a DB value, float or string to a 2dp Decimal.

    SQLite hands NUMERIC columns back as float or int, PostgreSQL as Decimal.
    """
    if value is None or value == "":
        return Decimal("0.00")
    try:
        return Decimal(str(value)).quantize(TWOPLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Invalid amount: {value!r}") from exc


def format_money(value, symbol: str = "$") -> str:
    return f"{symbol}{to_money(value):,.2f}"
