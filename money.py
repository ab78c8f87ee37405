from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Union

Number = Union[int, float, Decimal]

# Largest amount accepted on input; keeps cents inside a signed 64-bit column.
MAX_AMOUNT = Decimal("999999999.99")


def to_cents(amount: Union[Number, str]) -> int:
    """Convert a decimal amount (e.g. ``12.5`` or ``"12.50"``) to integer cents."""
    try:
        value = Decimal(str(amount).strip().replace("$", "").replace(" ", ""))
        if not value.is_finite():
            raise ValueError("Invalid amount")
        return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
    except InvalidOperation as exc:
        raise ValueError("Invalid amount") from exc


def cents_to_amount(cents: int) -> float:
    return float((Decimal(cents) / 100).quantize(Decimal("0.01")))


def round_half_up(value: Number, places: int = 0) -> float:
    """Round like a calculator does: halves go away from zero."""
    exponent = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(exponent, rounding=ROUND_HALF_UP)
    return float(rounded)


def percent(part: Number, whole: Number) -> float:
    if not whole:
        return 0.0
    return float(part) / float(whole) * 100


def format_money(cents: int) -> str:
    sign = "-" if cents < 0 else ""
    return f"{sign}${Decimal(abs(cents)) / 100:.2f}"
