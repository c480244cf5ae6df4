"""
engine/money.py — Fixed-point monetary helpers.

All engine arithmetic happens in integer minor units (cents). Values enter
through to_cents() and leave through from_cents(), so no binary float is ever
accumulated or compared.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, Decimal, InvalidOperation

CENT = Decimal("0.01")

# Balances and transfers below one cent are treated as exactly settled.
EPSILON = CENT
EPSILON_CENTS = 1

# Largest amount a NUMERIC(12, 2) column can store.
MAX_AMOUNT = Decimal("9999999999.99")


class InvalidAmount(ValueError):
    """Raised when a value cannot be read as a finite monetary amount."""


def to_decimal(value) -> Decimal:
    """
    Reads a monetary value as a finite Decimal.

    Accepts Decimal, int, str, and float. Floats go through str() first so
    Decimal(0.1) style binary expansion never leaks in. Booleans, NaN and
    infinities are rejected.
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"{value!r} is not a monetary amount.")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, (int, str)):
        try:
            result = Decimal(value.strip() if isinstance(value, str) else value)
        except InvalidOperation:
            raise InvalidAmount(f"{value!r} is not a monetary amount.") from None
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        raise InvalidAmount(f"{value!r} is not a monetary amount.")

    if not result.is_finite():
        raise InvalidAmount(f"{value!r} is not a finite amount.")
    return result


def to_cents(value) -> int:
    """
    Converts a monetary value to integer cents, truncating past 2 dp.

    >>> to_cents("10.129")
    1012
    >>> to_cents(Decimal("0.005"))
    0
    """
    try:
        amount = to_decimal(value).quantize(CENT, rounding=ROUND_DOWN)
    except InvalidOperation:
        # More digits than the decimal context can hold at 2 dp, e.g. "1e30".
        raise InvalidAmount(f"{value!r} is too large to be a monetary amount.") from None
    return int(amount * 100)


def from_cents(cents: int) -> Decimal:
    """Integer cents → Decimal with exactly two fractional digits."""
    return (Decimal(cents) / 100).quantize(CENT)


def format_amount(value) -> str:
    """Renders an amount with exactly two fractional digits, e.g. "30.00"."""
    return str(from_cents(to_cents(value)))
