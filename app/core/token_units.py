# app/core/token_units.py
"""
Conversions between display amounts (UTICK, dollars) and token base units.

UTICK has 18 decimals. Amounts arrive as floats computed from listing
prices, so multiplying by 1e18 would leak IEEE-754 error into the integer
amount and make the approved allowance differ from what is later charged.
Instead the shortest decimal rendering of the amount is split into its
integer and fractional digits, the fraction is right-padded to 18 digits,
and the two are concatenated:

    12.5   -> "12" + "500000000000000000"  -> 12500000000000000000
    80.4   -> "80" + "400000000000000000"  -> 80400000000000000000

Every call site that needs base units (approval, settlement, diagnostics)
goes through `to_base_units` so they always agree.
"""

import math
from decimal import Decimal, InvalidOperation

TOKEN_DECIMALS = 18

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

Amount = float | int | str | Decimal


def _plain_decimal_string(amount: Amount) -> str:
    """
    Render `amount` as a plain (non-exponent) decimal string.

    Floats use repr(), which is the shortest string that round-trips,
    i.e. the same digits a JavaScript Number would print.
    """
    if isinstance(amount, bool):
        raise ValueError("Token amount must be a number")

    if isinstance(amount, float):
        if not math.isfinite(amount):
            raise ValueError(f"Invalid token amount: {amount!r}")
        text = repr(amount)
    else:
        text = str(amount).strip()

    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValueError(f"Invalid token amount: {amount!r}")

    if not value.is_finite():
        raise ValueError(f"Invalid token amount: {amount!r}")
    if value < 0:
        raise ValueError("Token amount cannot be negative")

    return format(value, "f")


def to_base_units(amount: Amount) -> int:
    """
    Convert a display amount into integer base units.

    Digits beyond the 18th fractional place are truncated.

    Raises:
        ValueError: for negative, non-finite, or non-numeric input.
    """
    text = _plain_decimal_string(amount)
    integer_part, _, fraction = text.partition(".")
    padded = fraction.ljust(TOKEN_DECIMALS, "0")[:TOKEN_DECIMALS]
    return int((integer_part or "0") + padded)


def to_wei_string(amount: Amount) -> str:
    """Same as `to_base_units`, as a decimal string (JSON-safe)."""
    return str(to_base_units(amount))


def from_base_units(raw: int | str) -> float:
    """Base units -> float. Display only; never compare with this."""
    return float(int(raw)) / 1e18


def format_units(raw: int | str) -> str:
    """Six-decimal display string, e.g. 1500000000000000000 -> '1.500000'."""
    return f"{from_base_units(raw):.6f}"


def needs_approval(allowance: int, required: int) -> bool:
    """True when the current allowance cannot cover the required amount."""
    return allowance < required


def has_precision_loss(amount: float, tolerance: float = 1e-6) -> bool:
    """
    True if converting `amount` to base units and back moves it by more
    than `tolerance`.
    """
    reconstructed = from_base_units(to_base_units(amount))
    return abs(reconstructed - amount) > tolerance


def parse_base_units(value: str | int) -> int:
    """
    Parse a base-unit integer received over the wire.

    Raises:
        ValueError: if the value is not a non-negative integer.
    """
    if isinstance(value, bool):
        raise ValueError("Amount must be an integer string")
    if isinstance(value, int):
        parsed = value
    else:
        text = str(value).strip()
        if not text.isdigit():
            raise ValueError(f"Amount must be an integer string, got {value!r}")
        parsed = int(text)
    if parsed < 0:
        raise ValueError("Amount cannot be negative")
    return parsed
