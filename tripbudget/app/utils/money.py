"""
utils/money.py — Currency rounding and minor-unit conversion.

Money is stored and summed as integer cents everywhere below the API
boundary. Decimal values exist only where amounts enter (request parsing)
or leave (snapshot rendering) the system.

Rounding is half-up to two decimal places, applied once when a Decimal is
converted to cents. Sums of cents are exact, so no tolerance is needed when
comparing money; `amounts_match` keeps a tolerance parameter for values
that are not money (e.g. split percentages).
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

CENT = Decimal("0.01")
CENTS_PER_UNIT = 100


def as_decimal(value) -> Decimal:
    """Converts int/float/str/Decimal to Decimal without binary float noise."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_money(value) -> Decimal:
    """Rounds a monetary value half-up to two decimal places."""
    return as_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round_cents(value: Decimal) -> int:
    """Rounds a (possibly fractional) cent quantity half-up to a whole cent."""
    return int(as_decimal(value).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_cents(value) -> int:
    """Decimal amount → integer cents, e.g. Decimal("33.335") → 3334."""
    return int(round_money(value) * CENTS_PER_UNIT)


def from_cents(cents: int | None) -> Decimal:
    """Integer cents → two-decimal Decimal, e.g. 3334 → Decimal("33.34")."""
    return (Decimal(cents or 0) / CENTS_PER_UNIT).quantize(CENT)


def sum_cents(values: Iterable[int | None]) -> int:
    return sum((v or 0) for v in values)


def amounts_match(a, b, tolerance=Decimal("0")) -> bool:
    """True if |a - b| <= tolerance."""
    return abs(as_decimal(a) - as_decimal(b)) <= as_decimal(tolerance)
