"""
Domain money utilities (pure).

All amounts are `Decimal`. Stored rows may hold numbers or strings; both go
through `to_decimal` so floats never leak into arithmetic.
"""

from __future__ import annotations

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Optional

ZERO = Decimal("0")
CENT = Decimal("0.01")

# Two amounts closer than this are considered equal (one cent).
TOLERANCE = CENT


def to_decimal(value: Any) -> Decimal:
    """Convert a stored numeric value to Decimal; None becomes zero."""

    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_optional_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    return to_decimal(value)


def round_cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def floor_cents(amount: Decimal) -> Decimal:
    """Truncate toward zero at the cent."""
    return amount.quantize(CENT, rounding=ROUND_DOWN)


def money_sum(amounts: Iterable[Decimal]) -> Decimal:
    return sum(amounts, ZERO)


def require_non_negative(name: str, value: Optional[Decimal]) -> None:
    if value is not None and value < ZERO:
        raise ValueError(f"{name} must be non-negative, got {value}")


__all__ = [
    "CENT",
    "TOLERANCE",
    "ZERO",
    "floor_cents",
    "money_sum",
    "require_non_negative",
    "round_cents",
    "to_decimal",
    "to_optional_decimal",
]
