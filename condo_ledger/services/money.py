"""Decimal helpers for monetary amounts (2 decimal places, half-up)."""

from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

ZERO = Decimal("0.00")
CENT = Decimal("0.01")


def to_money(value) -> Decimal:
    """Convert any numeric value (including floats) to a 2-place Decimal."""
    if value is None:
        return ZERO
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def split_units(value: Decimal) -> tuple[Decimal, Decimal]:
    """Split a non-negative amount into (whole units, fractional cents).

    >>> split_units(Decimal("1250.75"))
    (Decimal('1250'), Decimal('0.75'))
    """
    value = to_money(value)
    whole = value.quantize(Decimal("1"), rounding=ROUND_DOWN)
    return whole, value - whole


def is_positive(value) -> bool:
    """True when the amount is above zero after rounding to cents."""
    return to_money(value) > ZERO


__all__ = ["ZERO", "CENT", "to_money", "split_units", "is_positive"]
