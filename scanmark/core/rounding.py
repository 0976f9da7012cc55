"""Decimal rounding used for percentages and statistics."""

from decimal import ROUND_HALF_UP, Decimal

_TWO_PLACES = Decimal("0.01")


def round2(value: float | int | Decimal) -> float:
    """Round half away from zero to 2 decimals (float ``round`` is banker's rounding on ties)."""
    return float(Decimal(str(value)).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))
