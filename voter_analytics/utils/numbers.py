"""
Numeric helpers shared by every report.

All rounding goes through round_half_away so averages, scores and
percentages round the same way everywhere.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

Number = Union[int, float, Decimal]


def to_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # repr round-trips, so 2.25 stays 2.25 rather than its binary expansion
        return Decimal(repr(value))
    return Decimal(value)


def round_half_away(value: Optional[Number], places: int = 1) -> Optional[float]:
    """
    Round half away from zero.

    ``round_half_away(2.25) == 2.3`` and ``round_half_away(-2.25) == -2.3``,
    unlike the built-in round(), which rounds half to even.
    """
    if value is None:
        return None
    quantum = Decimal(1).scaleb(-places)
    return float(to_decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def percentage(part: Number, whole: Number, places: int = 1) -> Optional[float]:
    """part / whole * 100, rounded; None when whole is zero."""
    whole_dec = to_decimal(whole)
    if whole_dec == 0:
        return None
    return round_half_away(to_decimal(part) * 100 / whole_dec, places)


def to_int(value: Optional[Number]) -> int:
    """Database counts arrive as int, Decimal or None."""
    if value is None:
        return 0
    return int(value)
