"""
Utility functions for the voter analytics engine.
"""

from .numbers import (
    percentage,
    round_half_away,
    to_decimal,
    to_int,
)

from .timing import (
    TimingResult,
    format_duration,
    timed_query,
)

__all__ = [
    # Numbers
    "percentage",
    "round_half_away",
    "to_decimal",
    "to_int",

    # Timing
    "TimingResult",
    "format_duration",
    "timed_query",
]
