"""
Timing utilities for query performance measurement.
"""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Optional


@dataclass
class TimingResult:
    """Result of a timed query."""
    name: str
    duration_sec: float
    row_count: Optional[int] = None
    success: bool = True
    error: Optional[str] = None

    @property
    def duration_ms(self) -> float:
        return self.duration_sec * 1000

    def __str__(self) -> str:
        text = f"{self.name}: {format_duration(self.duration_sec)}"
        if self.row_count is not None:
            text += f" ({self.row_count} rows)"
        return text


@contextmanager
def timed_query(
    name: str,
    logger: Optional[logging.Logger] = None,
    log_level: int = logging.DEBUG,
) -> Iterator[TimingResult]:
    """
    Context manager for timing a statement.

    Usage:
        with timed_query("grouped_breakdown", logger) as timing:
            rows = store.fetch_all(statement, params)
            timing.row_count = len(rows)

    Args:
        name: Name of the query (for logging)
        logger: Optional logger to log timing
        log_level: Log level for the timing message

    Yields:
        TimingResult that will be populated on exit
    """
    result = TimingResult(name=name, duration_sec=0.0)
    start = time.perf_counter()

    try:
        yield result
        result.success = True
    except Exception as e:
        result.success = False
        result.error = type(e).__name__
        raise
    finally:
        result.duration_sec = time.perf_counter() - start

        if logger:
            msg = str(result)
            if not result.success:
                msg += f" (failed: {result.error})"
            logger.log(log_level, msg)


def format_duration(seconds: float) -> str:
    """
    Format duration in human-readable form.

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string
    """
    if seconds < 1:
        return f"{seconds * 1000:.1f}ms"
    elif seconds < 60:
        return f"{seconds:.2f}s"
    else:
        minutes = int(seconds // 60)
        secs = seconds % 60
        return f"{minutes}m {secs:.1f}s"
