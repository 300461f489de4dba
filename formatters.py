"""Display formatting for durations, data sizes and dates.

The aggregation engine always returns raw seconds and megabytes.  These
helpers are for the presentation side (CLI report, chart labels).
"""

from __future__ import annotations

import math
from datetime import date, datetime


def format_duration(total_seconds: float, include_seconds: bool = False) -> str:
    """Format seconds as ``[Nd ]HH:MM[:SS]``.

    Seconds are shown when *include_seconds* is set, when they are
    non-zero, or when the total is zero.

    Examples:
        >>> format_duration(90061, include_seconds=True)
        '1d 01:01:01'
        >>> format_duration(90000)
        '1d 01:00'
        >>> format_duration(3600)
        '01:00'
        >>> format_duration(0)
        '00:00:00'
    """
    if total_seconds is None or math.isnan(total_seconds) or total_seconds < 0:
        total_seconds = 0
    total = int(total_seconds)

    days, remainder = divmod(total, 86400)
    hours, remainder = divmod(remainder, 3600)
    minutes, seconds = divmod(remainder, 60)

    prefix = f"{days}d " if days else ""
    if include_seconds or seconds or total == 0:
        return f"{prefix}{hours:02d}:{minutes:02d}:{seconds:02d}"
    return f"{prefix}{hours:02d}:{minutes:02d}"


def format_data_size(megabytes: float, precision: int = 1) -> str:
    """Format megabytes, switching to gigabytes at 1024 MB.

    >>> format_data_size(500)
    '500.0 MB'
    >>> format_data_size(1536)
    '1.5 GB'
    """
    if megabytes is None or math.isnan(megabytes) or megabytes < 0:
        return "0 MB"
    if megabytes >= 1024:
        return f"{megabytes / 1024:.{precision}f} GB"
    return f"{megabytes:.{precision}f} MB"


def format_date(value: date | datetime) -> str:
    """Format a date as ``DD-MM-YYYY``."""
    return value.strftime("%d-%m-%Y")


def days_in_period(start: date | datetime, end: date | datetime) -> int:
    """Count calendar days from *start* to *end*, both inclusive."""
    if isinstance(start, datetime):
        start = start.date()
    if isinstance(end, datetime):
        end = end.date()
    return (end - start).days + 1
