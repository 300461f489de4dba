"""Calendar period helpers: period starts, boundary functions and keys.

All helpers work on naive datetimes in the local calendar.  Periods are
half-open: a period starting at ``s`` covers ``[s, next_boundary(s))``.
"""

from __future__ import annotations

from datetime import date, datetime, time, timedelta

MONDAY = 0
SUNDAY = 6


def start_of_day(ts: datetime) -> datetime:
    return datetime.combine(ts.date(), time())


def start_of_week(ts: datetime, week_start: int = MONDAY) -> datetime:
    """Return midnight of the first day of the week containing *ts*.

    Args:
        ts: Any point in time.
        week_start: Weekday the week begins on (0 = Monday ... 6 = Sunday).
    """
    offset = (ts.weekday() - week_start) % 7
    return start_of_day(ts) - timedelta(days=offset)


def start_of_month(ts: datetime) -> datetime:
    return datetime(ts.year, ts.month, 1)


def next_hour(ts: datetime) -> datetime:
    return ts.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)


def next_day(ts: datetime) -> datetime:
    """Return the start of the calendar day after the one containing *ts*."""
    return start_of_day(ts) + timedelta(days=1)


def next_week(ts: datetime, week_start: int = MONDAY) -> datetime:
    return start_of_week(ts, week_start) + timedelta(days=7)


def next_month(ts: datetime) -> datetime:
    if ts.month == 12:
        return datetime(ts.year + 1, 1, 1)
    return datetime(ts.year, ts.month + 1, 1)


def week_boundary(week_start: int = MONDAY):
    """Build a one-argument boundary function for weeks starting on *week_start*."""

    def _next(ts: datetime) -> datetime:
        return next_week(ts, week_start)

    return _next


def day_key(ts: datetime) -> date:
    return ts.date()


def week_key(ts: datetime, week_start: int = MONDAY) -> tuple[int, int]:
    """Return the ``(iso_year, iso_week)`` identity of the week containing *ts*.

    For Monday-start weeks this is exactly the ISO 8601 week.  For other
    week starts the ISO week of the fourth day of the span is used, so
    each span maps to a single, stable number.
    """
    anchor = start_of_week(ts, week_start) + timedelta(days=3)
    iso = anchor.isocalendar()
    return iso[0], iso[1]


def month_key(ts: datetime) -> tuple[int, int]:
    return ts.year, ts.month
