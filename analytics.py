"""Core aggregation for network session analytics.

Turns parsed sessions into day, week and month rollups.  Sessions that
cross a period boundary are split by ``segmentation.split_session`` and
their metrics are prorated, so every rollup reconciles with the raw
session totals.

Used by the CLI (usage_summary.py), the chart script (usage_viz.py) and
the web service (app.py).
"""

from __future__ import annotations

import csv
import json
import logging
import os
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Hashable, Iterable

from formatters import days_in_period, format_data_size, format_date, format_duration
from periods import (
    MONDAY,
    day_key,
    month_key,
    next_day,
    next_hour,
    next_month,
    start_of_day,
    start_of_month,
    start_of_week,
    week_boundary,
    week_key,
)
from segmentation import BoundaryFn, Segment, split_sessions
from sessions import Session, filter_sessions, load_sessions, sort_sessions

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Aggregate records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class PeriodAggregate:
    """Totals for every segment falling within one calendar period.

    ``period_end`` is exclusive: it is the start of the next period.
    """
    period_start: datetime
    period_end: datetime
    total_duration_seconds: int
    total_download_mb: float
    total_upload_mb: float
    segment_count: int

    @property
    def period_length_seconds(self) -> int:
        return int((self.period_end - self.period_start).total_seconds())

    @property
    def inactive_seconds(self) -> int:
        return max(self.period_length_seconds - self.total_duration_seconds, 0)

    def to_dict(self) -> dict[str, Any]:
        return {
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "total_duration_seconds": self.total_duration_seconds,
            "total_download_mb": self.total_download_mb,
            "total_upload_mb": self.total_upload_mb,
            "segment_count": self.segment_count,
            "period_length_seconds": self.period_length_seconds,
            "inactive_seconds": self.inactive_seconds,
        }


@dataclass(frozen=True)
class DayAggregate(PeriodAggregate):
    date: date

    def to_dict(self) -> dict[str, Any]:
        return {"date": self.date.isoformat(), **super().to_dict()}


@dataclass(frozen=True)
class WeekAggregate(PeriodAggregate):
    year: int
    week_number: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "week_number": self.week_number,
            **super().to_dict(),
        }


@dataclass(frozen=True)
class MonthAggregate(PeriodAggregate):
    year: int
    month: int

    @property
    def month_name(self) -> str:
        return self.period_start.strftime("%B")

    def to_dict(self) -> dict[str, Any]:
        return {
            "year": self.year,
            "month": self.month,
            "month_name": self.month_name,
            **super().to_dict(),
        }


# ---------------------------------------------------------------------------
# Aggregation pass
# ---------------------------------------------------------------------------

def _init_bucket(period_start: datetime, period_end: datetime) -> dict:
    """Create a fresh period accumulator dict."""
    return {
        "period_start": period_start,
        "period_end": period_end,
        "total_duration_seconds": 0,
        "total_download_mb": 0.0,
        "total_upload_mb": 0.0,
        "segment_count": 0,
    }


def _fold_segments(
    segments: Iterable[Segment],
    key_fn: Callable[[datetime], Hashable],
    start_fn: Callable[[datetime], datetime],
    next_boundary: BoundaryFn,
) -> dict[Hashable, dict]:
    """Accumulate segments into buckets keyed by ``key_fn(segment.start)``.

    Segments never cross a period boundary, so the start of a segment
    alone decides its period.
    """
    buckets: dict[Hashable, dict] = {}
    for segment in segments:
        key = key_fn(segment.start)
        if key not in buckets:
            period_start = start_fn(segment.start)
            buckets[key] = _init_bucket(period_start, next_boundary(period_start))
        bucket = buckets[key]
        bucket["total_duration_seconds"] += segment.duration_seconds
        bucket["total_download_mb"] += segment.download_mb
        bucket["total_upload_mb"] += segment.upload_mb
        bucket["segment_count"] += 1
    return buckets


def aggregate_by_day(sessions: Iterable[Session]) -> list[DayAggregate]:
    """Aggregate sessions by calendar day.

    Sessions crossing midnight are split and prorated across the days
    they touch.

    Args:
        sessions: Parsed sessions.  Zero-duration sessions contribute
            nothing.

    Returns:
        Day aggregates ordered by date, most recent first.
    """
    segments = split_sessions(sessions, next_day)
    buckets = _fold_segments(segments, day_key, start_of_day, next_day)
    result = [DayAggregate(date=key, **bucket) for key, bucket in buckets.items()]
    result.sort(key=lambda a: a.period_start, reverse=True)
    return result


def aggregate_by_week(
    sessions: Iterable[Session], week_start: int = MONDAY,
) -> list[WeekAggregate]:
    """Aggregate sessions by ISO week.

    Sessions are split at week boundaries, so a session running from
    Sunday night into Monday is shared between both weeks.

    Args:
        sessions: Parsed sessions.
        week_start: Weekday weeks begin on (0 = Monday, the ISO default).

    Returns:
        Week aggregates ordered by ``(year, week_number)`` descending.
    """
    boundary = week_boundary(week_start)
    segments = split_sessions(sessions, boundary)
    buckets = _fold_segments(
        segments,
        lambda ts: week_key(ts, week_start),
        lambda ts: start_of_week(ts, week_start),
        boundary,
    )
    result = [
        WeekAggregate(year=key[0], week_number=key[1], **bucket)
        for key, bucket in buckets.items()
    ]
    result.sort(key=lambda a: a.period_start, reverse=True)
    return result


def aggregate_by_month(sessions: Iterable[Session]) -> list[MonthAggregate]:
    """Aggregate sessions by calendar month, splitting at month boundaries.

    Returns:
        Month aggregates ordered by ``(year, month)`` descending.
    """
    segments = split_sessions(sessions, next_month)
    buckets = _fold_segments(segments, month_key, start_of_month, next_month)
    result = [
        MonthAggregate(year=key[0], month=key[1], **bucket)
        for key, bucket in buckets.items()
    ]
    result.sort(key=lambda a: a.period_start, reverse=True)
    return result


AGGREGATORS: dict[str, Callable[[Iterable[Session]], list]] = {
    "day": aggregate_by_day,
    "week": aggregate_by_week,
    "month": aggregate_by_month,
}


# ---------------------------------------------------------------------------
# Hour-of-day profile
# ---------------------------------------------------------------------------

def _rank_hours(totals: list[float], count: int, busiest: bool) -> list[int]:
    """Return *count* hour indexes ranked by total, ties broken by hour."""
    if busiest:
        ranked = sorted(range(24), key=lambda h: (-totals[h], h))
    else:
        ranked = sorted(range(24), key=lambda h: (totals[h], h))
    return sorted(ranked[:count])


def compute_hourly_usage(sessions: Iterable[Session], top: int = 3) -> dict[str, Any]:
    """Compute an hour-of-day usage profile from sessions.

    Sessions are split at hour boundaries and each slice is credited to
    its hour, so a two-hour session counts once in each hour it covers.

    Args:
        sessions: Parsed sessions.
        top: How many peak and quiet hours to report.

    Returns:
        Dict with keys:
            - duration_seconds, download_mb, upload_mb: lists of 24
              per-hour totals.
            - heatmap: 7x24 nested list (heatmap[weekday][hour]) of
              active seconds, where weekday 0 is Monday.
            - peak_hours: the *top* hours with the most data transferred.
            - quiet_hours: the *top* hours with the least.
    """
    duration = [0] * 24
    download = [0.0] * 24
    upload = [0.0] * 24
    heatmap = [[0] * 24 for _ in range(7)]  # [weekday][hour]

    for segment in split_sessions(sessions, next_hour):
        hour = segment.start.hour
        duration[hour] += segment.duration_seconds
        download[hour] += segment.download_mb
        upload[hour] += segment.upload_mb
        heatmap[segment.start.weekday()][hour] += segment.duration_seconds

    data_totals = [download[h] + upload[h] for h in range(24)]
    has_data = any(duration)
    return {
        "duration_seconds": duration,
        "download_mb": [round(v, 4) for v in download],
        "upload_mb": [round(v, 4) for v in upload],
        "heatmap": heatmap,
        "peak_hours": _rank_hours(data_totals, top, busiest=True) if has_data else [],
        "quiet_hours": _rank_hours(data_totals, top, busiest=False) if has_data else [],
    }


# ---------------------------------------------------------------------------
# Smart filter and summaries
# ---------------------------------------------------------------------------

TOP_METRICS = (
    "total_download_mb",
    "total_upload_mb",
    "total_duration_seconds",
    "segment_count",
)


def select_top_periods(
    aggregates: Iterable[PeriodAggregate],
    metric: str = "total_download_mb",
    n: int = 5,
) -> list[PeriodAggregate]:
    """Pick the *n* periods with the highest *metric*.

    Ties go to the more recent period.

    Raises:
        ValueError: If *metric* is not one of ``TOP_METRICS`` or *n* is
            negative.
    """
    if metric not in TOP_METRICS:
        raise ValueError(f"Unknown metric {metric!r}; expected one of {', '.join(TOP_METRICS)}")
    if n < 0:
        raise ValueError(f"n must be non-negative, got {n}")
    ranked = sorted(
        aggregates,
        key=lambda a: (getattr(a, metric), a.period_start),
        reverse=True,
    )
    return ranked[:n]


def compute_summary_stats(
    sessions: list[Session], daily: list[DayAggregate],
) -> dict[str, Any]:
    """Compute high-level totals for the session set.

    Args:
        sessions: The (already filtered) sessions.
        daily: Day aggregates for the same sessions.

    Returns:
        Dict with keys: total_sessions, active_sessions,
        total_duration_seconds, total_download_mb, total_upload_mb,
        first_login, last_login (ISO strings or None), days_active and
        busiest_day (the day dict with most data transferred, or None).
    """
    active = [s for s in sessions if s.duration_seconds > 0]
    logins = [s.login_time for s in sessions]

    busiest = None
    if daily:
        busiest = max(
            daily, key=lambda d: (d.total_download_mb + d.total_upload_mb, d.period_start),
        ).to_dict()

    return {
        "total_sessions": len(sessions),
        "active_sessions": len(active),
        "total_duration_seconds": sum(s.duration_seconds for s in active),
        "total_download_mb": round(sum(s.download_mb for s in active), 4),
        "total_upload_mb": round(sum(s.upload_mb for s in active), 4),
        "first_login": min(logins).isoformat() if logins else None,
        "last_login": max(logins).isoformat() if logins else None,
        "days_active": len(daily),
        "busiest_day": busiest,
    }


# ---------------------------------------------------------------------------
# Rolling average helpers (pure Python, no pandas)
# ---------------------------------------------------------------------------

def _rolling_avg(values: list[float], window: int) -> list[float]:
    """Compute rolling average, using available values when the window is not yet full.

    Args:
        values: Numeric series to smooth.
        window: Maximum number of trailing values to average.

    Returns:
        List of floats the same length as *values*.
    """
    result = []
    for i in range(len(values)):
        start = max(0, i - window + 1)
        w = values[start : i + 1]
        result.append(sum(w) / len(w))
    return result


def _expanding_avg(values: list[float]) -> list[float]:
    """Compute expanding (lifetime) average."""
    result: list[float] = []
    s = 0.0
    for i, v in enumerate(values, 1):
        s += v
        result.append(s / i)
    return result


def _build_chart_series(values: list[float]) -> dict[str, list[float]]:
    """Build a chart series dict with raw values and rolling averages.

    Returns:
        Dict with keys: values, avg_7d, avg_28d, avg_lifetime.
    """
    return {
        "values": values,
        "avg_7d": [round(v, 2) for v in _rolling_avg(values, 7)],
        "avg_28d": [round(v, 2) for v in _rolling_avg(values, 28)],
        "avg_lifetime": [round(v, 2) for v in _expanding_avg(values)],
    }


def compute_chart_data(daily: list[DayAggregate]) -> dict[str, Any]:
    """Compute chart series from day aggregates.

    Charts read left to right, so dates are ascending here even though
    the aggregate list itself is most-recent-first.

    Returns:
        Dict with keys: dates (ISO strings), and download_mb, upload_mb,
        duration_hours sub-dicts from ``_build_chart_series``.
    """
    ordered = sorted(daily, key=lambda a: a.period_start)
    return {
        "dates": [a.date.isoformat() for a in ordered],
        "download_mb": _build_chart_series([round(a.total_download_mb, 2) for a in ordered]),
        "upload_mb": _build_chart_series([round(a.total_upload_mb, 2) for a in ordered]),
        "duration_hours": _build_chart_series(
            [round(a.total_duration_seconds / 3600, 2) for a in ordered]
        ),
    }


# ---------------------------------------------------------------------------
# Payload builders
# ---------------------------------------------------------------------------

def build_usage_payload(
    sessions: list[Session],
    date_from: date | None = None,
    date_to: date | None = None,
) -> dict[str, Any]:
    """Run the whole pipeline over in-memory sessions.

    Filters whole sessions by login time, then segments, aggregates and
    sorts.  The result is JSON-safe and holds raw seconds and megabytes
    only; formatting is left to the consumer.

    Returns:
        Dict with keys: generated_at, filters, summary, sessions, daily,
        weekly, monthly, charts, hourly, top_days.
    """
    filtered = filter_sessions(sessions, date_from, date_to)
    idle = sum(1 for s in filtered if s.duration_seconds <= 0)
    if idle == len(filtered) and idle:
        logger.warning(
            "All %d sessions have zero duration; aggregates will be empty.", idle,
        )
    elif idle:
        logger.warning(
            "Dropping %d of %d sessions with zero duration from aggregates.",
            idle, len(filtered),
        )

    daily = aggregate_by_day(filtered)
    weekly = aggregate_by_week(filtered)
    monthly = aggregate_by_month(filtered)

    return {
        "generated_at": datetime.now().isoformat(),
        "filters": {
            "date_from": date_from.isoformat() if date_from else None,
            "date_to": date_to.isoformat() if date_to else None,
        },
        "summary": compute_summary_stats(filtered, daily),
        "sessions": [s.to_dict() for s in sort_sessions(filtered)],
        "daily": [a.to_dict() for a in daily],
        "weekly": [a.to_dict() for a in weekly],
        "monthly": [a.to_dict() for a in monthly],
        "charts": compute_chart_data(daily),
        "hourly": compute_hourly_usage(filtered),
        "top_days": {
            "by_download": [a.to_dict() for a in select_top_periods(daily, "total_download_mb")],
            "by_upload": [a.to_dict() for a in select_top_periods(daily, "total_upload_mb")],
            "by_duration": [
                a.to_dict() for a in select_top_periods(daily, "total_duration_seconds")
            ],
        },
    }


def build_dashboard_payload(path: str = "sessions.json") -> dict[str, Any]:
    """One-call entry point: load, process, compute all stats for the dashboard.

    Raises:
        FileNotFoundError: If the sessions file does not exist.
        json.JSONDecodeError: If the file contains invalid JSON.
        ShapeError, ParsingError: If any record is malformed.
    """
    return build_usage_payload(load_sessions(path))


# ---------------------------------------------------------------------------
# CLI helpers
# ---------------------------------------------------------------------------

def _write_csv(path: str, rows: list[dict]) -> None:
    """Write *rows* to CSV, skipping nested values."""
    if not rows:
        fieldnames: list[str] = []
    else:
        fieldnames = [k for k, v in rows[0].items() if not isinstance(v, (dict, list))]
    with open(path, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
        writer.writeheader()
        writer.writerows(rows)


def save_analytics_files(
    payload: dict[str, Any], output_dir: str = "usage_analytics",
) -> None:
    """Write JSON/CSV analytics files to output_dir.

    Creates the output directory if it doesn't exist and writes
    sessions, daily_stats, weekly_stats and monthly_stats as both
    ``.json`` and ``.csv``.
    """
    os.makedirs(output_dir, exist_ok=True)

    tables = {
        "sessions": payload["sessions"],
        "daily_stats": payload["daily"],
        "weekly_stats": payload["weekly"],
        "monthly_stats": payload["monthly"],
    }
    for name, rows in tables.items():
        with open(f"{output_dir}/{name}.json", "w") as f:
            json.dump(rows, f, indent=2)
        _write_csv(f"{output_dir}/{name}.csv", rows)


def print_summary_report(payload: dict[str, Any], output_dir: str = "usage_analytics") -> None:
    """Print the CLI summary report to stdout."""
    stats = payload["summary"]
    print(f"\n{'=' * 60}")
    print("Network Usage Summary")
    print(f"{'=' * 60}")
    print(f"Total Sessions: {stats['total_sessions']:,}")
    print(f"Active Sessions: {stats['active_sessions']:,}")
    print(f"Total Time Online: {format_duration(stats['total_duration_seconds'], True)}")
    print(f"Total Downloaded: {format_data_size(stats['total_download_mb'])}")
    print(f"Total Uploaded: {format_data_size(stats['total_upload_mb'])}")

    if stats["first_login"] and stats["last_login"]:
        first = datetime.fromisoformat(stats["first_login"])
        last = datetime.fromisoformat(stats["last_login"])
        print(f"First Login: {format_date(first)}")
        print(f"Last Login: {format_date(last)}")
        print(
            f"Days Active: {stats['days_active']:,} of {days_in_period(first, last):,} "
            f"calendar days"
        )

    busiest = stats["busiest_day"]
    if busiest:
        total = busiest["total_download_mb"] + busiest["total_upload_mb"]
        print(
            f"Busiest Day: {format_date(date.fromisoformat(busiest['date']))} "
            f"({format_data_size(total)})"
        )

    if payload["daily"]:
        print("\nTop 5 Days by Download:")
        for rec in payload["top_days"]["by_download"]:
            print(
                f"  {format_date(date.fromisoformat(rec['date']))}: "
                f"{format_data_size(rec['total_download_mb'])}"
            )

    if payload["monthly"]:
        print(f"\n{'Month':<16} {'Online':<14} {'Inactive':<14} {'Down':<10} {'Up':<10}")
        print(f"{'-' * 66}")
        for m in payload["monthly"]:
            label = f"{m['month_name']} {m['year']}"
            print(
                f"{label:<16} {format_duration(m['total_duration_seconds']):<14} "
                f"{format_duration(m['inactive_seconds']):<14} "
                f"{format_data_size(m['total_download_mb']):<10} "
                f"{format_data_size(m['total_upload_mb']):<10}"
            )

    hourly = payload["hourly"]
    if hourly["peak_hours"]:
        print(f"\nPeak Hours: {', '.join(f'{h:02d}:00' for h in hourly['peak_hours'])}")
        print(f"Quiet Hours: {', '.join(f'{h:02d}:00' for h in hourly['quiet_hours'])}")

    print(f"{'=' * 60}")
    print(f"\nAnalytics data has been saved to the '{output_dir}' directory:")
    print("1. sessions.json/csv - Parsed sessions, most recent first")
    print("2. daily_stats.json/csv - Daily usage aggregates")
    print("3. weekly_stats.json/csv - ISO week aggregates")
    print("4. monthly_stats.json/csv - Monthly aggregates")
