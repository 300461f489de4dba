"""Tests for analytics.py aggregation using synthetic session data."""

from __future__ import annotations

import csv
import json
from datetime import date, datetime

import pytest

from analytics import (
    DayAggregate,
    _expanding_avg,
    _rolling_avg,
    aggregate_by_day,
    aggregate_by_month,
    aggregate_by_week,
    build_dashboard_payload,
    build_usage_payload,
    compute_chart_data,
    compute_hourly_usage,
    compute_summary_stats,
    print_summary_report,
    save_analytics_files,
    select_top_periods,
)
from helpers import make_session
from periods import SUNDAY


def _mixed_sessions():
    return [
        make_session("2024-07-31T23:00:00", 7200, 100.0, 50.0),
        make_session("2024-03-15T10:00:00", 5400, 200.5, 10.25),
        make_session("2024-03-16T08:00:00", 0, 5.0, 1.0),
        make_session("2024-03-10T22:00:00", 4 * 3600, 40.0, 4.0),
        make_session("2024-01-31T23:30:00", 3600, 60.0, 6.0),
        make_session("2024-02-28T22:15:30", 271815, 1234.567, 89.1),
    ]


def _assert_reconciles(aggregates, sessions):
    active = [s for s in sessions if s.duration_seconds > 0]
    assert sum(a.total_duration_seconds for a in aggregates) == sum(
        s.duration_seconds for s in active
    )
    assert sum(a.total_download_mb for a in aggregates) == pytest.approx(
        sum(s.download_mb for s in active), rel=1e-6
    )
    assert sum(a.total_upload_mb for a in aggregates) == pytest.approx(
        sum(s.upload_mb for s in active), rel=1e-6
    )


def _assert_strictly_descending(aggregates):
    starts = [a.period_start for a in aggregates]
    assert all(a > b for a, b in zip(starts, starts[1:]))


# ── TestAggregateByDay ───────────────────────


class TestAggregateByDay:
    def test_cross_midnight(self):
        result = aggregate_by_day([make_session("2024-07-31T23:00:00", 7200, 100.0, 50.0)])
        assert [a.date for a in result] == [date(2024, 8, 1), date(2024, 7, 31)]
        for agg in result:
            assert agg.total_duration_seconds == 3600
            assert agg.total_download_mb == 50.0
            assert agg.total_upload_mb == 25.0
            assert agg.segment_count == 1

    def test_single_day_matches_session_exactly(self):
        result = aggregate_by_day([make_session("2024-03-15T10:00:00", 5400, 200.5, 10.25)])
        assert len(result) == 1
        agg = result[0]
        assert agg.date == date(2024, 3, 15)
        assert agg.total_duration_seconds == 5400
        assert agg.total_download_mb == 200.5
        assert agg.total_upload_mb == 10.25
        assert agg.period_start == datetime(2024, 3, 15)
        assert agg.period_end == datetime(2024, 3, 16)

    def test_same_day_sessions_accumulate(self):
        sessions = [
            make_session("2024-03-15T08:00:00", 600, 10.0, 1.0),
            make_session("2024-03-15T20:00:00", 1200, 20.0, 2.0),
        ]
        (agg,) = aggregate_by_day(sessions)
        assert agg.total_duration_seconds == 1800
        assert agg.total_download_mb == pytest.approx(30.0)
        assert agg.segment_count == 2

    def test_zero_duration_contributes_nothing(self):
        assert aggregate_by_day([make_session(duration_seconds=0)]) == []

    def test_empty(self):
        assert aggregate_by_day([]) == []

    def test_strictly_descending(self):
        _assert_strictly_descending(aggregate_by_day(_mixed_sessions()))

    def test_reconciles_with_sessions(self):
        sessions = _mixed_sessions()
        _assert_reconciles(aggregate_by_day(sessions), sessions)

    def test_inactive_seconds(self):
        (agg,) = aggregate_by_day([make_session("2024-03-15T10:00:00", 3600)])
        assert agg.period_length_seconds == 86400
        assert agg.inactive_seconds == 86400 - 3600

    def test_reentrant(self):
        sessions = _mixed_sessions()
        assert aggregate_by_day(sessions) == aggregate_by_day(sessions)

    def test_result_is_frozen(self):
        (agg,) = aggregate_by_day([make_session()])
        with pytest.raises(AttributeError):
            agg.total_download_mb = 0.0


# ── TestAggregateByWeek ──────────────────────


class TestAggregateByWeek:
    def test_splits_at_monday(self):
        # Sunday 2024-03-10 (ISO week 10) into Monday 2024-03-11 (week 11)
        result = aggregate_by_week([make_session("2024-03-10T22:00:00", 4 * 3600, 40.0, 4.0)])
        assert [(a.year, a.week_number) for a in result] == [(2024, 11), (2024, 10)]
        for agg in result:
            assert agg.total_duration_seconds == 7200
            assert agg.total_download_mb == pytest.approx(20.0)

    def test_week_bounds(self):
        (agg,) = aggregate_by_week([make_session("2024-03-13T10:00:00")])
        assert agg.period_start == datetime(2024, 3, 11)
        assert agg.period_end == datetime(2024, 3, 18)
        assert agg.period_length_seconds == 7 * 86400
        assert agg.inactive_seconds == 7 * 86400 - 3600

    def test_iso_year_rollover(self):
        # 2024-12-31 falls in ISO week 1 of 2025
        (agg,) = aggregate_by_week([make_session("2024-12-31T10:00:00")])
        assert (agg.year, agg.week_number) == (2025, 1)
        assert agg.period_start == datetime(2024, 12, 30)

    def test_sunday_week_start(self):
        result = aggregate_by_week(
            [make_session("2024-03-10T22:00:00", 4 * 3600)], week_start=SUNDAY,
        )
        assert len(result) == 1
        assert result[0].period_start == datetime(2024, 3, 10)

    def test_strictly_descending(self):
        _assert_strictly_descending(aggregate_by_week(_mixed_sessions()))

    def test_reconciles_with_sessions(self):
        sessions = _mixed_sessions()
        _assert_reconciles(aggregate_by_week(sessions), sessions)

    def test_zero_duration_contributes_nothing(self):
        assert aggregate_by_week([make_session(duration_seconds=0)]) == []


# ── TestAggregateByMonth ─────────────────────


class TestAggregateByMonth:
    def test_splits_at_month_end(self):
        result = aggregate_by_month([make_session("2024-01-31T23:30:00", 3600, 60.0, 6.0)])
        assert [(a.year, a.month) for a in result] == [(2024, 2), (2024, 1)]
        feb, jan = result
        assert feb.month_name == "February"
        assert feb.total_duration_seconds == jan.total_duration_seconds == 1800
        assert feb.total_download_mb == pytest.approx(30.0)

    def test_month_bounds(self):
        (agg,) = aggregate_by_month([make_session("2024-02-10T10:00:00")])
        assert agg.period_start == datetime(2024, 2, 1)
        assert agg.period_end == datetime(2024, 3, 1)
        assert agg.period_length_seconds == 29 * 86400

    def test_december_rollover(self):
        result = aggregate_by_month([make_session("2024-12-31T23:00:00", 7200)])
        assert [(a.year, a.month) for a in result] == [(2025, 1), (2024, 12)]

    def test_strictly_descending(self):
        _assert_strictly_descending(aggregate_by_month(_mixed_sessions()))

    def test_reconciles_with_sessions(self):
        sessions = _mixed_sessions()
        _assert_reconciles(aggregate_by_month(sessions), sessions)

    def test_to_dict(self):
        (agg,) = aggregate_by_month([make_session("2024-02-10T10:00:00", 3600, 1.0, 2.0)])
        d = agg.to_dict()
        assert d["year"] == 2024
        assert d["month"] == 2
        assert d["month_name"] == "February"
        assert d["period_start"] == "2024-02-01T00:00:00"
        assert d["total_upload_mb"] == 2.0


# ── TestComputeHourlyUsage ───────────────────


class TestComputeHourlyUsage:
    def test_split_across_hours(self):
        hourly = compute_hourly_usage([make_session("2024-03-15T10:30:00", 3600, 60.0, 6.0)])
        assert hourly["duration_seconds"][10] == 1800
        assert hourly["duration_seconds"][11] == 1800
        assert hourly["download_mb"][10] == pytest.approx(30.0)
        assert sum(hourly["duration_seconds"]) == 3600

    def test_peak_and_quiet_hours(self):
        sessions = [
            make_session("2024-03-15T20:00:00", 3600, 500.0, 50.0),
            make_session("2024-03-15T08:00:00", 3600, 100.0, 10.0),
        ]
        hourly = compute_hourly_usage(sessions, top=2)
        assert hourly["peak_hours"] == [8, 20]
        assert hourly["quiet_hours"] == [0, 1]

    def test_heatmap_by_weekday(self):
        # 2024-03-15 is a Friday
        hourly = compute_hourly_usage([make_session("2024-03-15T10:00:00", 600)])
        assert hourly["heatmap"][4][10] == 600

    def test_empty(self):
        hourly = compute_hourly_usage([])
        assert hourly["peak_hours"] == []
        assert hourly["quiet_hours"] == []
        assert hourly["duration_seconds"] == [0] * 24


# ── TestSelectTopPeriods ─────────────────────


class TestSelectTopPeriods:
    def test_top_by_download(self):
        daily = aggregate_by_day([
            make_session("2024-03-15T10:00:00", 60, 10.0, 0.0),
            make_session("2024-03-16T10:00:00", 60, 30.0, 0.0),
            make_session("2024-03-17T10:00:00", 60, 20.0, 0.0),
        ])
        top = select_top_periods(daily, "total_download_mb", 2)
        assert [a.date for a in top] == [date(2024, 3, 16), date(2024, 3, 17)]

    def test_ties_prefer_recent(self):
        daily = aggregate_by_day([
            make_session("2024-03-15T10:00:00", 60, 10.0, 0.0),
            make_session("2024-03-16T10:00:00", 60, 10.0, 0.0),
        ])
        (top,) = select_top_periods(daily, "total_download_mb", 1)
        assert top.date == date(2024, 3, 16)

    def test_unknown_metric(self):
        with pytest.raises(ValueError):
            select_top_periods([], "date", 3)

    def test_negative_n(self):
        with pytest.raises(ValueError):
            select_top_periods([], "total_upload_mb", -1)


# ── TestComputeSummaryStats ──────────────────


class TestComputeSummaryStats:
    def test_totals(self):
        sessions = _mixed_sessions()
        stats = compute_summary_stats(sessions, aggregate_by_day(sessions))
        assert stats["total_sessions"] == 6
        assert stats["active_sessions"] == 5
        assert stats["first_login"] == "2024-01-31T23:30:00"
        assert stats["last_login"] == "2024-07-31T23:00:00"
        assert stats["busiest_day"] is not None

    def test_empty(self):
        stats = compute_summary_stats([], [])
        assert stats["total_sessions"] == 0
        assert stats["first_login"] is None
        assert stats["busiest_day"] is None


# ── Rolling helpers and chart data ───────────


class TestRollingHelpers:
    def test_rolling_avg_expands_then_slides(self):
        assert _rolling_avg([1, 2, 3, 4], 2) == [1, 1.5, 2.5, 3.5]

    def test_expanding_avg(self):
        assert _expanding_avg([2, 4, 6]) == [2, 3, 4]


class TestComputeChartData:
    def test_dates_ascending(self):
        daily = aggregate_by_day([make_session("2024-07-31T23:00:00", 7200, 100.0, 50.0)])
        chart = compute_chart_data(daily)
        assert chart["dates"] == ["2024-07-31", "2024-08-01"]
        assert chart["download_mb"]["values"] == [50.0, 50.0]
        assert chart["duration_hours"]["values"] == [1.0, 1.0]

    def test_empty(self):
        chart = compute_chart_data([])
        assert chart["dates"] == []
        assert chart["upload_mb"]["avg_7d"] == []


# ── Payload builders ─────────────────────────


class TestBuildUsagePayload:
    def test_keys(self):
        payload = build_usage_payload(_mixed_sessions())
        for key in (
            "generated_at", "filters", "summary", "sessions", "daily",
            "weekly", "monthly", "charts", "hourly", "top_days",
        ):
            assert key in payload, f"Missing key: {key}"

    def test_sessions_most_recent_first(self):
        payload = build_usage_payload(_mixed_sessions())
        logins = [s["login_time"] for s in payload["sessions"]]
        assert logins == sorted(logins, reverse=True)

    def test_filter_applies_before_segmentation(self):
        payload = build_usage_payload(
            _mixed_sessions(), date_from=date(2024, 7, 31), date_to=date(2024, 7, 31),
        )
        assert len(payload["sessions"]) == 1
        # The session still spills into August after filtering
        assert [d["date"] for d in payload["daily"]] == ["2024-08-01", "2024-07-31"]
        assert payload["filters"] == {"date_from": "2024-07-31", "date_to": "2024-07-31"}

    def test_json_serializable(self):
        json.dumps(build_usage_payload(_mixed_sessions()))

    def test_all_zero_duration_logs_warning(self, caplog):
        with caplog.at_level("WARNING", logger="analytics"):
            payload = build_usage_payload([make_session(duration_seconds=0)])
        assert payload["daily"] == []
        assert "zero duration" in caplog.text

    def test_some_zero_duration_logs_one_warning(self, caplog):
        sessions = [make_session(duration_seconds=0), make_session(duration_seconds=60)]
        with caplog.at_level("WARNING", logger="analytics"):
            build_usage_payload(sessions)
        warnings = [r for r in caplog.records if r.levelname == "WARNING"]
        assert len(warnings) == 1
        assert "Dropping 1 of 2 sessions" in warnings[0].getMessage()

    def test_no_warning_when_all_active(self, caplog):
        with caplog.at_level("WARNING", logger="analytics"):
            build_usage_payload([make_session(duration_seconds=60)])
        assert not [r for r in caplog.records if r.levelname == "WARNING"]


class TestBuildDashboardPayload:
    def test_from_file(self, sessions_file):
        payload = build_dashboard_payload(str(sessions_file))
        assert payload["summary"]["total_sessions"] == 3
        assert len(payload["daily"]) == 3


# ── CLI helpers ──────────────────────────────


class TestSaveAnalyticsFiles:
    def test_writes_files(self, tmp_path):
        payload = build_usage_payload(_mixed_sessions())
        out = tmp_path / "out"
        save_analytics_files(payload, str(out))
        for name in ("sessions", "daily_stats", "weekly_stats", "monthly_stats"):
            assert (out / f"{name}.json").exists()
            assert (out / f"{name}.csv").exists()

        daily = json.loads((out / "daily_stats.json").read_text())
        assert daily == payload["daily"]

        with open(out / "daily_stats.csv", newline="") as f:
            rows = list(csv.DictReader(f))
        assert rows[0]["date"] == payload["daily"][0]["date"]

    def test_empty_payload(self, tmp_path):
        save_analytics_files(build_usage_payload([]), str(tmp_path))
        assert json.loads((tmp_path / "sessions.json").read_text()) == []


class TestPrintSummaryReport:
    def test_prints_totals(self, capsys):
        print_summary_report(build_usage_payload(_mixed_sessions()))
        out = capsys.readouterr().out
        assert "Network Usage Summary" in out
        assert "Total Sessions: 6" in out
        assert "February 2024" in out
        assert "Peak Hours" in out

    def test_prints_calendar_span(self, capsys):
        print_summary_report(build_usage_payload(_mixed_sessions()))
        # 31-01-2024 to 31-07-2024 inclusive
        assert "of 183 calendar days" in capsys.readouterr().out

    def test_empty(self, capsys):
        print_summary_report(build_usage_payload([]))
        out = capsys.readouterr().out
        assert "Total Sessions: 0" in out
        assert "Peak Hours" not in out


class TestDayAggregate:
    def test_to_dict(self):
        (agg,) = aggregate_by_day([make_session("2024-03-15T10:00:00", 3600, 1.0, 2.0)])
        assert isinstance(agg, DayAggregate)
        d = agg.to_dict()
        assert d["date"] == "2024-03-15"
        assert d["segment_count"] == 1
        assert d["inactive_seconds"] == 82800
