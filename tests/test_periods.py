"""Tests for periods.py boundary functions and period keys."""

from __future__ import annotations

from datetime import date, datetime

from periods import (
    SUNDAY,
    day_key,
    month_key,
    next_day,
    next_hour,
    next_month,
    next_week,
    start_of_month,
    start_of_week,
    week_key,
)


class TestBoundaries:
    def test_next_day(self):
        assert next_day(datetime(2024, 2, 28, 23, 59, 59)) == datetime(2024, 2, 29)

    def test_next_day_from_midnight(self):
        assert next_day(datetime(2024, 3, 1)) == datetime(2024, 3, 2)

    def test_next_hour(self):
        assert next_hour(datetime(2024, 3, 1, 23, 15, 5)) == datetime(2024, 3, 2)

    def test_next_week_from_sunday(self):
        assert next_week(datetime(2024, 3, 10, 22)) == datetime(2024, 3, 11)

    def test_next_week_from_monday_midnight(self):
        assert next_week(datetime(2024, 3, 11)) == datetime(2024, 3, 18)

    def test_next_month_december(self):
        assert next_month(datetime(2024, 12, 31, 23)) == datetime(2025, 1, 1)

    def test_start_of_week_sunday_convention(self):
        assert start_of_week(datetime(2024, 3, 13), SUNDAY) == datetime(2024, 3, 10)

    def test_start_of_month(self):
        assert start_of_month(datetime(2024, 2, 29, 12)) == datetime(2024, 2, 1)


class TestKeys:
    def test_day_key(self):
        assert day_key(datetime(2024, 3, 15, 23, 59)) == date(2024, 3, 15)

    def test_iso_week(self):
        assert week_key(datetime(2024, 3, 10)) == (2024, 10)
        assert week_key(datetime(2024, 3, 11)) == (2024, 11)

    def test_iso_week_year_rollover(self):
        assert week_key(datetime(2024, 12, 30)) == (2025, 1)
        assert week_key(datetime(2021, 1, 3)) == (2020, 53)

    def test_sunday_week_key_is_stable_across_span(self):
        keys = {week_key(datetime(2024, 3, d), SUNDAY) for d in range(10, 17)}
        assert len(keys) == 1

    def test_month_key(self):
        assert month_key(datetime(2024, 1, 31, 23)) == (2024, 1)
