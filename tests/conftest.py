"""Shared fixtures for usage stats tests."""

from __future__ import annotations

import json
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from helpers import make_raw_item


# ── Minimal dashboard payload for app.py tests ──


def _empty_chart_series() -> dict:
    """Return an empty chart series (values + rolling + lifetime averages)."""
    return {"values": [], "avg_7d": [], "avg_28d": [], "avg_lifetime": []}


def _minimal_dashboard_payload() -> dict:
    """Return a minimal payload matching build_usage_payload() shape."""
    return {
        "generated_at": "2024-03-15T12:00:00",
        "filters": {"date_from": None, "date_to": None},
        "summary": {
            "total_sessions": 0,
            "active_sessions": 0,
            "total_duration_seconds": 0,
            "total_download_mb": 0.0,
            "total_upload_mb": 0.0,
            "first_login": None,
            "last_login": None,
            "days_active": 0,
            "busiest_day": None,
        },
        "sessions": [],
        "daily": [],
        "weekly": [],
        "monthly": [],
        "charts": {
            "dates": [],
            "download_mb": _empty_chart_series(),
            "upload_mb": _empty_chart_series(),
            "duration_hours": _empty_chart_series(),
        },
        "hourly": {
            "duration_seconds": [0] * 24,
            "download_mb": [0.0] * 24,
            "upload_mb": [0.0] * 24,
            "heatmap": [[0] * 24 for _ in range(7)],
            "peak_hours": [],
            "quiet_hours": [],
        },
        "top_days": {"by_download": [], "by_upload": [], "by_duration": []},
    }


@pytest.fixture()
def mock_payload():
    """Return the minimal dashboard payload dict."""
    return _minimal_dashboard_payload()


@pytest.fixture()
def sessions_file(tmp_path):
    """Write a small, valid session export and return its path."""
    items = [
        make_raw_item("31-07-2024 23:00:00", "02:00:00", 100, 50),
        make_raw_item("15-03-2024 10:00:00", "01:30:00", 200.5, 10.25),
        make_raw_item("16-03-2024 08:00:00", "00:00:00", 5, 1),
    ]
    path = tmp_path / "sessions.json"
    path.write_text(json.dumps(items), encoding="utf-8")
    return path


@pytest.fixture()
def client(mock_payload, sessions_file):
    """TestClient for app.py with mocked dashboard data.

    Patches build_dashboard_payload so the cached routes need no file,
    points SESSIONS_PATH at a temporary export for the uncached ones,
    and resets the module-level cache between tests.
    """
    import app as app_module

    with patch.object(
        app_module, "_cache", {"data": None, "built_at": 0.0}
    ):
        with patch.object(app_module, "SESSIONS_PATH", sessions_file):
            with patch(
                "app.build_dashboard_payload", return_value=mock_payload
            ):
                with TestClient(app_module.app) as tc:
                    yield tc
