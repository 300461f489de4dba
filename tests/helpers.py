"""Shared test helpers for usage stats tests.

Regular functions (not fixtures) that can be imported by any test module.
"""

from __future__ import annotations

from datetime import datetime

from sessions import Session


def make_session(
    login: str = "2024-03-15T10:00:00",
    duration_seconds: int = 3600,
    download_mb: float = 100.0,
    upload_mb: float = 10.0,
) -> Session:
    """Build a Session from an ISO login time string."""
    return Session(
        login_time=datetime.fromisoformat(login),
        duration_seconds=duration_seconds,
        download_mb=download_mb,
        upload_mb=upload_mb,
    )


def make_raw_item(
    login_time: str = "15-03-2024 10:00:00",
    session_time: str = "01:00:00",
    download: float = 100.0,
    upload: float = 10.0,
) -> dict:
    """Build a raw export item as it appears in sessions.json."""
    return {
        "loginTime": login_time,
        "sessionTime": session_time,
        "download": download,
        "upload": upload,
    }
