"""FastAPI service for the Network Usage Stats dashboard.

Serves cached analytics data as JSON (1-hour TTL since the data only
changes when a new session export is dropped in).

Deployment: uvicorn app:app --host 127.0.0.1 --port 8204
"""

from __future__ import annotations

import json
import logging
import threading
import time
from datetime import date
from pathlib import Path
from typing import Any

from fastapi import FastAPI, HTTPException

from analytics import AGGREGATORS, build_dashboard_payload, build_usage_payload
from insights import (
    InsightsError,
    analyze_and_suggest,
    build_session_blob,
    request_session_insights,
)
from parsers import ParsingError, ShapeError
from sessions import filter_sessions, load_sessions, sort_sessions

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------
SESSIONS_PATH = Path(__file__).parent / "sessions.json"
CACHE_TTL_SECONDS = 3600  # 1 hour

# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(
    title="Network Usage Stats",
    root_path="/usage_stats",
)

# ---------------------------------------------------------------------------
# Thread-safe cache
# ---------------------------------------------------------------------------
_cache_lock = threading.Lock()
_cache: dict[str, Any] = {
    "data": None,
    "built_at": 0.0,
}


def _load_or_raise(loader, *args):
    """Run a loader, translating load failures into HTTP errors."""
    try:
        return loader(*args)
    except FileNotFoundError:
        raise HTTPException(status_code=503, detail="Session data file not found")
    except json.JSONDecodeError:
        raise HTTPException(status_code=500, detail=f"Invalid JSON in {SESSIONS_PATH.name}")
    except (ShapeError, ParsingError) as e:
        raise HTTPException(status_code=422, detail=str(e))


def _get_cached_data(force_refresh: bool = False) -> dict[str, Any]:
    """Return cached dashboard data, rebuilding if stale or forced."""
    now = time.monotonic()
    with _cache_lock:
        if (
            not force_refresh
            and _cache["data"] is not None
            and (now - _cache["built_at"]) < CACHE_TTL_SECONDS
        ):
            return _cache["data"]

    data = _load_or_raise(build_dashboard_payload, str(SESSIONS_PATH))

    with _cache_lock:
        _cache["data"] = data
        _cache["built_at"] = time.monotonic()

    return data


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------
@app.get("/health")
@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/api/data")
def api_data():
    """Return the full dashboard JSON payload."""
    return _get_cached_data()


@app.get("/api/refresh")
def api_refresh():
    """Force a cache rebuild and return fresh data."""
    data = _get_cached_data(force_refresh=True)
    return {
        "status": "refreshed",
        "generated_at": data["generated_at"],
    }


@app.get("/api/sessions")
def api_sessions(date_from: date | None = None, date_to: date | None = None):
    """Return sessions in the range, most recent login first."""
    sessions = _load_or_raise(load_sessions, str(SESSIONS_PATH))
    return [s.to_dict() for s in sort_sessions(filter_sessions(sessions, date_from, date_to))]


@app.get("/api/aggregates/{period}")
def api_aggregates(period: str, date_from: date | None = None, date_to: date | None = None):
    """Return day, week or month aggregates for sessions in the range."""
    aggregate = AGGREGATORS.get(period)
    if aggregate is None:
        raise HTTPException(status_code=404, detail=f"Unknown period: {period}")
    sessions = _load_or_raise(load_sessions, str(SESSIONS_PATH))
    return [a.to_dict() for a in aggregate(filter_sessions(sessions, date_from, date_to))]


@app.get("/api/summary")
def api_summary(date_from: date | None = None, date_to: date | None = None):
    """Return the full payload for a date range (uncached)."""
    sessions = _load_or_raise(load_sessions, str(SESSIONS_PATH))
    return build_usage_payload(sessions, date_from, date_to)


def _selected_blob(date_from: date | None, date_to: date | None) -> str:
    sessions = _load_or_raise(load_sessions, str(SESSIONS_PATH))
    selected = filter_sessions(sessions, date_from, date_to)
    if not selected:
        raise HTTPException(status_code=400, detail="No sessions in the selected range")
    return build_session_blob(selected)


@app.post("/api/insights")
def api_insights(date_from: date | None = None, date_to: date | None = None):
    """Ask the external insights service to summarise the sessions."""
    blob = _selected_blob(date_from, date_to)
    try:
        insights = request_session_insights(blob)
    except InsightsError as e:
        logger.warning("Insights request failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    return insights.to_dict()


@app.post("/api/usage-patterns")
def api_usage_patterns(date_from: date | None = None, date_to: date | None = None):
    """Analyze usage patterns, then get a maintenance suggestion for them."""
    blob = _selected_blob(date_from, date_to)
    try:
        patterns, suggestion = analyze_and_suggest(blob)
    except InsightsError as e:
        logger.warning("Usage pattern analysis failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
    return {"patterns": patterns.to_dict(), "maintenance": suggestion.to_dict()}
