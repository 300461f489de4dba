"""Client for the external AI insights service.

The service exposes three flows, each taking plain text and returning
short free-text fields:

- session insights: summaries per session, day, week and month plus a
  description of peak and quiet hours
- usage patterns: peak hours, quiet hours and overall trends
- maintenance suggestion: a maintenance window and the reasoning for it,
  given a usage pattern description and the current time

What the text says is not this module's concern; it only builds the
requests and keeps the non-empty string fields of each response.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Iterable

import httpx

from parsers import format_login_time
from sessions import Session

logger = logging.getLogger(__name__)

INSIGHTS_URL = "http://localhost:8080/api/analyzeSessionInsights"
USAGE_PATTERNS_URL = "http://localhost:8080/api/analyzeUsagePatterns"
MAINTENANCE_URL = "http://localhost:8080/api/suggestMaintenanceSchedule"
REQUEST_TIMEOUT_SECONDS = 60.0

_INSIGHTS_FIELDS = {
    "sessionLevelSummary": "session_summary",
    "dailyLevelSummary": "daily_summary",
    "weeklyLevelSummary": "weekly_summary",
    "monthlyLevelSummary": "monthly_summary",
    "peakHours": "peak_hours",
    "quietHours": "quiet_hours",
}
_PATTERN_FIELDS = {
    "peakHours": "peak_hours",
    "quietHours": "quiet_hours",
    "overallTrends": "overall_trends",
}
_MAINTENANCE_FIELDS = {
    "suggestedMaintenanceTime": "suggested_time",
    "reasoning": "reasoning",
}


class InsightsError(RuntimeError):
    """The insights service could not be reached or returned an unusable reply."""


@dataclass(frozen=True)
class SessionInsights:
    session_summary: str | None = None
    daily_summary: str | None = None
    weekly_summary: str | None = None
    monthly_summary: str | None = None
    peak_hours: str | None = None
    quiet_hours: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class UsagePatterns:
    peak_hours: str | None = None
    quiet_hours: str | None = None
    overall_trends: str | None = None

    def describe(self) -> str:
        """One-line description handed to the maintenance flow."""
        return (
            f"Peak Hours: {self.peak_hours or 'unknown'}, "
            f"Quiet Hours: {self.quiet_hours or 'unknown'}, "
            f"Trends: {self.overall_trends or 'unknown'}"
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class MaintenanceSuggestion:
    suggested_time: str | None = None
    reasoning: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def _format_hms(seconds: int) -> str:
    hours, remainder = divmod(max(seconds, 0), 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def build_session_blob(sessions: Iterable[Session]) -> str:
    """Serialize sessions into the text blob the insights service expects.

    Uses the same field names and string formats as the input export so
    the service sees the data the way the user supplied it.
    """
    records = [
        {
            "loginTime": format_login_time(s.login_time),
            "sessionTime": _format_hms(s.duration_seconds),
            "download": s.download_mb,
            "upload": s.upload_mb,
        }
        for s in sessions
    ]
    return json.dumps(records)


def _pick_strings(body: object, fields: dict[str, str]) -> dict[str, str]:
    """Pick the known, non-empty string fields out of a response body."""
    data = body.get("data", body) if isinstance(body, dict) else None
    if not isinstance(data, dict):
        raise InsightsError("Insights response did not contain a JSON object")

    values = {}
    for remote_name, local_name in fields.items():
        value = data.get(remote_name)
        if isinstance(value, str) and value.strip():
            values[local_name] = value.strip()
    return values


def _post(url: str, body: dict, client: httpx.Client | None, timeout: float) -> object:
    """POST *body* as JSON and return the decoded reply.

    Raises:
        InsightsError: On transport errors, non-2xx status or invalid JSON.
    """
    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=timeout)
    try:
        response = client.post(url, json=body)
        response.raise_for_status()
        return response.json()
    except httpx.HTTPStatusError as e:
        raise InsightsError(
            f"Insights service returned status {e.response.status_code}"
        ) from e
    except httpx.HTTPError as e:
        raise InsightsError(f"Insights service request failed: {e}") from e
    except json.JSONDecodeError as e:
        raise InsightsError("Insights service returned invalid JSON") from e
    finally:
        if owns_client:
            client.close()


def request_session_insights(
    session_blob: str,
    url: str = INSIGHTS_URL,
    client: httpx.Client | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> SessionInsights:
    """Send *session_blob* to the insights service and parse the reply.

    Args:
        session_blob: Text describing the sessions (see ``build_session_blob``).
        url: Endpoint of the insights service.
        client: Optional pre-configured ``httpx.Client``; a short-lived
            client is created when omitted.
        timeout: Request timeout in seconds.

    Returns:
        A ``SessionInsights`` with every non-empty summary field set.

    Raises:
        InsightsError: On transport errors, non-2xx status or a body that
            is not a JSON object.
    """
    if not session_blob:
        raise InsightsError("No session data to analyze")

    body = _post(url, {"sessionData": session_blob}, client, timeout)
    insights = SessionInsights(**_pick_strings(body, _INSIGHTS_FIELDS))
    logger.info(
        "Received insights with %d populated fields",
        sum(1 for v in insights.to_dict().values() if v),
    )
    return insights


def request_usage_patterns(
    session_blob: str,
    url: str = USAGE_PATTERNS_URL,
    client: httpx.Client | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> UsagePatterns:
    """Ask the service for peak hours, quiet hours and overall trends."""
    if not session_blob:
        raise InsightsError("No session data to analyze")

    body = _post(url, {"sessionData": session_blob}, client, timeout)
    return UsagePatterns(**_pick_strings(body, _PATTERN_FIELDS))


def request_maintenance_suggestion(
    usage_patterns: str,
    current_time: datetime | str,
    url: str = MAINTENANCE_URL,
    client: httpx.Client | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> MaintenanceSuggestion:
    """Ask the service for a maintenance window.

    Args:
        usage_patterns: Free-text description of the usage patterns, as
            produced by ``UsagePatterns.describe``.
        current_time: Reference time; datetimes are sent in ISO format.
    """
    if not usage_patterns:
        raise InsightsError("No usage patterns to schedule around")
    if isinstance(current_time, datetime):
        current_time = current_time.isoformat()

    body = _post(
        url,
        {"usagePatterns": usage_patterns, "currentTime": current_time},
        client,
        timeout,
    )
    return MaintenanceSuggestion(**_pick_strings(body, _MAINTENANCE_FIELDS))


def analyze_and_suggest(
    session_blob: str,
    now: datetime | None = None,
    client: httpx.Client | None = None,
    timeout: float = REQUEST_TIMEOUT_SECONDS,
) -> tuple[UsagePatterns, MaintenanceSuggestion]:
    """Analyze usage patterns, then ask for a maintenance window based on them.

    The second request only runs once the first has succeeded; a failure
    in either raises ``InsightsError``.
    """
    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=timeout)
    try:
        patterns = request_usage_patterns(session_blob, client=client, timeout=timeout)
        suggestion = request_maintenance_suggestion(
            patterns.describe(), now or datetime.now(), client=client, timeout=timeout,
        )
    finally:
        if owns_client:
            client.close()
    logger.info("Maintenance suggestion: %s", suggestion.suggested_time)
    return patterns, suggestion
