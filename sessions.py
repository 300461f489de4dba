"""Session records: strict decoding, loading, range filtering and ordering.

The loader is the system boundary.  Raw JSON is decoded once into
immutable ``Session`` values; everything downstream works on those and
never sees the untyped input.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Any, Iterable

from parsers import ParsingError, ShapeError, parse_duration, parse_login_time
from periods import next_month

logger = logging.getLogger(__name__)

_STRING_FIELDS = ("loginTime", "sessionTime")
_NUMBER_FIELDS = ("download", "upload")


@dataclass(frozen=True)
class Session:
    """One continuous network usage record."""
    login_time: datetime
    duration_seconds: int
    download_mb: float
    upload_mb: float

    @property
    def end_time(self) -> datetime:
        return self.login_time + timedelta(seconds=max(self.duration_seconds, 0))

    def to_dict(self) -> dict:
        return {
            "login_time": self.login_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "duration_seconds": self.duration_seconds,
            "download_mb": self.download_mb,
            "upload_mb": self.upload_mb,
        }


@dataclass
class DecodeResult:
    """Tagged result of decoding a session payload.

    Exactly one of ``sessions`` / ``errors`` is meaningful: when ``ok``
    is True the errors list is empty, otherwise the sessions list is.
    """
    sessions: list[Session] = field(default_factory=list)
    errors: list[ValueError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def unwrap(self) -> list[Session]:
        """Return the sessions, or raise the first decode error."""
        if self.errors:
            raise self.errors[0]
        return self.sessions


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_calendar_range(login_time: datetime, duration: int, index: int) -> None:
    """Reject sessions whose surrounding periods fall outside ``datetime``'s range.

    Week bounds lie at most seven days either side of a session and the
    month bound after its end is the furthest boundary any aggregator
    asks for.
    """
    try:
        login_time - timedelta(days=7)
    except OverflowError:
        raise ShapeError(
            "is too close to the start of the supported calendar", index=index, field="loginTime",
        ) from None
    try:
        end = login_time + timedelta(seconds=duration)
        end + timedelta(days=7)
        next_month(end)
    except (OverflowError, ValueError):
        raise ShapeError(
            "session ends beyond the supported calendar", index=index, field="sessionTime",
        ) from None


def _decode_item(item: Any, index: int) -> Session:
    """Validate and parse a single raw session object.

    Raises:
        ShapeError: If the item is not an object, a field has the wrong
            type or a negative or non-finite value, or the session runs
            past the last date ``datetime`` can represent.
        ParsingError: If a time field is malformed.  The message is
            prefixed with the item index and field name.
    """
    if not isinstance(item, dict):
        raise ShapeError(f"must be an object, got {type(item).__name__}", index=index)

    for name in _STRING_FIELDS:
        if name not in item:
            raise ShapeError("is required", index=index, field=name)
        if not isinstance(item[name], str):
            raise ShapeError(
                f"must be a string, got {type(item[name]).__name__}", index=index, field=name,
            )
    for name in _NUMBER_FIELDS:
        if name not in item:
            raise ShapeError("is required", index=index, field=name)
        if not _is_number(item[name]):
            raise ShapeError(
                f"must be a number, got {type(item[name]).__name__}", index=index, field=name,
            )
        if not math.isfinite(item[name]):
            raise ShapeError(f"must be a finite number, got {item[name]}", index=index, field=name)
        if item[name] < 0:
            raise ShapeError(f"must be non-negative, got {item[name]}", index=index, field=name)

    try:
        login_time = parse_login_time(item["loginTime"])
    except ParsingError as e:
        raise ParsingError(e.raw, e.expected, f"Item {index}, field 'loginTime': {e.reason}") from e
    try:
        duration = parse_duration(item["sessionTime"])
    except ParsingError as e:
        raise ParsingError(e.raw, e.expected, f"Item {index}, field 'sessionTime': {e.reason}") from e

    _check_calendar_range(login_time, duration, index)

    return Session(
        login_time=login_time,
        duration_seconds=duration,
        download_mb=float(item["download"]),
        upload_mb=float(item["upload"]),
    )


def decode_sessions(payload: Any, fail_fast: bool = True) -> DecodeResult:
    """Decode an already-parsed JSON value into sessions.

    Args:
        payload: The value produced by ``json.load``.  Must be a list of
            objects with ``loginTime``, ``sessionTime``, ``download`` and
            ``upload`` fields.
        fail_fast: Stop at the first bad item (the default).  When False
            every item is checked and all errors are collected, which is
            useful for reporting.  Either way no sessions are returned
            once any error has been found.

    Returns:
        A ``DecodeResult`` holding either the sessions or the errors.
    """
    if not isinstance(payload, list):
        return DecodeResult(errors=[ShapeError("must be a JSON array")])

    sessions: list[Session] = []
    errors: list[ValueError] = []
    for index, item in enumerate(payload):
        try:
            sessions.append(_decode_item(item, index))
        except (ShapeError, ParsingError) as e:
            errors.append(e)
            if fail_fast:
                break

    if errors:
        return DecodeResult(errors=errors)
    return DecodeResult(sessions=sessions)


def load_sessions(path: str = "sessions.json") -> list[Session]:
    """Load and decode a session export file.

    A single malformed record aborts the whole load.

    Raises:
        FileNotFoundError: If *path* does not exist.
        json.JSONDecodeError: If the file contains invalid JSON.
        ShapeError: If the JSON structure is wrong.
        ParsingError: If a time field cannot be parsed.
    """
    with open(path, "r", encoding="utf-8") as f:
        payload = json.load(f)
    sessions = decode_sessions(payload).unwrap()
    logger.debug("Loaded %d sessions from %s", len(sessions), path)
    return sessions


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time())


def is_within_range(
    ts: datetime,
    date_from: date | datetime | None = None,
    date_to: date | datetime | None = None,
) -> bool:
    """Return True if *ts* falls within ``[date_from, date_to]``.

    The range is inclusive and day-granular: *date_from* is taken from
    the start of its day and *date_to* up to the end of its day.  A None
    bound leaves that side open.
    """
    if date_from is not None:
        start = datetime.combine(_as_datetime(date_from).date(), time())
        if ts < start:
            return False
    if date_to is not None:
        end = datetime.combine(_as_datetime(date_to).date(), time()) + timedelta(days=1)
        if ts >= end:
            return False
    return True


def filter_sessions(
    sessions: Iterable[Session],
    date_from: date | datetime | None = None,
    date_to: date | datetime | None = None,
) -> list[Session]:
    """Keep whole sessions whose login time is within the range."""
    return [s for s in sessions if is_within_range(s.login_time, date_from, date_to)]


def sort_sessions(sessions: Iterable[Session]) -> list[Session]:
    """Order sessions for the session view: most recent login first."""
    return sorted(sessions, key=lambda s: s.login_time, reverse=True)
