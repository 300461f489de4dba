"""Strict parsers for the fixed-format session time fields.

Session exports carry two string fields that must be decoded before any
aggregation can happen:

- ``loginTime`` in ``DD-MM-YYYY HH:MM:SS`` (local wall-clock time)
- ``sessionTime`` in ``HH:MM:SS`` (a duration; hours may exceed 23)

Both parsers reject malformed input with ``ParsingError``.  They never
guess or coerce, so a bad record fails loudly instead of producing a
silently wrong rollup.
"""

from __future__ import annotations

import re
from datetime import datetime

LOGIN_TIME_FORMAT = "DD-MM-YYYY HH:MM:SS"
DURATION_FORMAT = "HH:MM:SS"

_LOGIN_TIME_RE = re.compile(r"^(\d{2})-(\d{2})-(\d{4}) (\d{2}):(\d{2}):(\d{2})$")
_DURATION_RE = re.compile(r"^(\d{2,}):(\d{2}):(\d{2})$")


class ParsingError(ValueError):
    """A timestamp or duration string could not be parsed.

    Attributes:
        raw: The offending input string.
        expected: The format the input was expected to match.
        reason: Short description of what was wrong with *raw*.
    """

    def __init__(self, raw: object, expected: str, reason: str = "Invalid format") -> None:
        self.raw = raw
        self.expected = expected
        self.reason = reason
        super().__init__(f'{reason}: "{raw}". Expected "{expected}".')


class ShapeError(ValueError):
    """Input JSON does not have the expected structure.

    Attributes:
        index: Position of the offending element, or None when the
            problem is the root value itself.
        field: Name of the offending field, or None for element-level
            problems.
    """

    def __init__(self, message: str, index: int | None = None, field: str | None = None) -> None:
        self.index = index
        self.field = field
        if index is None:
            location = "Session data"
        elif field is None:
            location = f"Item {index}"
        else:
            location = f"Item {index}, field '{field}'"
        super().__init__(f"{location}: {message}")


def parse_login_time(value: str) -> datetime:
    """Parse a ``DD-MM-YYYY HH:MM:SS`` login time into a naive datetime.

    The numeric components are validated by building the datetime and
    checking that every component survives the round trip, so impossible
    dates such as 31 April or hour 25 are rejected.

    Args:
        value: The raw login time string.

    Returns:
        A naive ``datetime`` in the local calendar.

    Raises:
        ParsingError: If the pattern does not match or the components do
            not form a real calendar date and time.
    """
    match = _LOGIN_TIME_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise ParsingError(value, LOGIN_TIME_FORMAT, "Invalid loginTime format")

    day, month, year, hour, minute, second = (int(g) for g in match.groups())
    try:
        parsed = datetime(year, month, day, hour, minute, second)
    except ValueError:
        raise ParsingError(value, LOGIN_TIME_FORMAT, "Invalid date values in loginTime") from None

    if (
        parsed.year != year
        or parsed.month != month
        or parsed.day != day
        or parsed.hour != hour
        or parsed.minute != minute
        or parsed.second != second
    ):
        raise ParsingError(value, LOGIN_TIME_FORMAT, "Invalid date values in loginTime")
    return parsed


def format_login_time(value: datetime) -> str:
    """Serialize a datetime back into the ``DD-MM-YYYY HH:MM:SS`` pattern."""
    return value.strftime("%d-%m-%Y %H:%M:%S")


def parse_duration(value: str) -> int:
    """Parse an ``HH:MM:SS`` duration into total whole seconds.

    Hours are not capped at 23 since this is a duration, not a time of
    day.  Minutes and seconds must lie in ``[0, 59]``.

    Raises:
        ParsingError: On pattern mismatch or out-of-range minutes/seconds.
    """
    match = _DURATION_RE.match(value) if isinstance(value, str) else None
    if match is None:
        raise ParsingError(value, DURATION_FORMAT, "Invalid sessionTime format")

    hours, minutes, seconds = (int(g) for g in match.groups())
    if minutes > 59 or seconds > 59:
        raise ParsingError(value, DURATION_FORMAT, "Invalid time values in sessionTime")
    return hours * 3600 + minutes * 60 + seconds
