"""Split sessions into period-bounded segments with prorated metrics.

A session that runs past midnight (or past the end of a week or month)
is cut at each boundary it crosses.  Every piece gets the share of the
session's download, upload and duration that matches its share of the
elapsed time, so the pieces always add back up to the session they came from.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable

from periods import next_day
from sessions import Session

logger = logging.getLogger(__name__)

BoundaryFn = Callable[[datetime], datetime]


class SegmentationError(RuntimeError):
    """The segmenter could not make progress (a logic defect, not bad data)."""


@dataclass(frozen=True)
class Segment:
    """A slice of one session lying wholly within a single period."""
    source: Session
    start: datetime
    end: datetime
    duration_seconds: int
    download_mb: float
    upload_mb: float


def split_session(session: Session, next_boundary: BoundaryFn = next_day) -> list[Segment]:
    """Split *session* at every period boundary it crosses.

    Args:
        session: The session to split.
        next_boundary: Returns the start of the period following the one
            containing its argument.  ``next_day`` by default; pass
            ``next_month`` or a week boundary to split by larger periods.

    Returns:
        Contiguous, non-overlapping segments in chronological order whose
        durations sum to ``session.duration_seconds``.  Empty for
        sessions with no positive duration.

    Raises:
        SegmentationError: If *next_boundary* fails to move forward.
    """
    total = session.duration_seconds
    if total <= 0:
        return []

    end = session.login_time + timedelta(seconds=total)
    segments: list[Segment] = []
    current = session.login_time

    while current < end:
        boundary = next_boundary(current)
        if boundary <= current:
            raise SegmentationError(
                f"Boundary function did not advance past {current.isoformat()}"
            )
        segment_end = min(end, boundary)
        seconds = int((segment_end - current).total_seconds())
        if seconds <= 0:
            # Sub-second sliver before a boundary; skip ahead to the boundary.
            current = boundary
            continue

        fraction = seconds / total
        segments.append(
            Segment(
                source=session,
                start=current,
                end=segment_end,
                duration_seconds=seconds,
                download_mb=session.download_mb * fraction,
                upload_mb=session.upload_mb * fraction,
            )
        )
        current = segment_end

    return segments


def split_sessions(
    sessions: Iterable[Session], next_boundary: BoundaryFn = next_day,
) -> list[Segment]:
    """Split every session in *sessions* and flatten the result."""
    segments: list[Segment] = []
    dropped = 0
    for session in sessions:
        parts = split_session(session, next_boundary)
        if not parts:
            dropped += 1
        segments.extend(parts)
    if dropped:
        logger.debug("Dropped %d zero-duration sessions", dropped)
    return segments
