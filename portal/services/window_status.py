"""
Academic Term Portal
Temporal status resolution for workflow windows.

    now <  start          -> upcoming
    start <= now <= end   -> active   (both bounds inclusive)
    now >  end            -> ended

Callers evaluating many windows must capture ``now`` once and pass the same
value for every window, so one listing never mixes two different instants.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Iterable

from portal.utils.helpers import as_utc, utcnow


class WindowStatus(str, Enum):
    UPCOMING = "upcoming"
    ACTIVE = "active"
    ENDED = "ended"


def resolve_status(start: datetime, end: datetime, now: datetime) -> WindowStatus:
    """Status of the interval [start, end] at instant ``now``."""
    start, end, now = as_utc(start), as_utc(end), as_utc(now)
    if now < start:
        return WindowStatus.UPCOMING
    if now > end:
        return WindowStatus.ENDED
    return WindowStatus.ACTIVE


def compute_statuses(windows: Iterable, now: datetime | None = None) -> dict[int, WindowStatus]:
    """Map window id -> status for a batch, evaluated against one instant."""
    now = as_utc(now) if now is not None else utcnow()
    return {w.id: resolve_status(w.start_at, w.end_at, now) for w in windows}
