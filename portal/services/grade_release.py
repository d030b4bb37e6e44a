"""
Academic Term Portal
Grade Release Gate — one-way NotReleased → Released latch per track.

Release fires only while a grade_release window is Active for the track and
no ReleaseRecord exists. State is read from the persisted record every time,
never from a process-wide flag and never inferred from window status.
"""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from portal.core.exceptions import AlreadyReleasedError, NotActiveError, PrerequisiteMissingError
from portal.models import db
from portal.models.window import ReleaseRecord
from portal.services import window_repository
from portal.services.workflow_graph import (
    Phase,
    WindowKey,
    WorkflowStep,
    missing_prerequisites,
    parse_track,
)
from portal.utils.helpers import as_utc, utcnow

logger = logging.getLogger(__name__)


def _record_for(track) -> ReleaseRecord | None:
    return ReleaseRecord.query.filter_by(track=track.value).first()


def release_grades(track, released_by: str = "system", now: datetime | None = None) -> ReleaseRecord:
    """Record the release of final grades for ``track``.

    Raises:
        AlreadyReleasedError: a ReleaseRecord already exists.
        NotActiveError: no grade_release window is Active at ``now``.
        PrerequisiteMissingError: the grade_release prerequisites are gone.
    """
    track = parse_track(track)
    now = as_utc(now) if now is not None else utcnow()

    existing = _record_for(track)
    if existing is not None:
        raise AlreadyReleasedError(track.value, as_utc(existing.released_at))

    window = window_repository.find_active(Phase.GRADE_RELEASE, track, now=now)
    if window is None:
        raise NotActiveError(track.value)

    step = WorkflowStep(Phase.GRADE_RELEASE)
    missing = missing_prerequisites(step, window_repository.existing_steps(track))
    if missing:
        raise PrerequisiteMissingError(WindowKey(Phase.GRADE_RELEASE, track), missing)

    record = ReleaseRecord(track=track.value, released_at=now, released_by=released_by,
                           window_id=window.id)
    db.session.add(record)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        winner = _record_for(track)
        raise AlreadyReleasedError(
            track.value, as_utc(winner.released_at) if winner else None
        ) from None

    logger.info(
        "Final grades released for %s by %s", track.value, released_by,
        extra={"track": track.value, "window_id": window.id},
    )
    return record


def release_status(track, now: datetime | None = None) -> dict:
    """Released flag plus whether a release could be attempted right now."""
    track = parse_track(track)
    now = as_utc(now) if now is not None else utcnow()
    record = _record_for(track)
    window = window_repository.find_active(Phase.GRADE_RELEASE, track, now=now)
    return {
        "track": track.value,
        "released": record is not None,
        "record": record.to_dict() if record else None,
        "window_active": window is not None,
        "active_window_id": window.id if window else None,
        "can_release": record is None and window is not None,
    }
