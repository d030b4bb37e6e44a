"""
Academic Term Portal
Window repository — storage and lookup of Window records.

Every read here hits the database. Prerequisite checks call
``existing_steps`` immediately before deciding, never a cached snapshot,
so a dependent window created right after its prerequisite sees it, and
one created before it fails cleanly.
"""

from __future__ import annotations

import logging

from portal.core.exceptions import NotFoundError
from portal.models import db
from portal.models.window import Window
from portal.services.window_status import WindowStatus, resolve_status
from portal.services.workflow_graph import Phase, SubStage, Track, WindowKey, WorkflowStep
from portal.utils.helpers import as_utc, utcnow

logger = logging.getLogger(__name__)


def _value(member):
    return member.value if member is not None else None


def create(key: WindowKey, start, end, created_by: str = "system") -> Window:
    """Persist one window and commit."""
    window = Window(
        phase=key.phase.value,
        track=key.track.value,
        sub_stage=_value(key.sub_stage),
        start_at=as_utc(start),
        end_at=as_utc(end),
        created_by=created_by,
    )
    db.session.add(window)
    db.session.commit()
    logger.info(
        "Window created: id=%s %s",
        window.id, key.label,
        extra={"window_id": window.id, "track": key.track.value, "phase": key.phase.value},
    )
    return window


def get(window_id: int) -> Window:
    window = db.session.get(Window, window_id)
    if window is None:
        raise NotFoundError(resource="Window", resource_id=window_id)
    return window


def list_windows(
    *,
    track: Track | None = None,
    phase: Phase | None = None,
    sub_stage: SubStage | None = None,
    created_by: str | None = None,
) -> list[Window]:
    q = Window.query
    if track is not None:
        q = q.filter(Window.track == track.value)
    if phase is not None:
        q = q.filter(Window.phase == phase.value)
    if sub_stage is not None:
        q = q.filter(Window.sub_stage == sub_stage.value)
    if created_by:
        q = q.filter(Window.created_by == created_by)
    return q.order_by(Window.start_at, Window.id).all()


def exists(phase: Phase, track: Track, sub_stage: SubStage | None = None) -> bool:
    """Whether at least one window with this identity exists."""
    q = Window.query.filter(Window.phase == phase.value, Window.track == track.value)
    if phase.uses_sub_stage:
        q = q.filter(Window.sub_stage == _value(sub_stage))
    return db.session.query(q.exists()).scalar()


def existing_steps(track: Track) -> set[WorkflowStep]:
    """Distinct workflow steps that have at least one window for ``track``."""
    rows = (
        db.session.query(Window.phase, Window.sub_stage)
        .filter(Window.track == track.value)
        .distinct()
        .all()
    )
    steps = set()
    for phase, sub_stage in rows:
        steps.add(WorkflowStep(Phase(phase), SubStage(sub_stage) if sub_stage else None))
    return steps


def update_interval(window: Window, start, end) -> Window:
    window.start_at = as_utc(start)
    window.end_at = as_utc(end)
    db.session.commit()
    logger.info(
        "Window interval updated: id=%s start=%s end=%s",
        window.id, window.starts.isoformat(), window.ends.isoformat(),
        extra={"window_id": window.id, "track": window.track, "phase": window.phase},
    )
    return window


def delete(window_id: int) -> None:
    """Administrative single-window deletion; core logic never calls this."""
    window = get(window_id)
    db.session.delete(window)
    db.session.commit()
    logger.info("Window deleted: id=%s", window_id, extra={"window_id": window_id})


def find_active(phase: Phase, track: Track, sub_stage: SubStage | None = None, now=None) -> Window | None:
    """First window with this identity whose interval contains ``now``."""
    now = as_utc(now) if now is not None else utcnow()
    q = Window.query.filter(Window.phase == phase.value, Window.track == track.value)
    if sub_stage is not None:
        q = q.filter(Window.sub_stage == sub_stage.value)
    for window in q.order_by(Window.start_at, Window.id).all():
        if resolve_status(window.start_at, window.end_at, now) is WindowStatus.ACTIVE:
            return window
    return None


def find_upcoming(track: Track | None = None, limit: int = 5, now=None) -> list[Window]:
    now = as_utc(now) if now is not None else utcnow()
    q = Window.query.filter(Window.start_at > now)
    if track is not None:
        q = q.filter(Window.track == track.value)
    return q.order_by(Window.start_at, Window.id).limit(limit).all()


def reconcile_statuses(now=None) -> dict:
    """Refresh ``materialized_status`` for every window against one instant.

    Only the derived cache columns are written; intervals and identity are
    never touched, so this is safe to run alongside user requests.
    """
    now = as_utc(now) if now is not None else utcnow()
    summary = {"checked": 0, "updated": 0, "activated": 0, "ended": 0}
    for window in Window.query.order_by(Window.id).all():
        summary["checked"] += 1
        status = resolve_status(window.start_at, window.end_at, now).value
        if window.materialized_status == status:
            continue
        previous = window.materialized_status
        window.materialized_status = status
        window.status_synced_at = now
        summary["updated"] += 1
        if status == WindowStatus.ACTIVE.value:
            summary["activated"] += 1
        elif status == WindowStatus.ENDED.value:
            summary["ended"] += 1
        logger.debug("Window %s status %s -> %s", window.id, previous, status,
                     extra={"window_id": window.id})
    db.session.commit()
    return summary
