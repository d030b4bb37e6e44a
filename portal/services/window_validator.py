"""
Academic Term Portal
Window Validator — gatekeeper for window creation and edits.

Design decisions:
    - A multi-select request is expanded into independent selections
      (phases × tracks × sub-stages). Each selection is validated and
      persisted on its own, so one failing combination never blocks the
      others; the caller gets per-selection results plus counts.
    - Selections are processed in workflow order, so a single request that
      opens proposal and application for a track succeeds: the application
      check runs after the proposal has been committed. Checks never use a
      snapshot taken before the batch started.
    - Prerequisites are checked by existence only, never by the
      prerequisite window having ended.
    - Edits change the interval only. They skip the prerequisite check for
      the edited window but still require end > start, and ended windows
      are immutable.
"""

from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Iterator

from portal.core.exceptions import (
    ImmutableWindowError,
    PrerequisiteMissingError,
    ValidationError,
)
from portal.models import db
from portal.models.window import Window
from portal.services import window_repository
from portal.services.window_status import WindowStatus
from portal.services.workflow_graph import (
    WORKFLOW_SEQUENCE,
    Phase,
    SubStage,
    Track,
    WindowKey,
    build_key,
    missing_prerequisites,
    parse_phase,
    parse_sub_stage,
    parse_track,
    workflow_position,
)
from portal.utils.helpers import as_utc, parse_datetime, utcnow

logger = logging.getLogger(__name__)

IDENTITY_FIELDS = ("phase", "track", "sub_stage")


# ═════════════════════════════════════════════════════════════════════════════
# Request / result shapes
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class CreationRequest:
    key: WindowKey
    start: datetime
    end: datetime

    def to_dict(self) -> dict:
        return {
            **self.key.to_dict(),
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


@dataclass
class ItemResult:
    """Outcome of one selection within a batch."""
    index: int
    selection: dict
    window_id: int | None = None
    error: dict | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "selection": self.selection,
            "success": self.ok,
            "window_id": self.window_id,
            "error": self.error,
        }


@dataclass
class BatchReport:
    """Aggregate summary of a batch: successCount, failureCount, details."""
    results: list[ItemResult] = field(default_factory=list)
    halted: bool = False
    halted_at: int | None = None
    halt_reason: str | None = None

    @property
    def created_ids(self) -> list[int]:
        return [r.window_id for r in self.results if r.ok]

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    def to_dict(self) -> dict:
        return {
            "created_ids": self.created_ids,
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "halted": self.halted,
            "halted_at": self.halted_at,
            "halt_reason": self.halt_reason,
            "results": [r.to_dict() for r in self.results],
        }


# ═════════════════════════════════════════════════════════════════════════════
# Single-window rules
# ═════════════════════════════════════════════════════════════════════════════

def validate_interval(start: datetime, end: datetime) -> None:
    if as_utc(end) <= as_utc(start):
        raise ValidationError(
            "end must be after start",
            details={"end": f"{as_utc(end).isoformat()} is not after {as_utc(start).isoformat()}"},
        )


def check_prerequisites(key: WindowKey) -> None:
    """Raise PrerequisiteMissingError unless every prerequisite window exists.

    Re-queries the repository on every call.
    """
    missing = missing_prerequisites(key.step, window_repository.existing_steps(key.track))
    if missing:
        raise PrerequisiteMissingError(key, missing)


def prepare_request(selection: dict) -> CreationRequest:
    """Parse a raw ``{phase, track, sub_stage?, start, end}`` mapping."""
    key = build_key(selection.get("phase"), selection.get("track"), selection.get("sub_stage"))
    start = parse_datetime(selection.get("start"), "start")
    end = parse_datetime(selection.get("end"), "end")
    validate_interval(start, end)
    return CreationRequest(key=key, start=start, end=end)


def create_window(request: CreationRequest, created_by: str = "system") -> Window:
    """Validate one creation request against current storage and persist it."""
    validate_interval(request.start, request.end)
    check_prerequisites(request.key)
    return window_repository.create(request.key, request.start, request.end, created_by)


# ═════════════════════════════════════════════════════════════════════════════
# Multi-selection creation
# ═════════════════════════════════════════════════════════════════════════════

def expand_selections(
    phases: Iterable[Phase],
    tracks: Iterable[Track],
    sub_stages: Iterable[SubStage] = (),
) -> Iterator[dict]:
    """Cartesian product of the selected sets.

    Sub-stages only multiply phases that use them. A submission/assessment
    phase selected without any sub-stage still yields one selection, which
    then fails validation on its own.
    """
    stages = list(sub_stages)
    for phase, track in itertools.product(phases, tracks):
        if phase.uses_sub_stage and stages:
            for stage in stages:
                yield {"phase": phase, "track": track, "sub_stage": stage}
        else:
            yield {"phase": phase, "track": track, "sub_stage": None}


def _selection_dict(selection: dict) -> dict:
    out = {}
    for name in (*IDENTITY_FIELDS, "start", "end"):
        value = selection.get(name)
        if hasattr(value, "value"):
            value = value.value
        elif isinstance(value, datetime):
            value = value.isoformat()
        out[name] = value
    return out


def _order_key(prepared):
    index, request = prepared
    return (workflow_position(request.key.step), list(Track).index(request.key.track), index)


def create_windows(selections: list[dict], created_by: str = "system") -> BatchReport:
    """Validate and persist each selection independently.

    Malformed selections fail without touching storage; the rest run in
    workflow order against freshly queried state.
    """
    results: dict[int, ItemResult] = {}
    prepared: list[tuple[int, CreationRequest]] = []

    for index, selection in enumerate(selections):
        item = ItemResult(index=index, selection=_selection_dict(selection))
        results[index] = item
        try:
            prepared.append((index, prepare_request(selection)))
        except ValidationError as exc:
            item.error = exc.to_dict()

    for index, request in sorted(prepared, key=_order_key):
        item = results[index]
        try:
            window = create_window(request, created_by)
        except (ValidationError, PrerequisiteMissingError) as exc:
            db.session.rollback()
            item.error = exc.to_dict()
            logger.info(
                "Window selection rejected: %s (%s)", request.key.label, exc.code,
                extra={"track": request.key.track.value, "phase": request.key.phase.value},
            )
            continue
        item.window_id = window.id

    report = BatchReport(results=[results[i] for i in sorted(results)])
    logger.info(
        "Window batch processed: %d created, %d failed",
        report.success_count, report.failure_count,
    )
    return report


def create_common(
    phases: list,
    tracks: list,
    sub_stages: list,
    start,
    end,
    created_by: str = "system",
) -> BatchReport:
    """One shared interval applied to every combination of the selected sets.

    Unknown enum values or a bad shared interval reject the whole request.
    """
    if not phases:
        raise ValidationError("phases must be a non-empty list", details={"phases": "required"})
    if not tracks:
        raise ValidationError("tracks must be a non-empty list", details={"tracks": "required"})
    parsed_phases = [parse_phase(p, "phases") for p in phases]
    parsed_tracks = [parse_track(t, "tracks") for t in tracks]
    parsed_stages = [parse_sub_stage(s, "sub_stages") for s in sub_stages if s]
    start = parse_datetime(start, "start")
    end = parse_datetime(end, "end")
    validate_interval(start, end)

    selections = [
        {**combo, "start": start, "end": end}
        for combo in expand_selections(parsed_phases, parsed_tracks, parsed_stages)
    ]
    return create_windows(selections, created_by)


# ═════════════════════════════════════════════════════════════════════════════
# Edit mode
# ═════════════════════════════════════════════════════════════════════════════

def update_window(window_id: int, data: dict, now: datetime | None = None) -> Window:
    """Change a window's interval.

    Raises:
        NotFoundError: unknown id.
        ValidationError: identity field change, nothing to change, end <= start.
        ImmutableWindowError: the window has already ended.
    """
    window = window_repository.get(window_id)
    now = as_utc(now) if now is not None else utcnow()

    changed_identity = {}
    current = window.key.to_dict()
    for name in IDENTITY_FIELDS:
        if name in data and (data[name] or None) != current[name]:
            changed_identity[name] = "cannot be changed after creation"
    if changed_identity:
        raise ValidationError(
            "Only start and end can be edited; "
            f"{', '.join(sorted(changed_identity))} cannot be changed",
            details=changed_identity,
        )

    if data.get("start") in (None, "") and data.get("end") in (None, ""):
        raise ValidationError(
            "start or end is required",
            details={"start": "required", "end": "required"},
        )

    if window.status_at(now) is WindowStatus.ENDED:
        raise ImmutableWindowError(window.id, window.ends)

    start = parse_datetime(data["start"], "start") if data.get("start") else window.starts
    end = parse_datetime(data["end"], "end") if data.get("end") else window.ends
    validate_interval(start, end)
    return window_repository.update_interval(window, start, end)


# ═════════════════════════════════════════════════════════════════════════════
# Coordinator availability view
# ═════════════════════════════════════════════════════════════════════════════

def availability(track) -> list[dict]:
    """For every workflow step: does a window exist, could one be created now."""
    track = parse_track(track)
    existing = window_repository.existing_steps(track)
    rows = []
    for step in WORKFLOW_SEQUENCE:
        missing = missing_prerequisites(step, existing)
        rows.append({
            **step.to_dict(),
            "track": track.value,
            "exists": step in existing,
            "available": not missing,
            "missing": [m.to_dict() for m in missing],
        })
    return rows


__all__ = [
    "BatchReport",
    "CreationRequest",
    "ItemResult",
    "availability",
    "check_prerequisites",
    "create_common",
    "create_window",
    "create_windows",
    "expand_selections",
    "prepare_request",
    "update_window",
    "validate_interval",
]
