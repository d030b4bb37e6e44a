"""
Academic Term Portal
Bulk Sequencer — one administrative action schedules a whole term.

Two cadence strategies produce a ``SequencePlan`` covering every workflow
step for one track, in workflow order:

    explicit    caller supplies one interval per step; each start must not be
                earlier than the previous step's end (construction-time check)
    sequential  caller supplies a start, a phase duration and a gap; steps are
                laid out back-to-back, ``gap`` apart, each lasting ``duration``

``submit`` hands the planned windows to the validator one at a time. It stops
at the first failure and reports how far it got. Windows already created are
kept; nothing is rolled back.
"""

from __future__ import annotations

import logging
import math
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum

from portal.core.exceptions import PrerequisiteMissingError, ValidationError
from portal.models import db
from portal.services import window_validator
from portal.services.window_validator import BatchReport, CreationRequest, ItemResult
from portal.services.workflow_graph import (
    WORKFLOW_SEQUENCE,
    Track,
    WindowKey,
    WorkflowStep,
    parse_phase,
    parse_sub_stage,
    parse_track,
    workflow_position,
)
from portal.utils.helpers import parse_datetime

logger = logging.getLogger(__name__)


class Cadence(str, Enum):
    EXPLICIT = "explicit"
    SEQUENTIAL = "sequential"


@dataclass(frozen=True)
class PlannedWindow:
    step: WorkflowStep
    start: datetime
    end: datetime

    def to_request(self, track: Track) -> CreationRequest:
        return CreationRequest(
            key=WindowKey(self.step.phase, track, self.step.sub_stage),
            start=self.start,
            end=self.end,
        )

    def to_dict(self) -> dict:
        return {
            **self.step.to_dict(),
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
        }


@dataclass
class SequencePlan:
    track: Track
    cadence: Cadence
    windows: list[PlannedWindow] = field(default_factory=list)

    def requests(self) -> list[CreationRequest]:
        return [w.to_request(self.track) for w in self.windows]

    def to_dict(self) -> dict:
        return {
            "track": self.track.value,
            "cadence": self.cadence.value,
            "windows": [w.to_dict() for w in self.windows],
        }


# ═════════════════════════════════════════════════════════════════════════════
# Planning
# ═════════════════════════════════════════════════════════════════════════════

def plan_explicit(track, steps: list[dict], enforce_order: bool = True) -> SequencePlan:
    """Build a plan from one ``{phase, sub_stage?, start, end}`` per workflow step.

    Raises:
        ValidationError: unknown or duplicated step, a step missing from the
            term, end <= start, or (with ``enforce_order``) a start earlier
            than the previous step's end.
    """
    track = parse_track(track)
    if not isinstance(steps, list) or not steps:
        raise ValidationError("steps must be a non-empty list", details={"steps": "required"})

    by_step: dict[WorkflowStep, PlannedWindow] = {}
    for idx, raw in enumerate(steps):
        if not isinstance(raw, dict):
            raise ValidationError(f"steps[{idx}] must be an object", details={f"steps[{idx}]": "invalid"})
        phase = parse_phase(raw.get("phase"), f"steps[{idx}].phase")
        sub_stage = parse_sub_stage(raw.get("sub_stage"), f"steps[{idx}].sub_stage")
        if phase.uses_sub_stage and sub_stage is None:
            raise ValidationError(
                f"steps[{idx}]: sub_stage is required for {phase.value}",
                details={f"steps[{idx}].sub_stage": "required"},
            )
        step = WorkflowStep(phase, sub_stage)
        if step in by_step:
            raise ValidationError(
                f"Duplicate interval for {step.label}",
                details={f"steps[{idx}]": f"{step.label} given more than once"},
            )
        start = parse_datetime(raw.get("start"), f"steps[{idx}].start")
        end = parse_datetime(raw.get("end"), f"steps[{idx}].end")
        if end <= start:
            raise ValidationError(
                f"{step.label}: end must be after start",
                details={f"steps[{idx}].end": "must be after start"},
            )
        by_step[step] = PlannedWindow(step, start, end)

    missing = [s for s in WORKFLOW_SEQUENCE if s not in by_step]
    if missing:
        raise ValidationError(
            "Every workflow step needs an interval; missing: "
            + ", ".join(s.label for s in missing),
            details={"missing": [s.to_dict() for s in missing]},
        )

    ordered = sorted(by_step.values(), key=lambda w: workflow_position(w.step))
    if enforce_order:
        for prev, cur in zip(ordered, ordered[1:]):
            if cur.start < prev.end:
                raise ValidationError(
                    f"{cur.step.label} starts before {prev.step.label} ends",
                    details={
                        "step": cur.step.to_dict(),
                        "start": cur.start.isoformat(),
                        "previous_end": prev.end.isoformat(),
                    },
                )
    return SequencePlan(track=track, cadence=Cadence.EXPLICIT, windows=ordered)


def plan_sequential(track, start, phase_duration: timedelta, gap: timedelta) -> SequencePlan:
    """Lay every workflow step out back-to-back from ``start``."""
    track = parse_track(track)
    start = parse_datetime(start, "start")
    if phase_duration <= timedelta(0):
        raise ValidationError(
            "phase duration must be positive",
            details={"phase_duration_hours": "must be > 0"},
        )
    if gap < timedelta(0):
        raise ValidationError("gap must not be negative", details={"gap_hours": "must be >= 0"})

    windows = []
    cursor = start
    try:
        for step in WORKFLOW_SEQUENCE:
            end = cursor + phase_duration
            windows.append(PlannedWindow(step, cursor, end))
            cursor = end + gap
    except OverflowError:
        raise ValidationError(
            "phase duration and gap push the term past the supported date range",
            details={
                "phase_duration_hours": "too large for the calendar",
                "gap_hours": "too large for the calendar",
            },
        ) from None
    return SequencePlan(track=track, cadence=Cadence.SEQUENTIAL, windows=windows)


def plan_from_payload(data: dict, default_phase_hours: float = 168, default_gap_hours: float = 24) -> SequencePlan:
    """Build a plan from a ``bulk-semester`` request body."""
    cadence = data.get("cadence") or Cadence.SEQUENTIAL.value
    try:
        cadence = Cadence(cadence)
    except ValueError:
        raise ValidationError(
            f"Invalid cadence '{cadence}'. Must be one of: explicit, sequential",
            details={"cadence": "must be one of ['explicit', 'sequential']"},
        ) from None

    if cadence is Cadence.EXPLICIT:
        return plan_explicit(data.get("track"), data.get("steps"))

    try:
        phase_hours = float(data.get("phase_duration_hours", default_phase_hours))
        gap_hours = float(data.get("gap_hours", default_gap_hours))
    except (TypeError, ValueError):
        raise ValidationError(
            "phase_duration_hours and gap_hours must be numbers",
            details={"phase_duration_hours": "number", "gap_hours": "number"},
        ) from None
    for name, hours in (("phase_duration_hours", phase_hours), ("gap_hours", gap_hours)):
        if not math.isfinite(hours):
            raise ValidationError(f"{name} must be a finite number", details={name: "must be finite"})
    try:
        phase_duration = timedelta(hours=phase_hours)
        gap = timedelta(hours=gap_hours)
    except OverflowError:
        raise ValidationError(
            "phase_duration_hours and gap_hours exceed the supported range",
            details={"phase_duration_hours": "out of range", "gap_hours": "out of range"},
        ) from None
    return plan_sequential(data.get("track"), data.get("start"), phase_duration, gap)


# ═════════════════════════════════════════════════════════════════════════════
# Submission
# ═════════════════════════════════════════════════════════════════════════════

def submit(
    plan: SequencePlan,
    created_by: str = "system",
    cancel_event: threading.Event | None = None,
) -> BatchReport:
    """Create the planned windows in workflow order, halting at the first failure.

    ``cancel_event`` is checked between windows; once set, submission stops
    and the report shows what was created so far.
    """
    report = BatchReport()
    for index, planned in enumerate(plan.windows):
        if cancel_event is not None and cancel_event.is_set():
            report.halted = True
            report.halted_at = index
            report.halt_reason = "cancelled"
            logger.warning(
                "Bulk sequencing cancelled after %d window(s)", report.success_count,
                extra={"track": plan.track.value},
            )
            break

        request = planned.to_request(plan.track)
        item = ItemResult(index=index, selection=request.to_dict())
        report.results.append(item)
        try:
            window = window_validator.create_window(request, created_by)
        except (ValidationError, PrerequisiteMissingError) as exc:
            db.session.rollback()
            item.error = exc.to_dict()
            report.halted = True
            report.halted_at = index
            report.halt_reason = exc.code
            logger.warning(
                "Bulk sequencing halted at %s: %s", request.key.label, exc.message,
                extra={"track": plan.track.value, "phase": request.key.phase.value},
            )
            break
        item.window_id = window.id

    logger.info(
        "Bulk sequencing for %s (%s): %d created, halted=%s",
        plan.track.value, plan.cadence.value, report.success_count, report.halted,
        extra={"track": plan.track.value},
    )
    return report
