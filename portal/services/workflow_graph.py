"""
Academic Term Portal
Workflow Graph — which windows must exist before another may be opened.

The graph is a static, side-effect-free table keyed by ``WorkflowStep``
(phase + optional sub-stage). Prerequisites are always evaluated per track:
a step for track T is satisfied only by windows that belong to T.

Total order of a term:

    proposal < application
      < submission CLA-1 < assessment CLA-1
      < submission CLA-2 < assessment CLA-2
      < submission CLA-3 < assessment CLA-3
      < submission External < assessment External
      < grade_release

Usage:
    from portal.services.workflow_graph import Phase, SubStage, prerequisites_for

    prerequisites_for(Phase.ASSESSMENT, SubStage.CLA_2)
    # -> (proposal, application, submission CLA-1, assessment CLA-1, submission CLA-2)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from portal.core.exceptions import ValidationError


# ═════════════════════════════════════════════════════════════════════════════
# Enums
# ═════════════════════════════════════════════════════════════════════════════

class Phase(str, Enum):
    PROPOSAL = "proposal"
    APPLICATION = "application"
    SUBMISSION = "submission"
    ASSESSMENT = "assessment"
    GRADE_RELEASE = "grade_release"

    @property
    def uses_sub_stage(self) -> bool:
        return self in (Phase.SUBMISSION, Phase.ASSESSMENT)


class Track(str, Enum):
    """Program types the workflow applies to independently."""
    IDP = "IDP"              # two-semester interdisciplinary project
    UROP = "UROP"            # undergraduate research opportunity
    CAPSTONE = "CAPSTONE"


class SubStage(str, Enum):
    """Ordered divisions of the submission/assessment phases."""
    CLA_1 = "CLA-1"
    CLA_2 = "CLA-2"
    CLA_3 = "CLA-3"
    EXTERNAL = "External"


SUB_STAGE_ORDER: tuple[SubStage, ...] = (
    SubStage.CLA_1,
    SubStage.CLA_2,
    SubStage.CLA_3,
    SubStage.EXTERNAL,
)


# ═════════════════════════════════════════════════════════════════════════════
# Compound identity
# ═════════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class WorkflowStep:
    """Track-independent position in the workflow: phase + sub-stage.

    A sub-stage given for a phase that does not use one is dropped.
    """
    phase: Phase
    sub_stage: SubStage | None = None

    def __post_init__(self):
        if not self.phase.uses_sub_stage and self.sub_stage is not None:
            object.__setattr__(self, "sub_stage", None)

    @property
    def label(self) -> str:
        if self.sub_stage is None:
            return self.phase.value
        return f"{self.phase.value} ({self.sub_stage.value})"

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "sub_stage": self.sub_stage.value if self.sub_stage else None,
        }


@dataclass(frozen=True)
class WindowKey:
    """The (phase, track, sub_stage) identity of a window."""
    phase: Phase
    track: Track
    sub_stage: SubStage | None = None

    def __post_init__(self):
        if not self.phase.uses_sub_stage and self.sub_stage is not None:
            object.__setattr__(self, "sub_stage", None)

    @property
    def step(self) -> WorkflowStep:
        return WorkflowStep(self.phase, self.sub_stage)

    @property
    def label(self) -> str:
        return f"{self.step.label} for {self.track.value}"

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "track": self.track.value,
            "sub_stage": self.sub_stage.value if self.sub_stage else None,
        }


# ═════════════════════════════════════════════════════════════════════════════
# Declarative prerequisite table
# ═════════════════════════════════════════════════════════════════════════════

_PROPOSAL = WorkflowStep(Phase.PROPOSAL)
_APPLICATION = WorkflowStep(Phase.APPLICATION)
_SUB_1 = WorkflowStep(Phase.SUBMISSION, SubStage.CLA_1)
_ASM_1 = WorkflowStep(Phase.ASSESSMENT, SubStage.CLA_1)
_SUB_2 = WorkflowStep(Phase.SUBMISSION, SubStage.CLA_2)
_ASM_2 = WorkflowStep(Phase.ASSESSMENT, SubStage.CLA_2)
_SUB_3 = WorkflowStep(Phase.SUBMISSION, SubStage.CLA_3)
_ASM_3 = WorkflowStep(Phase.ASSESSMENT, SubStage.CLA_3)
_SUB_X = WorkflowStep(Phase.SUBMISSION, SubStage.EXTERNAL)
_ASM_X = WorkflowStep(Phase.ASSESSMENT, SubStage.EXTERNAL)
_GRADE_RELEASE = WorkflowStep(Phase.GRADE_RELEASE)

WORKFLOW_SEQUENCE: tuple[WorkflowStep, ...] = (
    _PROPOSAL,
    _APPLICATION,
    _SUB_1, _ASM_1,
    _SUB_2, _ASM_2,
    _SUB_3, _ASM_3,
    _SUB_X, _ASM_X,
    _GRADE_RELEASE,
)

PREREQUISITES: dict[WorkflowStep, tuple[WorkflowStep, ...]] = {
    _PROPOSAL: (),
    _APPLICATION: (_PROPOSAL,),
    _SUB_1: (_PROPOSAL, _APPLICATION),
    _ASM_1: (_PROPOSAL, _APPLICATION, _SUB_1),
    _SUB_2: (_PROPOSAL, _APPLICATION, _SUB_1, _ASM_1),
    _ASM_2: (_PROPOSAL, _APPLICATION, _SUB_1, _ASM_1, _SUB_2),
    _SUB_3: (_PROPOSAL, _APPLICATION, _SUB_1, _ASM_1, _SUB_2, _ASM_2),
    _ASM_3: (_PROPOSAL, _APPLICATION, _SUB_1, _ASM_1, _SUB_2, _ASM_2, _SUB_3),
    _SUB_X: (_PROPOSAL, _APPLICATION, _SUB_1, _ASM_1, _SUB_2, _ASM_2, _SUB_3, _ASM_3),
    _ASM_X: (_PROPOSAL, _APPLICATION, _SUB_1, _ASM_1, _SUB_2, _ASM_2, _SUB_3, _ASM_3,
             _SUB_X),
    _GRADE_RELEASE: (_PROPOSAL, _APPLICATION, _SUB_1, _ASM_1, _SUB_2, _ASM_2, _SUB_3,
                     _ASM_3, _SUB_X, _ASM_X),
}

_POSITION = {step: idx for idx, step in enumerate(WORKFLOW_SEQUENCE)}


def _canonical(step: WorkflowStep) -> WorkflowStep:
    """Staged phase without a sub-stage is looked up as its first stage."""
    if step.phase.uses_sub_stage and step.sub_stage is None:
        return WorkflowStep(step.phase, SUB_STAGE_ORDER[0])
    return step


def prerequisites_for(phase: Phase, sub_stage: SubStage | None = None) -> tuple[WorkflowStep, ...]:
    """Return the ordered steps that must already exist before this one."""
    return PREREQUISITES[_canonical(WorkflowStep(phase, sub_stage))]


def workflow_position(step: WorkflowStep) -> int:
    """Index of the step in the total workflow order."""
    return _POSITION[_canonical(step)]


def missing_prerequisites(step: WorkflowStep, existing: Iterable[WorkflowStep]) -> list[WorkflowStep]:
    """Prerequisites of ``step`` that are absent from ``existing`` (order preserved)."""
    present = set(existing)
    return [req for req in prerequisites_for(step.phase, step.sub_stage) if req not in present]


def describe_graph() -> list[dict]:
    """Full graph as JSON-ready rows, in workflow order."""
    return [
        {
            **step.to_dict(),
            "position": idx,
            "prerequisites": [req.to_dict() for req in PREREQUISITES[step]],
        }
        for idx, step in enumerate(WORKFLOW_SEQUENCE)
    ]


# ═════════════════════════════════════════════════════════════════════════════
# Input coercion
# ═════════════════════════════════════════════════════════════════════════════

def _coerce(enum_cls, value, field_name: str, required: bool = True):
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field_name} is required", details={field_name: "required"})
        return None
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip())
    except ValueError:
        allowed = [member.value for member in enum_cls]
        raise ValidationError(
            f"Invalid {field_name} '{value}'. Must be one of: {', '.join(allowed)}",
            details={field_name: f"must be one of {allowed}"},
        ) from None


def parse_phase(value, field_name: str = "phase") -> Phase:
    return _coerce(Phase, value, field_name)


def parse_track(value, field_name: str = "track") -> Track:
    return _coerce(Track, value, field_name)


def parse_sub_stage(value, field_name: str = "sub_stage") -> SubStage | None:
    return _coerce(SubStage, value, field_name, required=False)


def build_key(phase, track, sub_stage=None) -> WindowKey:
    """Parse raw values into a WindowKey, enforcing the sub-stage rule.

    Raises:
        ValidationError: unknown enum value, or a submission/assessment
            selection without a sub-stage.
    """
    phase = parse_phase(phase)
    track = parse_track(track)
    sub_stage = parse_sub_stage(sub_stage)
    if phase.uses_sub_stage and sub_stage is None:
        raise ValidationError(
            f"sub_stage is required for {phase.value} windows",
            details={
                "sub_stage": f"required for {phase.value}; one of "
                             f"{[s.value for s in SUB_STAGE_ORDER]}",
            },
        )
    return WindowKey(phase, track, sub_stage)
