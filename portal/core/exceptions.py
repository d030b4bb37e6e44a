"""
Portal-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes and machine-readable error codes.

Batch operations (multi-selection creation, bulk sequencing) do not raise
per-item failures. They catch these exceptions per item and collect
``to_dict()`` payloads into an aggregate report instead.

Usage:
    from portal.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Window", resource_id=42)
    raise ValidationError("end must be after start", details={"end": "..."})
"""

from __future__ import annotations

from datetime import datetime


class PortalError(Exception):
    """Base class for errors that map onto a structured API response."""

    code = "ERR_INTERNAL"

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class NotFoundError(PortalError):
    """Raised when a requested record does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Window").
        resource_id: The PK that was looked up.
    """

    code = "ERR_NOT_FOUND"

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(PortalError):
    """Malformed request: missing sub-stage, end <= start, unknown enum value.

    Always recoverable by the caller correcting input; never partially applied.

    Args:
        message: Human-readable explanation of what failed.
        details: Field-level breakdown. Keys are field names; values are
                 error descriptions.
    """

    code = "ERR_VALIDATION_INVALID"


class PrerequisiteMissingError(PortalError):
    """A window's workflow prerequisites do not exist yet for its track.

    Carries the specific missing (phase, sub_stage) steps so the caller can
    tell the coordinator exactly which windows to open first.
    """

    code = "ERR_PREREQUISITE_MISSING"

    def __init__(self, key, missing) -> None:
        self.key = key
        self.missing = list(missing)
        names = ", ".join(step.label for step in self.missing)
        super().__init__(
            f"Cannot open {key.label}: missing prerequisite window(s) {names}",
            details={
                "window": key.to_dict(),
                "missing": [step.to_dict() for step in self.missing],
            },
        )


class ImmutableWindowError(PortalError):
    """Attempted edit of a window whose status is already Ended."""

    code = "ERR_WINDOW_IMMUTABLE"

    def __init__(self, window_id: int, ended_at: datetime | None = None) -> None:
        self.window_id = window_id
        self.ended_at = ended_at
        super().__init__(
            f"Window id={window_id} has ended and can no longer be edited",
            details={
                "window_id": window_id,
                "ended_at": ended_at.isoformat() if ended_at else None,
            },
        )


class AlreadyReleasedError(PortalError):
    """Second grade-release attempt for a track that already has a ReleaseRecord."""

    code = "ERR_ALREADY_RELEASED"

    def __init__(self, track: str, released_at: datetime | None = None) -> None:
        self.track = track
        self.released_at = released_at
        super().__init__(
            f"Final grades for {track} have already been released",
            details={
                "track": track,
                "released_at": released_at.isoformat() if released_at else None,
            },
        )


class NotActiveError(PortalError):
    """Grade release attempted while no grade_release window is Active for the track."""

    code = "ERR_WINDOW_NOT_ACTIVE"

    def __init__(self, track: str) -> None:
        self.track = track
        super().__init__(
            f"No grade_release window is currently active for {track}",
            details={"track": track},
        )
