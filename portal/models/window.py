"""
Academic Term Portal
Workflow window models.

Models:
    - Window: a time interval during which a (phase, track, sub_stage)
      combination is open for action
    - ReleaseRecord: one-way per-track latch marking final grades released

Status (upcoming / active / ended) is always derived on read from the
interval and a caller-supplied ``now``. ``materialized_status`` is only a
cache maintained by the background reconciler for consumers that filter
on a stored column; core logic never trusts it.
"""

from datetime import datetime, timezone

from portal.models import db
from portal.services.window_status import resolve_status
from portal.services.workflow_graph import Phase, SubStage, Track, WindowKey
from portal.utils.helpers import as_utc


def _utcnow():
    return datetime.now(timezone.utc)


class Window(db.Model):
    """
    A scheduled workflow window for one track.

    Identity fields (phase, track, sub_stage) and provenance (created_by,
    created_at) are immutable; only the interval may be edited, and only
    while the window has not ended.
    """

    __tablename__ = "windows"
    __table_args__ = (
        db.CheckConstraint("end_at > start_at", name="ck_windows_end_after_start"),
        db.Index("ix_windows_identity", "phase", "track", "sub_stage"),
        db.Index("ix_windows_interval", "start_at", "end_at"),
    )

    id = db.Column(db.Integer, primary_key=True)
    phase = db.Column(db.String(20), nullable=False,
                      comment="proposal | application | submission | assessment | grade_release")
    track = db.Column(db.String(20), nullable=False, index=True,
                      comment="IDP | UROP | CAPSTONE")
    sub_stage = db.Column(db.String(20), nullable=True,
                          comment="CLA-1 | CLA-2 | CLA-3 | External; submission/assessment only")
    start_at = db.Column(db.DateTime(timezone=True), nullable=False)
    end_at = db.Column(db.DateTime(timezone=True), nullable=False)

    created_by = db.Column(db.String(150), nullable=False, default="system")
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    # Reconciler cache
    materialized_status = db.Column(db.String(20), nullable=True,
                                    comment="Last status written by reconciler")
    status_synced_at = db.Column(db.DateTime(timezone=True), nullable=True)

    @property
    def key(self) -> WindowKey:
        return WindowKey(
            Phase(self.phase),
            Track(self.track),
            SubStage(self.sub_stage) if self.sub_stage else None,
        )

    @property
    def starts(self):
        return as_utc(self.start_at)

    @property
    def ends(self):
        return as_utc(self.end_at)

    def status_at(self, now):
        return resolve_status(self.start_at, self.end_at, now)

    def to_dict(self, now=None):
        now = now or _utcnow()
        return {
            "id": self.id,
            "phase": self.phase,
            "track": self.track,
            "sub_stage": self.sub_stage,
            "start": self.starts.isoformat() if self.start_at else None,
            "end": self.ends.isoformat() if self.end_at else None,
            "status": self.status_at(now).value,
            "created_by": self.created_by,
            "created_at": as_utc(self.created_at).isoformat() if self.created_at else None,
            "updated_at": as_utc(self.updated_at).isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        stage = f"/{self.sub_stage}" if self.sub_stage else ""
        return f"<Window {self.id} {self.track}:{self.phase}{stage}>"


class ReleaseRecord(db.Model):
    """
    Persisted grade-release latch, one per track.

    Business rules:
    - Created the first time a release succeeds; never updated or deleted
      by normal operation.
    - The unique constraint on ``track`` makes a concurrent second release
      fail at commit time instead of silently writing twice.
    - Release state is never inferred from window status; a window can end
      while the release stays in effect.
    """

    __tablename__ = "release_records"

    id = db.Column(db.Integer, primary_key=True)
    track = db.Column(db.String(20), nullable=False, unique=True)
    released_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    released_by = db.Column(db.String(150), nullable=False, default="system")
    window_id = db.Column(
        db.Integer,
        db.ForeignKey("windows.id", ondelete="SET NULL"),
        nullable=True,
        comment="grade_release window that was active at release time",
    )

    def to_dict(self):
        return {
            "id": self.id,
            "track": self.track,
            "released_at": as_utc(self.released_at).isoformat() if self.released_at else None,
            "released_by": self.released_by,
            "window_id": self.window_id,
        }

    def __repr__(self):
        return f"<ReleaseRecord {self.track}>"
