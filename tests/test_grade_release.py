"""
Academic Term Portal
Tests — grade release latch.
"""

from datetime import timedelta

import pytest

from portal.core.exceptions import AlreadyReleasedError, NotActiveError, PrerequisiteMissingError
from portal.models.window import ReleaseRecord
from portal.services import grade_release, window_validator
from portal.services.workflow_graph import Phase, Track


class TestReleaseGrades:
    def test_release_once(self, open_term, now):
        open_term(Track.IDP)
        record = grade_release.release_grades(Track.IDP, released_by="registrar", now=now)
        assert record.track == "IDP"
        assert record.released_by == "registrar"
        assert record.window_id is not None

    def test_second_release_is_rejected(self, open_term, now):
        open_term(Track.IDP)
        first = grade_release.release_grades("IDP", now=now).to_dict()

        with pytest.raises(AlreadyReleasedError) as exc:
            grade_release.release_grades("IDP", now=now + timedelta(minutes=5))

        assert exc.value.track == "IDP"
        assert ReleaseRecord.query.count() == 1
        assert ReleaseRecord.query.first().to_dict() == first

    def test_latch_is_per_track(self, open_term, now):
        open_term(Track.IDP)
        open_term(Track.UROP)
        grade_release.release_grades("IDP", now=now)
        record = grade_release.release_grades("UROP", now=now)
        assert record.track == "UROP"

    def test_no_active_window(self, open_term, now):
        open_term(Track.IDP, start=now + timedelta(days=1), end=now + timedelta(days=2))
        with pytest.raises(NotActiveError):
            grade_release.release_grades("IDP", now=now)
        assert ReleaseRecord.query.count() == 0

    def test_ended_window(self, open_term, now):
        open_term(Track.IDP)
        with pytest.raises(NotActiveError):
            grade_release.release_grades("IDP", now=now + timedelta(hours=2))

    def test_grade_release_window_alone_cannot_be_created(self, now):
        request = window_validator.prepare_request({
            "phase": "grade_release", "track": "UROP",
            "start": now - timedelta(hours=1), "end": now + timedelta(hours=1),
        })
        with pytest.raises(PrerequisiteMissingError) as exc:
            window_validator.create_window(request)
        assert len(exc.value.missing) == 10

    def test_orphan_grade_release_window_cannot_release(self, make_window, now):
        # Inserted around the validator, so its prerequisites never existed
        make_window(Phase.GRADE_RELEASE, Track.UROP)
        with pytest.raises(PrerequisiteMissingError):
            grade_release.release_grades("UROP", now=now)
        assert ReleaseRecord.query.count() == 0


class TestReleaseStatus:
    def test_before_release(self, open_term, now):
        open_term(Track.CAPSTONE)
        state = grade_release.release_status("CAPSTONE", now=now)
        assert state["released"] is False
        assert state["window_active"] is True
        assert state["can_release"] is True

    def test_release_survives_window_end(self, open_term, now):
        open_term(Track.CAPSTONE)
        grade_release.release_grades("CAPSTONE", now=now)
        state = grade_release.release_status("CAPSTONE", now=now + timedelta(days=30))
        assert state["released"] is True
        assert state["window_active"] is False
        assert state["can_release"] is False
        assert state["record"]["track"] == "CAPSTONE"
