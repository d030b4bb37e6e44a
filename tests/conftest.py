"""
Shared pytest fixtures for the Academic Term Portal test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - now: fixed reference instant for status assertions
    - make_window: insert a Window directly, bypassing prerequisite checks
    - open_term: every workflow step for one track, all currently Active
"""

from datetime import datetime, timedelta, timezone

import pytest

from portal import create_app
from portal.models import db as _db
from portal.models.window import Window
from portal.services.workflow_graph import WORKFLOW_SEQUENCE


NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    application = create_app("testing")
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def make_window():
    """Insert a window row as-is; the validator is not involved."""

    def _make(phase, track, sub_stage=None, start=None, end=None, created_by="tester"):
        start = start or NOW - timedelta(hours=1)
        end = end or NOW + timedelta(hours=1)
        w = Window(
            phase=getattr(phase, "value", phase),
            track=getattr(track, "value", track),
            sub_stage=getattr(sub_stage, "value", sub_stage),
            start_at=start,
            end_at=end,
            created_by=created_by,
        )
        _db.session.add(w)
        _db.session.commit()
        return w

    return _make


@pytest.fixture()
def open_term(make_window):
    """Create every workflow step for a track, each Active at NOW."""

    def _open(track, start=None, end=None):
        return [
            make_window(step.phase, track, step.sub_stage, start=start, end=end)
            for step in WORKFLOW_SEQUENCE
        ]

    return _open
