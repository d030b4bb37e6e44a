"""
Academic Term Portal
Tests — window and grade release HTTP API.

Covers:
    1. POST /windows in common, individual and bulk-semester modes
    2. Listing, status projection, active/upcoming lookups
    3. Edit and delete
    4. Grade release endpoints
    5. Error payloads
"""

from datetime import datetime, timedelta, timezone

import pytest

from portal.utils.helpers import utcnow

BASE = "/api/v1"
START = "2030-01-07T09:00:00Z"
END = "2030-01-14T09:00:00Z"
HEADERS = {"X-User-Id": "coordinator@uni.edu"}


def _post_windows(client, body, headers=HEADERS):
    return client.post(f"{BASE}/windows", json=body, headers=headers)


def _open_proposal(client, track="IDP"):
    res = _post_windows(client, {
        "date_mode": "common", "phases": ["proposal"], "tracks": [track],
        "start": START, "end": END,
    })
    assert res.status_code == 201
    return res.get_json()["created_ids"][0]


# ═══════════════════════════════════════════════════════════════════════════
#  Creation
# ═══════════════════════════════════════════════════════════════════════════

class TestCreateCommon:
    def test_all_created_is_201(self, client):
        res = _post_windows(client, {
            "date_mode": "common",
            "phases": ["proposal"],
            "tracks": ["IDP", "UROP"],
            "start": START,
            "end": END,
        })
        assert res.status_code == 201
        body = res.get_json()
        assert body["success_count"] == 2
        assert body["failure_count"] == 0
        assert len(body["created_ids"]) == 2

    def test_actor_recorded_from_header(self, client):
        wid = _open_proposal(client)
        res = client.get(f"{BASE}/windows/{wid}")
        assert res.get_json()["created_by"] == "coordinator@uni.edu"

    def test_actor_falls_back_to_body_then_system(self, client):
        res = _post_windows(client, {
            "date_mode": "common", "phases": ["proposal"], "tracks": ["IDP"],
            "start": START, "end": END, "created_by": "dean",
        }, headers={})
        wid = res.get_json()["created_ids"][0]
        assert client.get(f"{BASE}/windows/{wid}").get_json()["created_by"] == "dean"

        res = _post_windows(client, {
            "date_mode": "common", "phases": ["proposal"], "tracks": ["UROP"],
            "start": START, "end": END,
        }, headers={})
        wid = res.get_json()["created_ids"][0]
        assert client.get(f"{BASE}/windows/{wid}").get_json()["created_by"] == "system"

    def test_single_sub_stage_field(self, client):
        _open_proposal(client)
        _post_windows(client, {"date_mode": "common", "phases": ["application"], "tracks": ["IDP"],
                               "start": START, "end": END})
        res = _post_windows(client, {
            "date_mode": "common", "phases": ["submission"], "tracks": ["IDP"],
            "sub_stage": "CLA-1", "start": START, "end": END,
        })
        assert res.status_code == 201

    def test_unknown_track_is_400(self, client):
        res = _post_windows(client, {
            "date_mode": "common", "phases": ["proposal"], "tracks": ["PHD"],
            "start": START, "end": END,
        })
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "tracks" in body["details"]

    def test_end_before_start_is_400(self, client):
        res = _post_windows(client, {
            "date_mode": "common", "phases": ["proposal"], "tracks": ["IDP"],
            "start": END, "end": START,
        })
        assert res.status_code == 400
        assert "end" in res.get_json()["details"]

    def test_unknown_date_mode(self, client):
        res = _post_windows(client, {"date_mode": "weekly"})
        assert res.status_code == 400
        assert "date_mode" in res.get_json()["details"]


class TestCreateIndividual:
    def test_partial_success_is_207(self, client):
        res = _post_windows(client, {
            "date_mode": "individual",
            "selections": [
                {"phase": "application", "track": "CAPSTONE", "start": START, "end": END},
                {"phase": "proposal", "track": "UROP", "start": START, "end": END},
            ],
        })
        assert res.status_code == 207
        body = res.get_json()
        assert body["success_count"] == 1
        assert body["failure_count"] == 1
        error = body["results"][0]["error"]
        assert error["code"] == "ERR_PREREQUISITE_MISSING"
        assert error["details"]["missing"] == [{"phase": "proposal", "sub_stage": None}]

    def test_nothing_created_is_422(self, client):
        res = _post_windows(client, {
            "date_mode": "individual",
            "selections": [{"phase": "application", "track": "IDP", "start": START, "end": END}],
        })
        assert res.status_code == 422
        assert res.get_json()["created_ids"] == []

    def test_empty_selections_is_400(self, client):
        res = _post_windows(client, {"date_mode": "individual", "selections": []})
        assert res.status_code == 400


class TestCreateBulkSemester:
    def test_sequential_term(self, client):
        res = _post_windows(client, {
            "date_mode": "bulk-semester",
            "track": "UROP",
            "cadence": "sequential",
            "start": START,
            "phase_duration_hours": 72,
            "gap_hours": 12,
        })
        assert res.status_code == 201
        body = res.get_json()
        assert body["success_count"] == 11
        assert body["halted"] is False

        listing = client.get(f"{BASE}/windows?track=UROP").get_json()
        assert [w["phase"] for w in listing["items"]][:3] == ["proposal", "application", "submission"]
        assert listing["items"][-1]["phase"] == "grade_release"

    def test_explicit_incomplete_term_is_400(self, client):
        steps = []
        day = datetime(2030, 1, 1, tzinfo=timezone.utc)
        for phase, stage in [("proposal", None), ("application", None)]:
            steps.append({"phase": phase, "sub_stage": stage,
                          "start": day.isoformat(), "end": (day + timedelta(days=5)).isoformat()})
        res = _post_windows(client, {
            "date_mode": "bulk-semester", "track": "IDP", "cadence": "explicit", "steps": steps,
        })
        assert res.status_code == 400
        assert len(res.get_json()["details"]["missing"]) == 9

    def test_zero_phase_duration_is_400(self, client):
        res = _post_windows(client, {
            "date_mode": "bulk-semester", "track": "IDP", "cadence": "sequential",
            "start": START, "phase_duration_hours": 0,
        })
        assert res.status_code == 400
        assert "phase_duration_hours" in res.get_json()["details"]

    def test_oversized_phase_duration_is_400(self, client):
        res = _post_windows(client, {
            "date_mode": "bulk-semester", "track": "IDP", "cadence": "sequential",
            "start": "2030-01-01T00:00:00Z", "phase_duration_hours": 1e7, "gap_hours": 0,
        })
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_INVALID"
        assert "phase_duration_hours" in res.get_json()["details"]


# ═══════════════════════════════════════════════════════════════════════════
#  Reads
# ═══════════════════════════════════════════════════════════════════════════

class TestReadWindows:
    def test_get_unknown_is_404(self, client):
        res = client.get(f"{BASE}/windows/4242")
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"

    def test_statuses_with_explicit_now(self, client, make_window, now):
        past = make_window("proposal", "IDP", start=now - timedelta(days=2), end=now - timedelta(days=1))
        live = make_window("proposal", "UROP")
        res = client.get(f"{BASE}/windows/statuses", query_string={"now": now.isoformat()})
        assert res.status_code == 200
        statuses = res.get_json()["statuses"]
        assert statuses == {str(past.id): "ended", str(live.id): "active"}

    def test_list_filter_by_status(self, client, make_window, now):
        make_window("proposal", "IDP", start=now - timedelta(days=2), end=now - timedelta(days=1))
        live = make_window("proposal", "UROP")
        res = client.get(f"{BASE}/windows", query_string={"status": "active", "now": now.isoformat()})
        items = res.get_json()["items"]
        assert [w["id"] for w in items] == [live.id]

    def test_list_bad_status_filter(self, client):
        res = client.get(f"{BASE}/windows?status=open")
        assert res.status_code == 400

    def test_active_lookup(self, client, make_window):
        current = utcnow()
        w = make_window("submission", "IDP", "CLA-2",
                        start=current - timedelta(hours=1), end=current + timedelta(hours=1))
        res = client.get(f"{BASE}/windows/active?phase=submission&track=IDP&sub_stage=CLA-2")
        body = res.get_json()
        assert body["is_active"] is True
        assert body["window"]["id"] == w.id

        res = client.get(f"{BASE}/windows/active?phase=submission&track=IDP&sub_stage=CLA-3")
        assert res.get_json() == {"window": None, "is_active": False}

    def test_upcoming_respects_limit(self, client):
        _post_windows(client, {
            "date_mode": "bulk-semester", "track": "IDP", "cadence": "sequential",
            "start": START, "phase_duration_hours": 24, "gap_hours": 0,
        })
        res = client.get(f"{BASE}/windows/upcoming?track=IDP&limit=3")
        items = res.get_json()["items"]
        assert [w["phase"] for w in items] == ["proposal", "application", "submission"]

    def test_availability_and_workflow(self, client):
        _open_proposal(client)
        res = client.get(f"{BASE}/windows/availability?track=IDP")
        steps = res.get_json()["steps"]
        assert steps[1]["phase"] == "application"
        assert steps[1]["available"] is True

        graph = client.get(f"{BASE}/windows/workflow").get_json()["steps"]
        assert len(graph) == 11

    def test_availability_requires_track(self, client):
        res = client.get(f"{BASE}/windows/availability")
        assert res.status_code == 400


# ═══════════════════════════════════════════════════════════════════════════
#  Edit / delete
# ═══════════════════════════════════════════════════════════════════════════

class TestEditWindows:
    def test_update_interval(self, client):
        wid = _open_proposal(client)
        res = client.put(f"{BASE}/windows/{wid}", json={"end": "2030-02-01T09:00:00Z"})
        assert res.status_code == 200
        assert res.get_json()["end"] == "2030-02-01T09:00:00+00:00"

    def test_update_ended_window_is_409(self, client, make_window):
        w = make_window("proposal", "IDP",
                        start=datetime(2020, 1, 1, tzinfo=timezone.utc),
                        end=datetime(2020, 1, 8, tzinfo=timezone.utc))
        res = client.put(f"{BASE}/windows/{w.id}", json={"end": "2031-01-01T00:00:00Z"})
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_WINDOW_IMMUTABLE"

    def test_update_identity_is_400(self, client):
        wid = _open_proposal(client)
        res = client.put(f"{BASE}/windows/{wid}", json={"phase": "application"})
        assert res.status_code == 400

    def test_delete(self, client):
        wid = _open_proposal(client)
        assert client.delete(f"{BASE}/windows/{wid}").status_code == 200
        assert client.get(f"{BASE}/windows/{wid}").status_code == 404


# ═══════════════════════════════════════════════════════════════════════════
#  Grade release
# ═══════════════════════════════════════════════════════════════════════════

class TestGradeReleaseApi:
    @pytest.fixture()
    def live_term(self, open_term):
        current = utcnow()
        open_term("IDP", start=current - timedelta(hours=1), end=current + timedelta(hours=1))

    def test_release_then_conflict(self, client, live_term):
        res = client.post(f"{BASE}/grades/release", json={"track": "IDP"}, headers=HEADERS)
        assert res.status_code == 201
        body = res.get_json()
        assert body["released"] is True
        assert body["record"]["released_by"] == "coordinator@uni.edu"

        res = client.post(f"{BASE}/grades/release", json={"track": "IDP"})
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_ALREADY_RELEASED"

        state = client.get(f"{BASE}/grades/release/IDP").get_json()
        assert state["released"] is True

    def test_release_without_active_window(self, client):
        res = client.post(f"{BASE}/grades/release", json={"track": "UROP"})
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_WINDOW_NOT_ACTIVE"

    def test_release_unknown_track(self, client):
        res = client.post(f"{BASE}/grades/release", json={"track": "MBA"})
        assert res.status_code == 400

    def test_open_release_window(self, client, live_term):
        res = client.get(f"{BASE}/grades/release/IDP/window")
        assert res.status_code == 200
        body = res.get_json()
        assert body["phase"] == "grade_release"
        assert body["status"] == "active"

    def test_closed_release_window_is_423(self, client, live_term):
        res = client.get(f"{BASE}/grades/release/UROP/window")
        assert res.status_code == 423
        assert res.get_json()["code"] == "ERR_WINDOW_CLOSED"


class TestAppPlumbing:
    def test_request_id_headers(self, client):
        res = client.get(f"{BASE}/health/ready", headers={"X-Request-ID": "abc123"})
        assert res.status_code == 200
        assert res.headers["X-Request-ID"] == "abc123"
        assert "X-Request-Duration-Ms" in res.headers

    def test_live_probe(self, client):
        res = client.get(f"{BASE}/health/live")
        assert res.status_code == 200
        assert res.get_json()["checks"]["database"]["status"] == "ok"

    def test_unknown_route_is_json_404(self, client):
        res = client.get(f"{BASE}/nope")
        assert res.status_code == 404
        assert res.get_json()["error"] == "Not found"
