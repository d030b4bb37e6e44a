"""
Academic Term Portal
Tests — temporal status resolution.
"""

from datetime import datetime, timedelta, timezone

from portal.services.window_status import WindowStatus, compute_statuses, resolve_status

START = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)
END = datetime(2026, 1, 20, 17, 0, tzinfo=timezone.utc)


class TestResolveStatus:
    def test_before_start_is_upcoming(self):
        assert resolve_status(START, END, START - timedelta(seconds=1)) is WindowStatus.UPCOMING

    def test_start_instant_is_active(self):
        assert resolve_status(START, END, START) is WindowStatus.ACTIVE

    def test_end_instant_is_active(self):
        assert resolve_status(START, END, END) is WindowStatus.ACTIVE

    def test_after_end_is_ended(self):
        assert resolve_status(START, END, END + timedelta(microseconds=1)) is WindowStatus.ENDED

    def test_naive_storage_values_are_utc(self):
        naive_start = START.replace(tzinfo=None)
        naive_end = END.replace(tzinfo=None)
        assert resolve_status(naive_start, naive_end, START) is WindowStatus.ACTIVE

    def test_offset_now_is_compared_as_instant(self):
        ist = timezone(timedelta(hours=5, minutes=30))
        # 14:29 IST is 08:59 UTC, one minute before START
        now = datetime(2026, 1, 10, 14, 29, tzinfo=ist)
        assert resolve_status(START, END, now) is WindowStatus.UPCOMING

    def test_exactly_one_status_for_any_instant(self):
        for offset in (-2, -1, 0, 5, 10, 11):
            now = START + timedelta(days=offset)
            statuses = {
                WindowStatus.UPCOMING: now < START,
                WindowStatus.ACTIVE: START <= now <= END,
                WindowStatus.ENDED: now > END,
            }
            assert [s for s, hit in statuses.items() if hit] == [resolve_status(START, END, now)]


class TestComputeStatuses:
    def test_batch_uses_one_instant(self, make_window, now):
        past = make_window("proposal", "IDP", start=now - timedelta(days=3), end=now - timedelta(days=1))
        live = make_window("proposal", "UROP")
        later = make_window("proposal", "CAPSTONE", start=now + timedelta(days=1), end=now + timedelta(days=2))

        statuses = compute_statuses([past, live, later], now)

        assert statuses == {
            past.id: WindowStatus.ENDED,
            live.id: WindowStatus.ACTIVE,
            later.id: WindowStatus.UPCOMING,
        }

    def test_window_to_dict_reports_status(self, make_window, now):
        w = make_window("proposal", "IDP")
        data = w.to_dict(now)
        assert data["status"] == "active"
        assert data["start"].endswith("+00:00")
        assert data["sub_stage"] is None
