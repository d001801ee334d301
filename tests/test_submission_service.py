# tests/test_submission_service.py
"""Unit tests for report submission and the per-device cooldown."""

import pytest

from app.core.exceptions import DeviceBlocked, LocationUnavailable, OnCooldown
from app.models.report import Location, ReportCreate
from tests.conftest import COOLDOWN_MS, T0, put_device, read


def make_report(location=Location(lat=14.6, lng=121.0), report_type="Fire"):
    return ReportCreate(type=report_type, description="Smoke from a warehouse", location=location)


class TestCheckCooldown:
    def test_unknown_device_not_on_cooldown(self, submission):
        status = submission.check_cooldown("never-seen")
        assert status.on_cooldown is False
        assert status.remaining_seconds == 0

    def test_on_cooldown_right_after_submission(self, submission):
        submission.submit_report("D", make_report())
        status = submission.check_cooldown("D")
        assert status.on_cooldown is True
        assert status.remaining_seconds == COOLDOWN_MS // 1000

    def test_remaining_seconds_round_up(self, submission, clock):
        submission.submit_report("D", make_report())
        clock.advance(1000)
        status = submission.check_cooldown("D")
        assert (status.on_cooldown, status.remaining_seconds) == (True, 4)
        clock.advance(500)
        assert submission.check_cooldown("D").remaining_seconds == 4

    def test_cooldown_expires(self, submission, clock):
        submission.submit_report("D", make_report())
        clock.advance(COOLDOWN_MS)
        assert submission.check_cooldown("D").on_cooldown is False
        clock.advance(1000)
        status = submission.check_cooldown("D")
        assert (status.on_cooldown, status.remaining_seconds) == (False, 0)

    def test_display_text(self, db, submission):
        put_device(db, "D", cooldown_until=T0 + 65_000)
        assert submission.check_cooldown("D").display == "1m 5s"

    def test_check_has_no_side_effects(self, db, submission):
        submission.check_cooldown("D")
        assert db.collection("devices").document("D").get().exists is False


class TestSubmitReport:
    def test_stores_active_report(self, db, submission):
        result = submission.submit_report("D", make_report())
        stored = read(db, "reports", result.id)
        assert stored == {
            "type": "Fire",
            "description": "Smoke from a warehouse",
            "location": {"lat": 14.6, "lng": 121.0},
            "timestamp": T0,
            "device_id": "D",
            "status": "active",
        }

    def test_creates_device_record(self, db, submission):
        submission.submit_report("D", make_report())
        assert read(db, "devices", "D") == {
            "last_report_time": T0,
            "total_reports": 1,
            "cooldown_until": T0 + COOLDOWN_MS,
            "is_blocked": False,
        }

    def test_counter_increments_across_windows(self, db, submission, clock):
        submission.submit_report("D", make_report())
        clock.advance(COOLDOWN_MS)
        submission.submit_report("D", make_report(report_type="Medical"))
        device = read(db, "devices", "D")
        assert device["total_reports"] == 2
        assert device["last_report_time"] == T0 + COOLDOWN_MS
        assert device["cooldown_until"] == T0 + 2 * COOLDOWN_MS

    def test_rejected_on_cooldown(self, submission, clock):
        submission.submit_report("D", make_report())
        clock.advance(1000)
        with pytest.raises(OnCooldown) as exc_info:
            submission.submit_report("D", make_report())
        assert exc_info.value.wait_minutes == 1
        assert exc_info.value.message == "Please wait 1 minutes before submitting another report."

    def test_wait_minutes_round_up(self, db, submission):
        put_device(db, "D", cooldown_until=T0 + 2 * 60_000 + 1)
        with pytest.raises(OnCooldown) as exc_info:
            submission.submit_report("D", make_report())
        assert exc_info.value.wait_minutes == 3

    def test_blocked_device_rejected_even_off_cooldown(self, db, submission):
        put_device(db, "D", last_report_time=T0 - 60_000, is_blocked=True)
        with pytest.raises(DeviceBlocked):
            submission.submit_report("D", make_report())

    def test_blocked_device_rejected_while_on_cooldown(self, db, submission):
        put_device(db, "D", is_blocked=True)
        with pytest.raises(DeviceBlocked):
            submission.submit_report("D", make_report())

    def test_rejection_writes_nothing(self, db, submission):
        put_device(db, "D", is_blocked=True)
        with pytest.raises(DeviceBlocked):
            submission.submit_report("D", make_report())
        assert list(db.collection("reports").stream()) == []

    def test_missing_location(self, submission):
        with pytest.raises(LocationUnavailable):
            submission.submit_report("D", make_report(location=None))

    def test_untyped_report_displays_as_other(self, submission):
        result = submission.submit_report("D", ReportCreate(location=Location(lat=1.0, lng=2.0)))
        assert result.type == ""
        assert result.category.value == "Other"

    def test_keeps_block_metadata_on_upsert(self, db, submission):
        put_device(db, "D", last_report_time=T0 - 60_000, block_reason="spam")
        submission.submit_report("D", make_report())
        assert read(db, "devices", "D")["block_reason"] == "spam"
