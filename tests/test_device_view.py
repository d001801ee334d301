# tests/test_device_view.py
"""Unit tests for the live device view: report join, block and unblock."""

import pytest
from unittest.mock import patch
from google.api_core.exceptions import GoogleAPIError

from app.core.exceptions import DeviceBlocked, DeviceNotFound, StoreWriteFailed, ViewNotReady
from app.models.report import Location, ReportCreate
from app.services.device_view import LiveDeviceView
from app.services.store import MAX_BATCH_WRITES
from tests.conftest import T0, put_device, put_report, read


class TestJoin:
    def test_sorted_by_last_report_time(self, db, devices_view):
        put_device(db, "old", last_report_time=T0)
        put_device(db, "new", last_report_time=T0 + 5000)
        put_device(db, "never", last_report_time=None)
        assert [d.id for d in devices_view.get_devices()] == ["new", "old", "never"]

    def test_live_count_overrides_stored_counter(self, db, devices_view):
        put_device(db, "D", total_reports=10)
        put_report(db, "r1", "D", timestamp=T0)
        put_report(db, "r2", "D", timestamp=T0 + 1)
        device = devices_view.get_device("D")
        assert device.total_reports == 2
        assert [r.id for r in device.reports] == ["r2", "r1"]

    def test_index_follows_report_changes(self, db, devices_view):
        put_device(db, "A")
        put_device(db, "B")
        put_report(db, "r1", "A")
        assert [r.id for r in devices_view.get_device("A").reports] == ["r1"]

        db.collection("reports").document("r1").update({"device_id": "B"})
        assert devices_view.get_device("A").reports == []
        assert [r.id for r in devices_view.get_device("B").reports] == ["r1"]

        db.collection("reports").document("r1").delete()
        assert devices_view.get_device("B").total_reports == 0

    def test_device_without_reports(self, db, devices_view):
        put_device(db, "D")
        device = devices_view.get_device("D")
        assert device.reports == []
        assert device.total_reports == 0

    def test_last_report_display(self, db, devices_view):
        put_device(db, "D", last_report_time=None)
        assert devices_view.get_device("D").last_report_display == "Never"

    def test_unknown_device(self, devices_view):
        assert devices_view.get_device("nope") is None


class TestBlock:
    def test_block_sweeps_every_report(self, db, devices_view, clock):
        put_device(db, "D")
        put_report(db, "r1", "D", status="active")
        put_report(db, "r2", "D", status="resolved")
        put_report(db, "other", "E", status="active")

        result = devices_view.block("D")

        assert result.message == "Device blocked successfully"
        assert result.reports_updated == 2
        assert read(db, "reports", "r1")["status"] == "blocked"
        assert read(db, "reports", "r2")["status"] == "blocked"
        assert read(db, "reports", "other")["status"] == "active"
        device = read(db, "devices", "D")
        assert device["is_blocked"] is True
        assert device["blocked_at"] == clock()

    def test_view_shows_blocked_device(self, db, devices_view):
        put_device(db, "D")
        devices_view.block("D")
        assert devices_view.get_device("D").is_blocked is True

    def test_blocked_device_cannot_submit(self, db, devices_view, submission, clock):
        submission.submit_report("D", ReportCreate(type="Fire", location=Location(lat=14.6, lng=121.0)))
        devices_view.block("D")
        clock.advance(60_000)
        with pytest.raises(DeviceBlocked):
            submission.submit_report("D", ReportCreate(type="Fire", location=Location(lat=14.6, lng=121.0)))

    def test_unknown_device(self, devices_view):
        with pytest.raises(DeviceNotFound):
            devices_view.block("ghost")

    def test_write_failure_leaves_state_unchanged(self, db, devices_view, store):
        put_device(db, "D")
        put_report(db, "r1", "D")
        with patch.object(store, "commit_updates", side_effect=GoogleAPIError("unavailable")):
            with pytest.raises(StoreWriteFailed) as exc_info:
                devices_view.block("D")
        assert exc_info.value.message == "Failed to block device"
        assert read(db, "devices", "D")["is_blocked"] is False
        assert read(db, "reports", "r1")["status"] == "active"


class TestUnblock:
    def test_restores_blocked_reports_only(self, db, devices_view):
        put_device(db, "D")
        put_report(db, "r1", "D", status="active")
        devices_view.block("D")
        put_report(db, "r2", "D", status="resolved")

        result = devices_view.unblock("D")

        assert result.message == "Device unblocked successfully"
        assert result.reports_updated == 1
        assert read(db, "reports", "r1")["status"] == "active"
        assert read(db, "reports", "r2")["status"] == "resolved"

    def test_clears_block_metadata(self, db, devices_view):
        put_device(db, "D", is_blocked=True, blocked_at=T0, block_reason="spam")
        devices_view.unblock("D")
        device = read(db, "devices", "D")
        assert device["is_blocked"] is False
        assert "blocked_at" not in device
        assert "block_reason" not in device

    def test_block_then_unblock_reactivates_swept_reports(self, db, devices_view):
        put_device(db, "D")
        put_report(db, "r1", "D", status="active")
        put_report(db, "r2", "D", status="resolved")
        devices_view.block("D")
        devices_view.unblock("D")
        assert read(db, "reports", "r1")["status"] == "active"
        assert read(db, "reports", "r2")["status"] == "active"

    def test_write_failure(self, db, devices_view, store):
        put_device(db, "D", is_blocked=True)
        with patch.object(store, "commit_updates", side_effect=GoogleAPIError("unavailable")):
            with pytest.raises(StoreWriteFailed) as exc_info:
                devices_view.unblock("D")
        assert exc_info.value.message == "Failed to unblock device"


class TestReconcile:
    def test_aligns_reports_with_block_flags(self, db, devices_view):
        put_device(db, "blocked", is_blocked=True)
        put_device(db, "free")
        put_report(db, "r1", "blocked", status="active")
        put_report(db, "r2", "free", status="blocked")
        put_report(db, "r3", "free", status="resolved")
        put_report(db, "orphan", "unknown", status="blocked")

        assert devices_view.reconcile() == 2
        assert read(db, "reports", "r1")["status"] == "blocked"
        assert read(db, "reports", "r2")["status"] == "active"
        assert read(db, "reports", "r3")["status"] == "resolved"
        assert read(db, "reports", "orphan")["status"] == "blocked"

    def test_nothing_to_do(self, db, devices_view):
        put_device(db, "D")
        put_report(db, "r1", "D")
        assert devices_view.reconcile() == 0


@pytest.fixture
def unstarted_view(store, clock):
    return LiveDeviceView(store=store, clock=clock)


def put_reports(db, device_id, count, status="active"):
    for i in range(count):
        put_report(db, f"{device_id}-{i}", device_id, status=status, timestamp=T0 + i)


class TestLargeSweeps:
    def test_block_fits_one_batch_up_to_the_limit(self, db, unstarted_view, store):
        put_device(db, "D")
        put_reports(db, "D", MAX_BATCH_WRITES - 1)
        with patch.object(store, "commit_updates", wraps=store.commit_updates) as commit:
            result = unstarted_view.block("D")
        assert commit.call_count == 1
        assert result.reports_updated == MAX_BATCH_WRITES - 1

    def test_block_device_with_500_reports(self, db, unstarted_view, store):
        put_device(db, "SPAM")
        put_reports(db, "SPAM", 500)
        with patch.object(store, "commit_updates", wraps=store.commit_updates) as commit:
            result = unstarted_view.block("SPAM")

        assert result.is_blocked is True
        assert result.reports_updated == 500
        assert read(db, "devices", "SPAM")["is_blocked"] is True
        assert all(read(db, "reports", f"SPAM-{i}")["status"] == "blocked" for i in range(500))
        # Device flag first, then the reports
        first_batch = commit.call_args_list[0].args[0]
        assert list(first_batch) == [("devices", "SPAM")]
        assert all(len(call.args[0]) <= MAX_BATCH_WRITES for call in commit.call_args_list)

    def test_unblock_device_with_1200_blocked_reports(self, db, unstarted_view, store):
        put_device(db, "SPAM", is_blocked=True, blocked_at=T0)
        put_reports(db, "SPAM", 1200, status="blocked")
        with patch.object(store, "commit_updates", wraps=store.commit_updates) as commit:
            result = unstarted_view.unblock("SPAM")

        assert result.reports_updated == 1200
        assert commit.call_count == 4
        assert "blocked_at" not in read(db, "devices", "SPAM")
        assert all(read(db, "reports", f"SPAM-{i}")["status"] == "active" for i in range(1200))

    def test_failed_report_chunk_is_repaired_by_reconcile(self, db, unstarted_view, store):
        put_device(db, "SPAM")
        put_reports(db, "SPAM", 600)
        real_commit = store.commit_updates
        calls = []

        def flaky_commit(updates):
            calls.append(len(updates))
            if len(calls) == 3:
                raise GoogleAPIError("unavailable")
            return real_commit(updates)

        with patch.object(store, "commit_updates", side_effect=flaky_commit):
            with pytest.raises(StoreWriteFailed):
                unstarted_view.block("SPAM")

        assert read(db, "devices", "SPAM")["is_blocked"] is True
        assert read(db, "reports", "SPAM-599")["status"] == "active"
        assert unstarted_view.reconcile() == 100
        assert all(read(db, "reports", f"SPAM-{i}")["status"] == "blocked" for i in range(600))


class TestReadiness:
    def test_queries_refused_before_start(self, unstarted_view):
        with pytest.raises(ViewNotReady):
            unstarted_view.get_devices()
        with pytest.raises(ViewNotReady):
            unstarted_view.get_device("D")

    def test_ready_after_start(self, db, unstarted_view):
        put_device(db, "D")
        assert unstarted_view.start() is True
        assert unstarted_view.is_ready
        assert [d.id for d in unstarted_view.get_devices()] == ["D"]
        unstarted_view.stop()
        assert not unstarted_view.is_ready

    def test_restart_rebuilds_index(self, db, devices_view):
        put_device(db, "D")
        put_report(db, "r1", "D")
        devices_view.stop()
        db.collection("reports").document("r1").delete()
        put_report(db, "r2", "D")
        devices_view.start()
        assert [r.id for r in devices_view.get_device("D").reports] == ["r2"]


class TestMalformedDocuments:
    def test_report_with_unknown_status_is_skipped(self, db, devices_view):
        put_device(db, "D")
        put_report(db, "r1", "D")
        put_report(db, "odd", "D", status="in_progress")
        device = devices_view.get_device("D")
        assert [r.id for r in device.reports] == ["r1"]
        assert device.total_reports == 1

    def test_report_turning_malformed_leaves_the_index(self, db, devices_view):
        put_device(db, "D")
        put_report(db, "r1", "D")
        db.collection("reports").document("r1").update({"status": "in_progress"})
        assert devices_view.get_device("D").reports == []

    def test_device_with_bad_counter_is_skipped(self, db, devices_view):
        put_device(db, "ok")
        put_device(db, "bad", total_reports="many")
        assert [d.id for d in devices_view.get_devices()] == ["ok"]
