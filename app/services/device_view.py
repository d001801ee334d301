"""
Live device view - admin moderation of reporting devices.

Subscribes to both the devices and the reports collection and joins them
in memory. Reports are indexed by device_id and the index is maintained
incrementally from document change events, so a device row never has to
scan the whole report collection. Queries raise ViewNotReady until both
subscriptions have delivered their first snapshot.

Block/unblock write the device flag and the report status sweep in ONE
atomic batch whenever it fits under Firestore's batch limit. Larger sweeps
commit the device flag first and then the reports in limit-sized chunks;
reconcile() repairs anything such a sweep leaves half-applied.
"""

import logging
import threading
import time
from collections import defaultdict
from typing import Dict, List, Optional, Set

from firebase_admin import firestore
from google.api_core.exceptions import GoogleAPIError
from pydantic import ValidationError

from app.core.exceptions import DeviceNotFound, StoreWriteFailed, ViewNotReady
from app.core.settings import settings
from app.models.device import DeviceActionResult, DeviceRecord, DeviceWithReports
from app.models.report import ReportResponse, ReportStatus
from app.services.store import DEVICES, MAX_BATCH_WRITES, REPORTS, BatchTooLarge, ReportStore, get_report_store
from app.utils.time import Clock, format_timestamp, now_ms

logger = logging.getLogger(__name__)


class LiveDeviceView:
    """
    In-memory join of devices and their reports, fed by two subscriptions.
    """

    def __init__(self, store: Optional[ReportStore] = None, clock: Clock = now_ms):
        self.store = store or get_report_store()
        self.clock = clock
        self._lock = threading.Lock()
        self._devices: Dict[str, DeviceRecord] = {}
        self._reports: Dict[str, ReportResponse] = {}
        self._index: Dict[str, Set[str]] = defaultdict(set)
        self._watches = []
        self._devices_ready = threading.Event()
        self._reports_ready = threading.Event()

    # Subscription lifecycle

    def start(self, timeout: Optional[float] = None) -> bool:
        """
        Subscribe to devices and reports and wait for the first snapshot of each.

        Returns:
            True if both first snapshots arrived within timeout
        """
        if not self._watches:
            self._devices_ready.clear()
            self._reports_ready.clear()
            self._watches = [
                self.store.subscribe(DEVICES, self._on_devices_snapshot),
                self.store.subscribe(REPORTS, self._on_reports_snapshot),
            ]
            logger.info("Device view subscribed to devices and reports")

        wait = settings.VIEW_READY_TIMEOUT_SECONDS if timeout is None else timeout
        deadline = time.monotonic() + wait
        for event in (self._devices_ready, self._reports_ready):
            if not event.wait(max(0.0, deadline - time.monotonic())):
                logger.warning(f"Device view got no initial snapshot within {wait}s")
                return False
        return True

    def stop(self) -> None:
        for watch in self._watches:
            watch.unsubscribe()
        if self._watches:
            logger.info("Device view unsubscribed")
        self._watches = []
        self._devices_ready.clear()
        self._reports_ready.clear()
        with self._lock:
            self._reports = {}
            self._index = defaultdict(set)

    @property
    def is_running(self) -> bool:
        return bool(self._watches)

    @property
    def is_ready(self) -> bool:
        return self.is_running and self._devices_ready.is_set() and self._reports_ready.is_set()

    def _on_devices_snapshot(self, docs, changes, read_time) -> None:
        devices = {}
        for doc in docs or []:
            try:
                devices[doc.id] = DeviceRecord.from_document(doc.id, doc.to_dict() or {})
            except ValidationError as e:
                logger.warning(f"Skipping malformed device {doc.id}: {e.error_count()} invalid field(s)")
        with self._lock:
            self._devices = devices
        self._devices_ready.set()

    def _on_reports_snapshot(self, docs, changes, read_time) -> None:
        with self._lock:
            for change in changes or []:
                doc = change.document
                self._drop_report(doc.id)
                if change.type.name == "REMOVED":
                    continue
                try:
                    report = ReportResponse.from_document(doc.id, doc.to_dict() or {})
                except ValidationError as e:
                    logger.warning(f"Skipping malformed report {doc.id}: {e.error_count()} invalid field(s)")
                    continue
                self._reports[doc.id] = report
                self._index[report.device_id].add(doc.id)
        self._reports_ready.set()

    def _drop_report(self, report_id: str) -> None:
        previous = self._reports.pop(report_id, None)
        if previous is None:
            return
        report_ids = self._index.get(previous.device_id)
        if report_ids is not None:
            report_ids.discard(report_id)
            if not report_ids:
                del self._index[previous.device_id]

    # Queries

    def _ensure_ready(self) -> None:
        if not self.is_ready:
            raise ViewNotReady("device")

    def _device_reports(self, device_id: str) -> List[ReportResponse]:
        reports = [self._reports[report_id] for report_id in self._index.get(device_id, ())]
        reports.sort(key=lambda r: r.timestamp, reverse=True)
        return reports

    def _build_row(self, record: DeviceRecord) -> DeviceWithReports:
        reports = self._device_reports(record.id)
        return DeviceWithReports(
            **record.model_dump(exclude={"total_reports"}),
            total_reports=len(reports),
            reports=reports,
            last_report_display=format_timestamp(record.last_report_time),
        )

    def get_devices(self) -> List[DeviceWithReports]:
        """All devices with their live reports, most recently active first."""
        self._ensure_ready()
        with self._lock:
            rows = [self._build_row(record) for record in self._devices.values()]
        rows.sort(key=lambda d: d.last_report_time or 0, reverse=True)
        return rows

    def get_device(self, device_id: str) -> Optional[DeviceWithReports]:
        self._ensure_ready()
        with self._lock:
            record = self._devices.get(device_id)
            if record is None:
                return None
            return self._build_row(record)

    # Moderation

    def _commit_moderation(self, device_id: str, device_fields: Dict, report_updates: Dict) -> None:
        """
        Write a device flag change together with its report sweep.

        One batch when everything fits under MAX_BATCH_WRITES. Otherwise the
        device flag is committed first, so submissions are gated at once,
        and the reports follow in MAX_BATCH_WRITES-sized chunks.
        """
        device_update = {(DEVICES, device_id): device_fields}
        if 1 + len(report_updates) <= MAX_BATCH_WRITES:
            self.store.commit_updates({**device_update, **report_updates})
            return

        logger.warning(
            f"⚠️ Sweeping {len(report_updates)} reports of device {device_id} in chunks; "
            f"the device flag and reports are not written atomically"
        )
        self.store.commit_updates(device_update)
        items = list(report_updates.items())
        for start in range(0, len(items), MAX_BATCH_WRITES):
            self.store.commit_updates(dict(items[start:start + MAX_BATCH_WRITES]))

    def block(self, device_id: str) -> DeviceActionResult:
        """
        Block a device and set every one of its reports to blocked.

        Raises:
            DeviceNotFound: Unknown device
            StoreWriteFailed: The device flag or report sweep could not be written
        """
        try:
            if self.store.get_device(device_id) is None:
                raise DeviceNotFound(device_id)

            reports = self.store.list_device_reports(device_id)
            self._commit_moderation(
                device_id,
                {"is_blocked": True, "blocked_at": self.clock()},
                {(REPORTS, report["id"]): {"status": ReportStatus.BLOCKED.value} for report in reports},
            )
        except (GoogleAPIError, BatchTooLarge) as e:
            logger.error(f"Error blocking device {device_id}: {e}")
            raise StoreWriteFailed("Failed to block device", cause=e)

        logger.info(f"✅ Blocked device {device_id} and {len(reports)} report(s)")
        return DeviceActionResult(
            message="Device blocked successfully",
            device_id=device_id,
            is_blocked=True,
            reports_updated=len(reports),
        )

    def unblock(self, device_id: str) -> DeviceActionResult:
        """
        Unblock a device and return its blocked reports to active.
        Reports in any other status are left as they are.

        Raises:
            DeviceNotFound: Unknown device
            StoreWriteFailed: The device flag or report sweep could not be written
        """
        try:
            if self.store.get_device(device_id) is None:
                raise DeviceNotFound(device_id)

            blocked = [
                report for report in self.store.list_device_reports(device_id)
                if report.get("status") == ReportStatus.BLOCKED.value
            ]
            self._commit_moderation(
                device_id,
                {
                    "is_blocked": False,
                    "blocked_at": firestore.DELETE_FIELD,
                    "block_reason": firestore.DELETE_FIELD,
                },
                {(REPORTS, report["id"]): {"status": ReportStatus.ACTIVE.value} for report in blocked},
            )
        except (GoogleAPIError, BatchTooLarge) as e:
            logger.error(f"Error unblocking device {device_id}: {e}")
            raise StoreWriteFailed("Failed to unblock device", cause=e)

        logger.info(f"✅ Unblocked device {device_id} and restored {len(blocked)} report(s)")
        return DeviceActionResult(
            message="Device unblocked successfully",
            device_id=device_id,
            is_blocked=False,
            reports_updated=len(blocked),
        )

    def reconcile(self) -> int:
        """
        Align report statuses with current device block flags.

        Reports of blocked devices become blocked; blocked reports of known,
        unblocked devices become active. Reports are independent of each
        other here, so large sweeps are committed in several batches.

        Returns:
            Number of reports updated
        """
        try:
            devices = {device["id"]: device for device in self.store.list_devices()}
            updates = {}
            for report in self.store.list_reports():
                device = devices.get(report.get("device_id"))
                if device is None:
                    continue
                status = report.get("status")
                if device.get("is_blocked") and status != ReportStatus.BLOCKED.value:
                    updates[(REPORTS, report["id"])] = {"status": ReportStatus.BLOCKED.value}
                elif not device.get("is_blocked") and status == ReportStatus.BLOCKED.value:
                    updates[(REPORTS, report["id"])] = {"status": ReportStatus.ACTIVE.value}

            items = list(updates.items())
            for start in range(0, len(items), MAX_BATCH_WRITES):
                self.store.commit_updates(dict(items[start:start + MAX_BATCH_WRITES]))
        except GoogleAPIError as e:
            logger.error(f"Block reconciliation failed: {e}")
            raise StoreWriteFailed("Failed to reconcile device blocks", cause=e)

        if updates:
            logger.warning(f"Reconciled {len(updates)} report(s) with device block flags")
        return len(updates)


# Global view instance (singleton pattern)
_device_view = None


def get_device_view() -> LiveDeviceView:
    """
    Get or create LiveDeviceView singleton instance.

    Returns:
        LiveDeviceView: The global device view (started on app startup)
    """
    global _device_view
    if _device_view is None:
        _device_view = LiveDeviceView()
    return _device_view
