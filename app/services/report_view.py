"""
Live report view - admin triage over a realtime subscription.

The view owns one watch on the reports collection. Every snapshot rebuilds
the in-memory list (newest first); filters and counts are computed from
that list without querying the store. The view answers queries only once
the first snapshot has arrived; before that it raises ViewNotReady rather
than presenting an empty collection.

Admin actions cascade to every eligible report of the same device and are
written as one atomic batch. Cascades touching more than one report must
be confirmed.
"""

import logging
import threading
from typing import Dict, List, Optional

from google.api_core.exceptions import GoogleAPIError
from pydantic import ValidationError

from app.core.exceptions import ConfirmationRequired, ReportNotFound, StoreWriteFailed, ViewNotReady
from app.core.settings import settings
from app.models.report import (
    EmergencyType,
    ReportResponse,
    ReportStatus,
    CascadeResult,
    categorize_type,
)
from app.services.status_workflow import AdminAction, StatusWorkflowEngine
from app.services.store import REPORTS, BatchTooLarge, ReportStore, get_report_store
from app.utils.time import Clock, now_ms

logger = logging.getLogger(__name__)

ALL = "all"

FILTER_STATUSES = [ReportStatus.ACTIVE, ReportStatus.RESPONDED, ReportStatus.RESOLVED]

CONFIRMATION_PROMPTS = {
    AdminAction.RESPOND: "Mark all active reports from this device as responded?",
    AdminAction.RESOLVE: "Resolve all reports from this device?",
}


class LiveReportView:
    """
    In-memory, subscription-fed list of all reports.
    """

    def __init__(self, store: Optional[ReportStore] = None, clock: Clock = now_ms):
        self.store = store or get_report_store()
        self.clock = clock
        self.workflow = StatusWorkflowEngine()
        self._lock = threading.Lock()
        self._reports: List[Dict] = []
        self._watch = None
        self._ready = threading.Event()

    # Subscription lifecycle

    def start(self, timeout: Optional[float] = None) -> bool:
        """
        Subscribe to reports and wait for the first snapshot.

        Returns:
            True if the first snapshot arrived within timeout
        """
        if self._watch is None:
            self._ready.clear()
            self._watch = self.store.subscribe(REPORTS, self._on_snapshot)
            logger.info("Report view subscribed to reports")

        wait = settings.VIEW_READY_TIMEOUT_SECONDS if timeout is None else timeout
        if not self._ready.wait(wait):
            logger.warning(f"Report view got no snapshot within {wait}s")
            return False
        return True

    def stop(self) -> None:
        if self._watch is None:
            return
        self._watch.unsubscribe()
        self._watch = None
        self._ready.clear()
        logger.info("Report view unsubscribed from reports")

    @property
    def is_running(self) -> bool:
        return self._watch is not None

    @property
    def is_ready(self) -> bool:
        return self.is_running and self._ready.is_set()

    def _on_snapshot(self, docs, changes, read_time) -> None:
        reports = []
        for doc in docs or []:
            data = doc.to_dict() or {}
            try:
                ReportResponse.from_document(doc.id, data)
            except ValidationError as e:
                logger.warning(f"Skipping malformed report {doc.id}: {e.error_count()} invalid field(s)")
                continue
            data["id"] = doc.id
            reports.append(data)
        reports.sort(key=lambda r: r.get("timestamp", 0), reverse=True)

        with self._lock:
            self._reports = reports
        self._ready.set()
        logger.debug(f"Report view rebuilt with {len(reports)} reports")

    def _snapshot(self) -> List[Dict]:
        if not self.is_ready:
            raise ViewNotReady("report")
        with self._lock:
            return list(self._reports)

    # Queries

    def get_reports(self, status: str = ALL, report_type: str = ALL) -> List[ReportResponse]:
        """
        Reports matching both filters, newest first.

        Args:
            status: active | responded | resolved | all
            report_type: Fire | Crime | Medical | Accident | Other | all
        """
        results = []
        for report in self._snapshot():
            if status != ALL and report.get("status") != status:
                continue
            if report_type != ALL and categorize_type(report.get("type")).value != report_type:
                continue
            results.append(ReportResponse.from_document(report["id"], report))
        return results

    def get_report(self, report_id: str) -> Optional[Dict]:
        for report in self._snapshot():
            if report["id"] == report_id:
                return report
        return None

    def status_counts(self) -> Dict[str, int]:
        counts = {status.value: 0 for status in FILTER_STATUSES}
        for report in self._snapshot():
            if report.get("status") in counts:
                counts[report["status"]] += 1
        return counts

    def type_counts(self) -> Dict[str, int]:
        counts = {category.value: 0 for category in EmergencyType}
        for report in self._snapshot():
            counts[categorize_type(report.get("type")).value] += 1
        return counts

    def related_reports(self, report_id: str, action: AdminAction) -> List[Dict]:
        """
        Reports an action on report_id would change: the device's reports
        that are eligible for the action, including report_id itself.

        Raises:
            ReportNotFound: report_id is not in the view
            InvalidTransition: the action is not allowed on report_id
        """
        report = self.get_report(report_id)
        if report is None:
            raise ReportNotFound(report_id)

        self.workflow.validate_action(report.get("status", ReportStatus.ACTIVE.value), action)

        device_id = report.get("device_id")
        return [
            r for r in self._snapshot()
            if r.get("device_id") == device_id and self.workflow.is_eligible(r.get("status", ""), action)
        ]

    # Admin actions

    def apply_action(self, report_id: str, action: AdminAction, confirm: bool = False) -> CascadeResult:
        """
        Respond to or resolve a report and, with it, the device's other eligible reports.

        Raises:
            ReportNotFound: Unknown report
            InvalidTransition: Action not allowed from the report's status
            ConfirmationRequired: More than one report affected and confirm is False
            StoreWriteFailed: The batch could not be written
        """
        action = AdminAction(action)
        related = self.related_reports(report_id, action)

        if len(related) > 1 and not confirm:
            raise ConfirmationRequired(CONFIRMATION_PROMPTS[action], count=len(related))

        now = self.clock()
        updates = {
            (REPORTS, r["id"]): self.workflow.build_update(r, action, now)
            for r in related
        }

        device_id = related[0].get("device_id", "") if related else ""
        try:
            self.store.commit_updates(updates)
        except (GoogleAPIError, BatchTooLarge) as e:
            logger.error(f"Failed to {action.value} reports of device {device_id}: {e}")
            raise StoreWriteFailed("Failed to update response", cause=e)

        count = len(related)
        verb = "Marked" if action == AdminAction.RESPOND else "Resolved"
        message = f"{verb} {count} report{'s' if count > 1 else ''} from device {device_id}"
        logger.info(f"✅ {message}")

        return CascadeResult(
            message=message,
            action=action.value,
            device_id=device_id,
            report_ids=[r["id"] for r in related],
        )

    def respond(self, report_id: str, confirm: bool = False) -> CascadeResult:
        return self.apply_action(report_id, AdminAction.RESPOND, confirm)

    def resolve(self, report_id: str, confirm: bool = False) -> CascadeResult:
        return self.apply_action(report_id, AdminAction.RESOLVE, confirm)


# Global view instance (singleton pattern)
_report_view = None


def get_report_view() -> LiveReportView:
    """
    Get or create LiveReportView singleton instance.

    Returns:
        LiveReportView: The global report view (started on app startup)
    """
    global _report_view
    if _report_view is None:
        _report_view = LiveReportView()
    return _report_view
