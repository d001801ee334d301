"""
Submission Service - public report intake with per-device abuse controls.

Policy, checked in this order:
1. A report needs a device location
2. Blocked devices are rejected (regardless of cooldown)
3. Devices inside their cooldown window are rejected
4. Otherwise the report is stored and the device cooldown restarted

The device read and the two writes are NOT a transaction: two near-simultaneous
submissions from one device can both pass the cooldown check. The cooldown is
an abuse deterrent, not a hard rate limit.
"""

import logging
import math
from typing import Optional

from app.core.exceptions import DeviceBlocked, LocationUnavailable, OnCooldown
from app.core.settings import settings
from app.models.report import CooldownStatus, ReportCreate, ReportResponse, ReportStatus
from app.services.store import ReportStore, get_report_store
from app.utils.time import Clock, format_cooldown, now_ms

logger = logging.getLogger(__name__)


class SubmissionService:
    """
    Service for citizen report submission.
    """

    def __init__(self, store: Optional[ReportStore] = None, clock: Clock = now_ms, cooldown_ms: Optional[int] = None):
        self.store = store or get_report_store()
        self.clock = clock
        self.cooldown_ms = settings.cooldown_ms if cooldown_ms is None else cooldown_ms

    def check_cooldown(self, device_id: str) -> CooldownStatus:
        """
        Report whether the device must still wait before submitting.
        Pure read; unknown devices are never on cooldown.
        """
        device = self.store.get_device(device_id)
        now = self.clock()

        if device is not None:
            cooldown_until = device.get("cooldown_until") or 0
            if now < cooldown_until:
                remaining_seconds = math.ceil((cooldown_until - now) / 1000)
                return CooldownStatus(
                    on_cooldown=True,
                    remaining_seconds=remaining_seconds,
                    display=format_cooldown(remaining_seconds),
                )

        return CooldownStatus(on_cooldown=False, remaining_seconds=0, display=format_cooldown(0))

    def submit_report(self, device_id: str, report_data: ReportCreate) -> ReportResponse:
        """
        Store a new report for the device and restart its cooldown.

        Args:
            device_id: Submitting device identifier
            report_data: Validated form data

        Returns:
            ReportResponse: The stored report with its generated ID

        Raises:
            LocationUnavailable: No location in the submission
            DeviceBlocked: The device is blocked
            OnCooldown: The device submitted less than one cooldown ago
        """
        if report_data.location is None:
            raise LocationUnavailable()

        device = self.store.get_device(device_id)
        now = self.clock()

        if device is not None:
            if device.get("is_blocked"):
                logger.info(f"Rejected report from blocked device {device_id}")
                raise DeviceBlocked()

            cooldown_until = device.get("cooldown_until") or 0
            if now < cooldown_until:
                wait_minutes = math.ceil((cooldown_until - now) / 60000)
                logger.info(f"Rejected report from device {device_id}: on cooldown for {cooldown_until - now}ms")
                raise OnCooldown(wait_minutes)

        report_doc = {
            "type": report_data.type or "",
            "description": report_data.description or "",
            "location": report_data.location.model_dump(),
            "timestamp": now,
            "device_id": device_id,
            "status": ReportStatus.ACTIVE.value,
        }
        report_id = self.store.add_report(report_doc)

        previous_total = (device or {}).get("total_reports") or 0
        self.store.upsert_device(device_id, {
            "last_report_time": now,
            "total_reports": previous_total + 1,
            "cooldown_until": now + self.cooldown_ms,
            "is_blocked": bool((device or {}).get("is_blocked", False)),
        })

        logger.info(f"✅ Stored report {report_id} from device {device_id} (type={report_doc['type'] or 'unspecified'})")
        return ReportResponse.from_document(report_id, report_doc)


# Global service instance (singleton pattern)
_submission_service = None


def get_submission_service() -> SubmissionService:
    """
    Get or create SubmissionService singleton instance.

    Returns:
        SubmissionService: The global submission service instance
    """
    global _submission_service
    if _submission_service is None:
        _submission_service = SubmissionService()
    return _submission_service
