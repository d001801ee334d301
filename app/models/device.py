"""
Pydantic models for reporting devices.

A device ID is a browser-generated token used as a soft moderation key.
It does NOT identify or authenticate a person.
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional

from app.models.base import BaseResponse
from app.models.report import ReportResponse


class DeviceRecord(BaseModel):
    id: str
    last_report_time: Optional[int] = None
    total_reports: int = 0
    cooldown_until: Optional[int] = None
    is_blocked: bool = False
    blocked_at: Optional[int] = None
    block_reason: Optional[str] = None

    @classmethod
    def from_document(cls, device_id: str, data: Dict) -> "DeviceRecord":
        return cls(
            id=device_id,
            last_report_time=data.get("last_report_time"),
            total_reports=data.get("total_reports") or 0,
            cooldown_until=data.get("cooldown_until"),
            is_blocked=bool(data.get("is_blocked", False)),
            blocked_at=data.get("blocked_at"),
            block_reason=data.get("block_reason"),
        )


class DeviceWithReports(DeviceRecord):
    """Device row for the admin table; total_reports is the live count."""
    reports: List[ReportResponse] = Field(default_factory=list)
    last_report_display: str = "Never"


class DeviceActionResult(BaseResponse):
    device_id: str
    is_blocked: bool
    reports_updated: int = 0
