"""
Pydantic models for emergency reports.
These models handle validation for report submission and responses.
"""

from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from enum import Enum

from app.models.base import BaseResponse


class EmergencyType(str, Enum):
    """
    Recognized emergency categories.
    Any other free-form type is shown, filtered and counted as OTHER.
    """
    FIRE = "Fire"
    CRIME = "Crime"
    MEDICAL = "Medical"
    ACCIDENT = "Accident"
    OTHER = "Other"


STANDARD_TYPES = [EmergencyType.FIRE, EmergencyType.CRIME, EmergencyType.MEDICAL, EmergencyType.ACCIDENT]


def categorize_type(report_type: Optional[str]) -> EmergencyType:
    """Map a stored free-form type onto its display category."""
    for standard in STANDARD_TYPES:
        if report_type == standard.value:
            return standard
    return EmergencyType.OTHER


class ReportStatus(str, Enum):
    """
    Report lifecycle.
    ACTIVE → RESPONDED → RESOLVED via admin actions;
    BLOCKED is entered and left only through device block/unblock.
    """
    ACTIVE = "active"
    RESPONDED = "responded"
    RESOLVED = "resolved"
    BLOCKED = "blocked"


class Location(BaseModel):
    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lng: float = Field(..., ge=-180, le=180, description="Longitude")


class ReportCreate(BaseModel):
    """
    Model for creating a new report (incoming POST request).
    Type and description are optional; the location is required at submit time
    but may be missing when the browser could not resolve it.
    """
    type: Optional[str] = Field(None, max_length=100, description="Emergency type (menu value or free text)")
    description: Optional[str] = Field(None, max_length=1000, description="What is happening")
    location: Optional[Location] = Field(None, description="Device geolocation")

    class Config:
        json_schema_extra = {
            "example": {
                "type": "Fire",
                "description": "Smoke coming out of a warehouse",
                "location": {"lat": 14.6, "lng": 121.0},
            }
        }
        extra = "ignore"


class ReportResponse(BaseModel):
    """Stored report as returned by the API."""
    id: str = Field(..., description="Firestore document ID")
    type: Optional[str] = None
    category: EmergencyType = Field(default=EmergencyType.OTHER, description="Display category derived from type")
    description: Optional[str] = None
    location: Optional[Location] = Field(None, description="Cleared once the report is resolved")
    timestamp: int = Field(..., description="Creation time, epoch milliseconds")
    device_id: str
    status: ReportStatus = ReportStatus.ACTIVE
    response_time: Optional[int] = Field(None, description="Milliseconds from creation to responded/resolved")

    @classmethod
    def from_document(cls, report_id: str, data: Dict) -> "ReportResponse":
        return cls(
            id=report_id,
            type=data.get("type"),
            category=categorize_type(data.get("type")),
            description=data.get("description"),
            location=data.get("location"),
            timestamp=data.get("timestamp", 0),
            device_id=data.get("device_id", ""),
            status=data.get("status", ReportStatus.ACTIVE.value),
            response_time=data.get("response_time"),
        )


class CooldownStatus(BaseModel):
    on_cooldown: bool
    remaining_seconds: int = 0
    display: str = Field("0m 0s", description="Remaining time as shown on the submit button")


class ReportCounts(BaseModel):
    """Counts behind the admin status and type filter buttons."""
    status: Dict[str, int]
    type: Dict[str, int]


class ActionRequest(BaseModel):
    confirm: bool = Field(False, description="Required when the action affects more than one report")


class CascadeResult(BaseResponse):
    action: str
    device_id: str
    report_ids: List[str] = Field(default_factory=list)
