"""
Admin endpoints - report triage, device moderation and the incident map.

Actions on reports cascade to every eligible report of the same device.
A cascade that changes more than one report answers 409 until it is
resent with {"confirm": true}.

All write failures are reported as 503 with a short message the console
shows as a transient notification; nothing is retried. Reads from a live
view that is not subscribed, or still waiting for its first snapshot, are
503 as well.
"""

import logging
from enum import Enum
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query, status

from app.core.exceptions import (
    ConfirmationRequired,
    DeviceNotFound,
    InvalidTransition,
    ReportNotFound,
    StoreWriteFailed,
    ViewNotReady,
)
from app.models.device import DeviceActionResult, DeviceWithReports
from app.models.map import MapMarker
from app.models.report import ActionRequest, CascadeResult, ReportCounts, ReportResponse
from app.services.device_view import get_device_view
from app.services.map_service import build_map_markers
from app.services.report_view import get_report_view
from app.services.status_workflow import AdminAction

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Admin"])


class StatusFilter(str, Enum):
    ACTIVE = "active"
    RESPONDED = "responded"
    RESOLVED = "resolved"
    ALL = "all"


class TypeFilter(str, Enum):
    FIRE = "Fire"
    CRIME = "Crime"
    MEDICAL = "Medical"
    ACCIDENT = "Accident"
    OTHER = "Other"
    ALL = "all"


# Reports

@router.get("/reports", response_model=List[ReportResponse])
async def get_reports(
    status_filter: StatusFilter = Query(StatusFilter.ALL, alias="status", description="Filter by status"),
    type_filter: TypeFilter = Query(TypeFilter.ALL, alias="type", description="Filter by emergency type"),
):
    """Live report list, newest first, with both filters applied."""
    try:
        return get_report_view().get_reports(status=status_filter.value, report_type=type_filter.value)
    except ViewNotReady as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


@router.get("/reports/counts", response_model=ReportCounts)
async def get_report_counts():
    """Counts for the status and type filter buttons."""
    view = get_report_view()
    try:
        return ReportCounts(status=view.status_counts(), type=view.type_counts())
    except ViewNotReady as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


def _run_action(report_id: str, action: AdminAction, request: Optional[ActionRequest]) -> CascadeResult:
    confirm = request.confirm if request else False
    try:
        return get_report_view().apply_action(report_id, action, confirm=confirm)
    except ReportNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except InvalidTransition as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except ConfirmationRequired as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": e.message, "count": e.count},
        )
    except (StoreWriteFailed, ViewNotReady) as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


@router.post("/reports/{report_id}/respond", response_model=CascadeResult)
async def respond_to_report(report_id: str, request: Optional[ActionRequest] = None):
    """Mark the report, and every other active report of its device, as responded."""
    return _run_action(report_id, AdminAction.RESPOND, request)


@router.post("/reports/{report_id}/resolve", response_model=CascadeResult)
async def resolve_report(report_id: str, request: Optional[ActionRequest] = None):
    """Resolve the report and every other open report of its device; locations are erased."""
    return _run_action(report_id, AdminAction.RESOLVE, request)


# Devices

@router.get("/devices", response_model=List[DeviceWithReports])
async def get_devices():
    try:
        return get_device_view().get_devices()
    except ViewNotReady as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


@router.post("/devices/reconcile")
async def reconcile_devices():
    """Sweep report statuses against current device block flags."""
    try:
        updated = get_device_view().reconcile()
    except StoreWriteFailed as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    return {"success": True, "reports_updated": updated}


@router.get("/devices/{device_id}", response_model=DeviceWithReports)
async def get_device(device_id: str):
    """A device and its reports (the console's "View" modal)."""
    try:
        device = get_device_view().get_device(device_id)
    except ViewNotReady as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    if device is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Device {device_id} not found")
    return device


@router.post("/devices/{device_id}/block", response_model=DeviceActionResult)
async def block_device(device_id: str):
    try:
        return get_device_view().block(device_id)
    except DeviceNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except StoreWriteFailed as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


@router.post("/devices/{device_id}/unblock", response_model=DeviceActionResult)
async def unblock_device(device_id: str):
    try:
        return get_device_view().unblock(device_id)
    except DeviceNotFound as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    except StoreWriteFailed as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)


# Map

@router.get("/map/markers", response_model=List[MapMarker])
async def get_map_markers():
    """Markers for every report that still has a location."""
    try:
        reports = get_report_view().get_reports()
    except ViewNotReady as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)
    return build_map_markers(reports)
