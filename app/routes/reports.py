"""
Report endpoints - public emergency report submission.

The device identifier travels in a cookie issued on first contact.
"""

import logging
from fastapi import APIRouter, Depends, HTTPException, status

from app.core.exceptions import DeviceBlocked, LocationUnavailable, OnCooldown
from app.models.report import CooldownStatus, EmergencyType, ReportCreate, ReportResponse
from app.services.submission_service import get_submission_service
from app.utils.device import get_device_id

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get("/types")
async def get_report_types():
    """Emergency types offered by the submission form."""
    return {"types": [t.value for t in EmergencyType]}


@router.get("/cooldown", response_model=CooldownStatus)
async def get_cooldown(device_id: str = Depends(get_device_id)):
    """
    Cooldown state for the calling device.
    The form polls this to disable the submit button and show the countdown.
    """
    try:
        return get_submission_service().check_cooldown(device_id)
    except Exception as e:
        logger.error(f"❌ GET /reports/cooldown failed for device {device_id}: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to check cooldown: {str(e)}"
        )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ReportResponse)
async def submit_report(report: ReportCreate, device_id: str = Depends(get_device_id)):
    """
    Submit a new emergency report.

    This endpoint:
    1. Rejects submissions without a location
    2. Rejects blocked devices and devices on cooldown
    3. Stores the report and restarts the device cooldown

    Returns the created report with generated ID.
    """
    try:
        logger.info(f"📝 POST /reports - device={device_id}, type={report.type}")
        result = get_submission_service().submit_report(device_id, report)
        logger.info(f"✅ Report created successfully: {result.id}")
        return result

    except LocationUnavailable as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except DeviceBlocked as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=e.message)
    except OnCooldown as e:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=e.message)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"❌ POST /reports - Report creation failed: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to submit report. Please try again."
        )
