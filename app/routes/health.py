"""
Health check endpoints.
Used for deployment readiness checks and to confirm the live views are subscribed.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from app.config.firebase import get_db
from app.core.settings import settings
from app.services.device_view import get_device_view
from app.services.report_view import get_report_view


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running, with whether each view has its first snapshot.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "views": {
            "reports": get_report_view().is_ready,
            "devices": get_device_view().is_ready,
        },
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/db")
async def database_health():
    """
    Database connectivity check.
    Lists collections to verify the Firestore client can reach the backend.
    """
    try:
        db = get_db()
        collections = [c.id for c in db.collections()]

        return {
            "status": "healthy",
            "database": "mock" if settings.USE_MOCK_DB else "firestore",
            "connected": True,
            "collections": collections,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(e)}"
        )
