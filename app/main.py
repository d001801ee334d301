"""
Emergency Report Hub - FastAPI Application Entry Point

A citizen emergency-reporting backend: a public submission endpoint with
per-device abuse controls, and an admin API to triage reports on a map
and in list views and to moderate devices.

DESIGN PRINCIPLES:
- The device ID is a soft moderation key, never authentication
- Multi-report status changes are written atomically
- Admin write failures are reported, never retried
"""

import asyncio
import logging
import sys
import traceback
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from app.core.settings import settings
from app.config.firebase import initialize_firestore
from app.routes import admin, health, reports
from app.services.device_view import get_device_view
from app.services.report_view import get_report_view

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Citizen emergency reports with admin triage and device moderation",
    debug=settings.DEBUG
)


# Global exception handler to catch ALL exceptions
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch all unhandled exceptions and log them with full traceback."""
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write("🔥 GLOBAL EXCEPTION HANDLER CAUGHT EXCEPTION\n")
    sys.stderr.write(f"Path: {request.url.path}\n")
    sys.stderr.write(f"Method: {request.method}\n")
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write(traceback.format_exc())
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.flush()

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": f"Internal server error: {str(exc)}"}
    )


# Pydantic validation error handler
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Catch Pydantic validation errors and log them."""
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.write("🔥 VALIDATION ERROR HANDLER\n")
    sys.stderr.write(f"Path: {request.url.path}\n")
    sys.stderr.write(f"Method: {request.method}\n")
    sys.stderr.write(f"Errors: {exc.errors()}\n")
    sys.stderr.write("=" * 80 + "\n")
    sys.stderr.flush()

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"detail": exc.errors()}
    )


# Credentials are needed for the device cookie, so origins must be explicit (no "*").
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Application lifecycle events
@app.on_event("startup")
async def startup_event():
    """
    Initialize services on application startup.
    Firestore connection, then the live report and device views.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    try:
        initialize_firestore()
    except Exception as e:
        logger.warning(f"Firestore initialization failed: {e}")
        logger.warning("The app will start but admin views answer 503 until the database is reachable.")
        return

    device_view = get_device_view()
    if settings.RECONCILE_BLOCKS_ON_STARTUP:
        try:
            device_view.reconcile()
        except Exception as e:
            logger.error(f"[STARTUP] Block reconciliation failed: {e}")

    # Wait for first snapshots off the event loop; a view that is still
    # empty answers 503 until its snapshot arrives
    loop = asyncio.get_event_loop()
    for view in (get_report_view(), device_view):
        ready = await loop.run_in_executor(None, view.start)
        if not ready:
            logger.warning(f"[STARTUP] {type(view).__name__} is not ready yet; admin reads will return 503")


@app.on_event("shutdown")
async def shutdown_event():
    """
    Tear down live subscriptions so no snapshot callbacks outlive the app.
    """
    get_report_view().stop()
    get_device_view().stop()
    logger.info(f"Shutting down {settings.APP_NAME}")


# Include routers
app.include_router(health.router)
app.include_router(reports.router)
app.include_router(admin.router)


# Root endpoint
@app.get("/")
async def root():
    """
    Root endpoint - API information.
    """
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health",
        "submit": "/reports",
        "admin": "/admin/reports"
    }
