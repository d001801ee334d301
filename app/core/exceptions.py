"""
Domain errors for report submission and admin moderation.

Services raise these; routes translate them into HTTP responses.
The message of each error is the user-visible text.
"""

from typing import Optional


class EmergencyReportError(Exception):
    """Base class for all domain errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DeviceBlocked(EmergencyReportError):
    """Submission rejected: the device was blocked by an admin."""

    def __init__(self):
        super().__init__("This device has been blocked from submitting reports.")


class OnCooldown(EmergencyReportError):
    """Submission rejected: the device submitted too recently."""

    def __init__(self, wait_minutes: int):
        super().__init__(f"Please wait {wait_minutes} minutes before submitting another report.")
        self.wait_minutes = wait_minutes


class LocationUnavailable(EmergencyReportError):
    """Submission rejected: no device geolocation was provided."""

    def __init__(self):
        super().__init__("Unable to get your location. Please enable location services.")


class StoreWriteFailed(EmergencyReportError):
    """An admin mutation could not be written. State is unchanged."""

    def __init__(self, message: str, cause: Optional[Exception] = None):
        super().__init__(message)
        self.cause = cause


class ReportNotFound(EmergencyReportError):
    def __init__(self, report_id: str):
        super().__init__(f"Report {report_id} not found")
        self.report_id = report_id


class DeviceNotFound(EmergencyReportError):
    def __init__(self, device_id: str):
        super().__init__(f"Device {device_id} not found")
        self.device_id = device_id


class InvalidTransition(EmergencyReportError):
    """Admin action not allowed from the report's current status."""


class ConfirmationRequired(EmergencyReportError):
    """A cascade touches more than one report and was not confirmed."""

    def __init__(self, message: str, count: int):
        super().__init__(message)
        self.count = count


class ViewNotReady(EmergencyReportError):
    """A live view is not subscribed or has not received its first snapshot."""

    def __init__(self, view_name: str):
        super().__init__(f"Live {view_name} view is not ready. Please try again shortly.")
        self.view_name = view_name
