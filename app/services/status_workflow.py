"""
Status Workflow Engine - report state machine for admin triage.

RULES:
- respond: active → responded
- resolve: active | responded → resolved (location is erased)
- resolved is terminal for admin actions
- blocked is orthogonal: entered and left only through device block/unblock
"""

from enum import Enum
from typing import Dict, List

from firebase_admin import firestore

from app.core.exceptions import InvalidTransition
from app.models.report import ReportStatus


class AdminAction(str, Enum):
    RESPOND = "respond"
    RESOLVE = "resolve"


class StatusWorkflowEngine:
    """
    Validates admin transitions and builds the per-report field updates.
    """

    # Allowed transitions map: {from_status: [to_status, ...]}
    ALLOWED_TRANSITIONS: Dict[ReportStatus, List[ReportStatus]] = {
        ReportStatus.ACTIVE: [ReportStatus.RESPONDED, ReportStatus.RESOLVED],
        ReportStatus.RESPONDED: [ReportStatus.RESOLVED],
        ReportStatus.RESOLVED: [],
        ReportStatus.BLOCKED: [],
    }

    ACTION_TARGETS: Dict[AdminAction, ReportStatus] = {
        AdminAction.RESPOND: ReportStatus.RESPONDED,
        AdminAction.RESOLVE: ReportStatus.RESOLVED,
    }

    @classmethod
    def is_valid_transition(cls, from_status: str, to_status: str) -> bool:
        """
        Check if a status transition is allowed for an admin action.
        Unlike a no-op update, staying in the same status is NOT a transition.
        """
        try:
            from_enum = ReportStatus(from_status)
            to_enum = ReportStatus(to_status)
        except ValueError:
            return False
        return to_enum in cls.ALLOWED_TRANSITIONS.get(from_enum, [])

    @classmethod
    def get_allowed_transitions(cls, current_status: str) -> List[str]:
        try:
            current_enum = ReportStatus(current_status)
        except ValueError:
            return []
        return [status.value for status in cls.ALLOWED_TRANSITIONS.get(current_enum, [])]

    @classmethod
    def target_status(cls, action: AdminAction) -> ReportStatus:
        return cls.ACTION_TARGETS[AdminAction(action)]

    @classmethod
    def is_eligible(cls, current_status: str, action: AdminAction) -> bool:
        """Whether a report in current_status takes part in an action's cascade."""
        return cls.is_valid_transition(current_status, cls.target_status(action).value)

    @classmethod
    def validate_action(cls, current_status: str, action: AdminAction) -> ReportStatus:
        """
        Validate an admin action against the report's current status.

        Returns:
            The status the report moves to

        Raises:
            InvalidTransition: If the action is not allowed from current_status
        """
        new_status = cls.target_status(action)
        if not cls.is_valid_transition(current_status, new_status.value):
            allowed = cls.get_allowed_transitions(current_status)
            raise InvalidTransition(
                f"Invalid status transition: {current_status} → {new_status.value}. "
                f"Allowed transitions from {current_status}: {allowed}"
            )
        return new_status

    @classmethod
    def build_update(cls, report: Dict, action: AdminAction, now: int) -> Dict:
        """
        Field updates applying an action to one report.

        respond always records response_time; resolve keeps an existing
        response_time and erases the location.
        """
        new_status = cls.target_status(action)
        update = {"status": new_status.value}

        if new_status == ReportStatus.RESOLVED:
            if report.get("response_time") is None:
                update["response_time"] = now - report.get("timestamp", now)
            update["location"] = firestore.DELETE_FIELD
        else:
            update["response_time"] = now - report.get("timestamp", now)

        return update
