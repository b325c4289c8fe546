"""
Workflow notifications for leave requests.

Every method is called after the change it announces has been committed,
and none of them raise.
"""

from typing import Iterable, List, Optional

from hostel_outing.core.logging import get_logger
from hostel_outing.models.base.enums import (
    ApplicationType,
    LeaveRequestStatus,
    NotificationType,
    PrincipalDecision,
    StaffRole,
)
from hostel_outing.models.leave.leave_request import LeaveRequest
from hostel_outing.schemas.directory.profiles import StaffProfile, StudentProfile
from hostel_outing.schemas.notification.notification import NotificationPayload
from hostel_outing.services.base.notification_dispatcher import DispatchReport, NotificationDispatcher
from hostel_outing.services.leave.course_scope_resolver import CourseScopeResolver
from hostel_outing.utils.date_utils import TimeWindow, default_time_window

logger = get_logger(__name__)

DATE_FORMAT = "%d %b %Y"


class LeaveNotifier:
    """Builds and dispatches the notification for each workflow event."""

    def __init__(
        self,
        dispatcher: NotificationDispatcher,
        scope_resolver: CourseScopeResolver,
        time_window: Optional[TimeWindow] = None,
    ):
        self.dispatcher = dispatcher
        self.scope_resolver = scope_resolver
        self.time_window = time_window or default_time_window()

    def describe_period(self, request: LeaveRequest) -> str:
        window = self.time_window
        if request.application_type == ApplicationType.LEAVE:
            start = window.local_date(request.start_date)
            end = window.local_date(request.end_date)
            return f"{start:{DATE_FORMAT}} to {end:{DATE_FORMAT}}"
        if request.application_type == ApplicationType.PERMISSION:
            return f"{request.permission_date:{DATE_FORMAT}} ({request.out_time}-{request.in_time})"
        return f"{request.stay_date:{DATE_FORMAT}}"

    # -------------------------------------------------------------------------
    # Events
    # -------------------------------------------------------------------------

    def request_created(self, request: LeaveRequest, student: StudentProfile) -> Optional[DispatchReport]:
        """Announce requests that skip OTP verification to their first approver."""
        if request.application_type == ApplicationType.STAY_IN_HOSTEL:
            recipients = self._ids(self.scope_resolver.wardens_for(student)) + self._ids(
                self.scope_resolver.principals_for(student)
            )
            payload = NotificationPayload(
                title="New Stay in Hostel Request",
                message=(
                    f"{student.name} has requested to stay in hostel on {self.describe_period(request)}. "
                    f"Reason: {request.reason}"
                ),
                related_id=request.id,
                sender_id=student.id,
            )
            return self._send(recipients, payload)

        if request.status == LeaveRequestStatus.PENDING_PRINCIPAL_APPROVAL:
            return self.ready_for_principal(request, student)
        return None

    def ready_for_principal(self, request: LeaveRequest, student: StudentProfile) -> DispatchReport:
        payload = NotificationPayload(
            title="Leave Request Ready for Approval",
            message=(
                f"{student.name}'s {request.application_type.value} request for "
                f"{self.describe_period(request)} is ready for your approval"
            ),
            related_id=request.id,
            sender_id=request.warden_verified_by or student.id,
        )
        return self._send(self._ids(self.scope_resolver.principals_for(student)), payload)

    def decision(self, request: LeaveRequest, actor: StaffProfile, approved: bool) -> DispatchReport:
        """Approval or rejection of a Leave or Permission request, or a warden's rejection."""
        outcome = "approved" if approved else "rejected"
        by_role = "principal" if actor.role == StaffRole.PRINCIPAL else "warden"
        message = f"Your {request.application_type.value} request has been {outcome} by the {by_role}"
        if not approved and request.rejection_reason:
            message += f". Reason: {request.rejection_reason}"
        payload = NotificationPayload(
            title=f"Leave Request {outcome.capitalize()}",
            message=message,
            related_id=request.id,
            sender_id=actor.id,
        )
        return self._send([request.student_id], payload)

    def warden_recommended(self, request: LeaveRequest, student: StudentProfile, actor: StaffProfile) -> DispatchReport:
        message = (
            f"Warden {actor.name} recommended {student.name}'s stay in hostel request "
            f"for {self.describe_period(request)}"
        )
        if request.warden_comment:
            message += f". Comment: {request.warden_comment}"
        payload = NotificationPayload(
            title="Warden Recommendation for Stay in Hostel",
            message=message,
            related_id=request.id,
            sender_id=actor.id,
        )
        return self._send(self._ids(self.scope_resolver.principals_for(student)), payload)

    def warden_not_recommended(self, request: LeaveRequest, actor: StaffProfile) -> DispatchReport:
        payload = NotificationPayload(
            title="Stay in Hostel Request Rejected",
            message=(
                f"Your stay in hostel request for {self.describe_period(request)} "
                f"was not recommended by the warden. {request.rejection_reason}"
            ),
            notification_type=NotificationType.STAY_IN_HOSTEL_DECISION,
            related_id=request.id,
            sender_id=actor.id,
        )
        return self._send([request.student_id], payload)

    def stay_decision(self, request: LeaveRequest, actor: StaffProfile) -> DispatchReport:
        decision = request.principal_decision or PrincipalDecision.REJECTED
        message = (
            f"Your stay in hostel request for {self.describe_period(request)} "
            f"has been {decision.value.lower()} by the principal."
        )
        if request.principal_comment:
            message += f" Comment: {request.principal_comment}"
        payload = NotificationPayload(
            title=f"Stay in Hostel Request {decision.value}",
            message=message,
            notification_type=NotificationType.STAY_IN_HOSTEL_DECISION,
            related_id=request.id,
            sender_id=actor.id,
        )
        return self._send([request.student_id], payload)

    def auto_deleted(self, request: LeaveRequest) -> DispatchReport:
        if request.status in (LeaveRequestStatus.WARDEN_VERIFIED, LeaveRequestStatus.PENDING_PRINCIPAL_APPROVAL):
            missing = "principal approval"
        elif request.status == LeaveRequestStatus.PENDING:
            missing = "warden review"
        else:
            missing = "OTP verification"
        payload = NotificationPayload(
            title="Leave Request Auto-Deleted",
            message=(
                f"Your {request.application_type.value} request for {self.describe_period(request)} "
                f"has been automatically deleted as the date has passed without {missing}."
            ),
            related_id=request.id,
        )
        return self._send([request.student_id], payload)

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _ids(staff: Iterable[StaffProfile]) -> List[str]:
        return [member.id for member in staff]

    def _send(self, recipients: List[str], payload: NotificationPayload) -> DispatchReport:
        if not recipients:
            logger.info(f"No recipients for '{payload.title}' ({payload.related_id})")
        return self.dispatcher.dispatch(recipients, payload)


__all__ = ["LeaveNotifier"]
