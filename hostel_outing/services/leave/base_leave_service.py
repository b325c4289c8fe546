"""
Shared plumbing for the leave workflow services.
"""

from typing import Optional

from sqlalchemy.orm import Session

from hostel_outing.core.exceptions import ResourceNotFoundError
from hostel_outing.models.leave.leave_request import LeaveRequest
from hostel_outing.repositories.leave.leave_request_repository import LeaveRequestRepository
from hostel_outing.schemas.directory.profiles import StaffProfile, StudentProfile
from hostel_outing.schemas.leave.leave_response import LeaveRequestResponse
from hostel_outing.services.base.base_service import BaseService, Clock
from hostel_outing.services.base.collaborators import StudentDirectory
from hostel_outing.services.leave.course_scope_resolver import CourseScopeResolver
from hostel_outing.services.leave.leave_notifier import LeaveNotifier
from hostel_outing.services.leave.state_machine import ApprovalStateMachine
from hostel_outing.utils.date_utils import TimeWindow, default_time_window


class LeaveWorkflowService(BaseService[LeaveRequest, LeaveRequestRepository]):
    """
    Base for services acting on leave requests.

    Holds the directory, scope rules, state machine and notifier every
    workflow service needs.
    """

    def __init__(
        self,
        repository: LeaveRequestRepository,
        db_session: Session,
        directory: StudentDirectory,
        notifier: LeaveNotifier,
        scope_resolver: Optional[CourseScopeResolver] = None,
        state_machine: Optional[ApprovalStateMachine] = None,
        time_window: Optional[TimeWindow] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(repository, db_session, clock=clock)
        self.directory = directory
        self.notifier = notifier
        self.scope_resolver = scope_resolver or CourseScopeResolver(directory)
        self.state_machine = state_machine or ApprovalStateMachine()
        self.time_window = time_window or default_time_window()

    def _get_student(self, student_id: str) -> StudentProfile:
        student = self.directory.get_student(student_id)
        if student is None:
            raise ResourceNotFoundError("Student", student_id)
        return student

    def _get_staff(self, staff_id: str) -> Optional[StaffProfile]:
        return self.directory.get_staff(staff_id) if staff_id else None

    @staticmethod
    def _to_response(request: LeaveRequest) -> LeaveRequestResponse:
        return LeaveRequestResponse.model_validate(request)


__all__ = ["LeaveWorkflowService"]
