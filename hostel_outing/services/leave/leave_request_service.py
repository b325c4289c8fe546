"""
Leave request service: creation, student views, staff queues and deletion.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from hostel_outing.core.exceptions import AuthorizationError, StateConflictError
from hostel_outing.models.base.enums import (
    ApplicationType,
    LeaveRequestStatus,
    VerificationStatus,
)
from hostel_outing.models.leave.leave_request import LeaveRequest
from hostel_outing.repositories.leave.leave_request_repository import LeaveRequestRepository
from hostel_outing.schemas.directory.profiles import StaffProfile, StudentProfile
from hostel_outing.schemas.leave.leave_base import apply_fields
from hostel_outing.schemas.leave.leave_response import LeaveRequestResponse
from hostel_outing.services.base.base_service import Clock
from hostel_outing.services.base.collaborators import StudentDirectory
from hostel_outing.services.base.service_result import ServiceResult
from hostel_outing.services.leave.base_leave_service import LeaveWorkflowService
from hostel_outing.services.leave.course_scope_resolver import CourseScopeResolver
from hostel_outing.services.leave.gate_pass_tracker import GatePassTracker
from hostel_outing.services.leave.leave_notifier import LeaveNotifier
from hostel_outing.services.leave.otp_gateway import OtpGateway
from hostel_outing.services.leave.request_validator import RequestValidator, daily_limit_error
from hostel_outing.services.leave.state_machine import ApprovalStateMachine
from hostel_outing.utils.date_utils import TimeWindow

LEAVE_AND_PERMISSION = (ApplicationType.LEAVE, ApplicationType.PERMISSION)
STAY_ONLY = (ApplicationType.STAY_IN_HOSTEL,)

WARDEN_QUEUE_STATUSES = (
    LeaveRequestStatus.PENDING_OTP_VERIFICATION,
    LeaveRequestStatus.WARDEN_VERIFIED,
    LeaveRequestStatus.PENDING_PRINCIPAL_APPROVAL,
)
PRINCIPAL_QUEUE_STATUSES = (
    LeaveRequestStatus.WARDEN_VERIFIED,
    LeaveRequestStatus.PENDING_PRINCIPAL_APPROVAL,
)
HISTORY_EXCLUDED_STATUSES = (
    LeaveRequestStatus.PENDING,
    LeaveRequestStatus.PENDING_OTP_VERIFICATION,
)
HISTORY_LIMIT = 20


class LeaveRequestService(LeaveWorkflowService):
    """
    Student-facing request lifecycle plus the read models used by wardens,
    principals and security.
    """

    def __init__(
        self,
        repository: LeaveRequestRepository,
        db_session: Session,
        directory: StudentDirectory,
        notifier: LeaveNotifier,
        validator: RequestValidator,
        otp_gateway: OtpGateway,
        tracker: GatePassTracker,
        scope_resolver: Optional[CourseScopeResolver] = None,
        state_machine: Optional[ApprovalStateMachine] = None,
        time_window: Optional[TimeWindow] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(
            repository,
            db_session,
            directory,
            notifier,
            scope_resolver=scope_resolver,
            state_machine=state_machine,
            time_window=time_window,
            clock=clock,
        )
        self.validator = validator
        self.otp_gateway = otp_gateway
        self.tracker = tracker

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    def create_request(
        self,
        student_id: str,
        application_type: Any,
        reason: Optional[str],
        fields: Optional[Mapping[str, Any]] = None,
    ) -> ServiceResult[LeaveRequestResponse]:
        """
        Submit a new Leave, Permission or Stay in Hostel request.

        Leave requests, and Permission requests of students whose parents
        opted in, start in PendingOtpVerification and an OTP is sent to the
        parent.
        SMS failures do not fail the request; they are returned as warnings.

        Args:
            student_id: Requesting student
            application_type: "Leave", "Permission" or "Stay in Hostel"
            reason: Free-text reason
            fields: The type's field group (e.g. start_date, end_date, gate_pass_at)

        Returns:
            ServiceResult containing the created request
        """
        operation = "create leave request"
        try:
            now = self._now()
            student = self._get_student(student_id)
            validated = self.validator.validate(student_id, application_type, reason, fields, now)

            request = LeaveRequest(
                id=str(uuid4()),
                student_id=student_id,
                reason=validated.reason,
                request_day=self.time_window.today(now),
                status=self.state_machine.initial_status(
                    validated.application_type, student.parent_permission_for_outing
                ),
                otp_resend_count=0,
                otp_failed_attempts=0,
                created_at=now,
                updated_at=now,
            )
            apply_fields(request, validated.fields)
            self.tracker.initialize(request)

            otp_code = None
            if self.otp_gateway.is_required(validated.application_type, student):
                otp_code = self.otp_gateway.issue(request)

            try:
                with self.transaction():
                    self.repository.add(request)
            except IntegrityError:
                # Lost a race with another submission for the same day.
                raise daily_limit_error(validated.application_type)

        except Exception as e:
            return self._handle_exception(e, operation, student_id)

        self._logger.info(
            f"Created {request.application_type.value} request {request.id} for student {student_id} "
            f"with status {request.status.value}",
            extra={"request_id": request.id, "student_id": student_id},
        )

        result = ServiceResult.success(
            self._to_response(request),
            message=self._created_message(request),
            metadata={"request_id": request.id, "status": request.status.value},
        )

        if otp_code:
            warning = self.otp_gateway.deliver(student, otp_code)
            if warning:
                result.add_warning(warning)

        self.notifier.request_created(request, student)
        return result

    @staticmethod
    def _created_message(request: LeaveRequest) -> str:
        if request.status == LeaveRequestStatus.PENDING_OTP_VERIFICATION:
            return f"{request.application_type.value} request submitted. OTP sent to parent for verification."
        if request.application_type == ApplicationType.STAY_IN_HOSTEL:
            return "Stay in Hostel request submitted. It will be reviewed by the warden and principal."
        return f"{request.application_type.value} request submitted for principal approval."

    # -------------------------------------------------------------------------
    # Student views
    # -------------------------------------------------------------------------

    def get_request(self, request_id: str) -> ServiceResult[LeaveRequestResponse]:
        try:
            request = self.repository.find_by_id(request_id)
            if request is None:
                return ServiceResult.not_found("Leave request", request_id)
            return ServiceResult.success(self._to_response(request))
        except Exception as e:
            return self._handle_exception(e, "get leave request", request_id)

    def list_student_requests(self, student_id: str) -> ServiceResult[List[LeaveRequestResponse]]:
        """All requests of a student, newest first."""
        try:
            requests = self.repository.find_by_student(student_id)
            return ServiceResult.success([self._to_response(r) for r in requests])
        except Exception as e:
            return self._handle_exception(e, "list student leave requests", student_id)

    def list_student_history(
        self,
        student_id: str,
        limit: int = HISTORY_LIMIT,
    ) -> ServiceResult[List[LeaveRequestResponse]]:
        """Requests that have moved past the initial pending states."""
        try:
            requests = self.repository.find_by_student(
                student_id,
                exclude_statuses=HISTORY_EXCLUDED_STATUSES,
                limit=limit,
            )
            return ServiceResult.success([self._to_response(r) for r in requests])
        except Exception as e:
            return self._handle_exception(e, "list student leave history", student_id)

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    def delete_request(self, request_id: str, student_id: str) -> ServiceResult[bool]:
        """
        Withdraw a request that has not been approved or rejected yet.

        Returns:
            ServiceResult containing True on success
        """
        operation = "delete leave request"
        try:
            request = self.repository.get_for_update(request_id)
            if request.student_id != student_id:
                raise AuthorizationError("You can only delete your own leave requests")
            if not self.state_machine.can_delete(request.status):
                raise StateConflictError(
                    "Cannot delete this request. It has already been approved or rejected.",
                    current_status=request.status.value,
                    action="delete",
                )
            self.repository.remove(request)
            self._commit()
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, operation, request_id)

        self._log_operation(operation, request_id, {"student_id": student_id})
        return ServiceResult.success(True, message="Leave request deleted successfully")

    # -------------------------------------------------------------------------
    # Staff queues
    # -------------------------------------------------------------------------

    def list_for_warden(
        self,
        actor_id: str,
        statuses: Optional[Iterable[LeaveRequestStatus]] = None,
    ) -> ServiceResult[List[LeaveRequestResponse]]:
        """Leave and Permission requests awaiting warden attention within the actor's scope."""
        return self._scoped_queue(
            "list warden leave requests",
            actor_id,
            statuses or WARDEN_QUEUE_STATUSES,
            LEAVE_AND_PERMISSION,
            principal=False,
        )

    def list_stay_requests_for_warden(
        self,
        actor_id: str,
        statuses: Optional[Iterable[LeaveRequestStatus]] = None,
    ) -> ServiceResult[List[LeaveRequestResponse]]:
        return self._scoped_queue(
            "list warden stay requests",
            actor_id,
            statuses or (LeaveRequestStatus.PENDING,),
            STAY_ONLY,
            principal=False,
        )

    def list_for_principal(
        self,
        actor_id: str,
        statuses: Optional[Iterable[LeaveRequestStatus]] = None,
    ) -> ServiceResult[List[LeaveRequestResponse]]:
        """Leave and Permission requests awaiting the principal's decision."""
        return self._scoped_queue(
            "list principal leave requests",
            actor_id,
            statuses or PRINCIPAL_QUEUE_STATUSES,
            LEAVE_AND_PERMISSION,
            principal=True,
        )

    def list_stay_requests_for_principal(
        self,
        actor_id: str,
        statuses: Optional[Iterable[LeaveRequestStatus]] = None,
    ) -> ServiceResult[List[LeaveRequestResponse]]:
        return self._scoped_queue(
            "list principal stay requests",
            actor_id,
            statuses or (LeaveRequestStatus.WARDEN_RECOMMENDED,),
            STAY_ONLY,
            principal=True,
        )

    def list_approved_for_security(self, actor_id: str) -> ServiceResult[List[LeaveRequestResponse]]:
        """Approved Leave and Permission passes for the gate."""
        try:
            self.scope_resolver.ensure_gate_staff(self._get_staff(actor_id))
            requests = self.repository.find_by_statuses(
                (LeaveRequestStatus.APPROVED,),
                application_types=LEAVE_AND_PERMISSION,
            )
            responses = [
                self._to_response(r) for r in requests
                if r.verification_status != VerificationStatus.COMPLETED
            ]
            return ServiceResult.success(responses, metadata={"count": len(responses)})
        except Exception as e:
            return self._handle_exception(e, "list approved leave requests", actor_id)

    def _scoped_queue(
        self,
        operation: str,
        actor_id: str,
        statuses: Iterable[LeaveRequestStatus],
        application_types: Iterable[ApplicationType],
        principal: bool,
    ) -> ServiceResult[List[LeaveRequestResponse]]:
        try:
            staff = self._get_staff(actor_id)
            if principal:
                self.scope_resolver.ensure_principal_role(staff)
            else:
                self.scope_resolver.ensure_warden_role(staff)

            requests = self.repository.find_by_statuses(statuses, application_types=application_types)
            students: Dict[str, Optional[StudentProfile]] = {}
            visible = []
            for request in requests:
                if request.student_id not in students:
                    students[request.student_id] = self.directory.get_student(request.student_id)
                student = students[request.student_id]
                if student is not None and self._in_scope(staff, student, principal):
                    visible.append(self._to_response(request))

            return ServiceResult.success(visible, metadata={"count": len(visible)})
        except Exception as e:
            return self._handle_exception(e, operation, actor_id)

    def _in_scope(self, staff: StaffProfile, student: StudentProfile, principal: bool) -> bool:
        if principal:
            return self.scope_resolver.in_principal_scope(staff, student)
        return self.scope_resolver.in_warden_scope(staff, student)


__all__ = ["LeaveRequestService"]
