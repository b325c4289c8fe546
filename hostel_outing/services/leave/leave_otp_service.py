"""
Parent OTP operations: resend by the student, verification by the warden.
"""

from typing import Optional

from sqlalchemy.orm import Session

from hostel_outing.core.exceptions import AuthorizationError, InvalidOtpError
from hostel_outing.repositories.leave.leave_request_repository import LeaveRequestRepository
from hostel_outing.schemas.leave.leave_response import LeaveRequestResponse, OtpResendResponse
from hostel_outing.services.base.base_service import Clock
from hostel_outing.services.base.collaborators import StudentDirectory
from hostel_outing.services.base.service_result import ServiceResult
from hostel_outing.services.leave.base_leave_service import LeaveWorkflowService
from hostel_outing.services.leave.course_scope_resolver import CourseScopeResolver
from hostel_outing.services.leave.leave_notifier import LeaveNotifier
from hostel_outing.services.leave.otp_gateway import OtpGateway
from hostel_outing.services.leave.state_machine import Action, ApprovalStateMachine
from hostel_outing.utils.date_utils import TimeWindow


class LeaveOtpService(LeaveWorkflowService):
    """Resend and verify the parent OTP of Leave and Permission requests."""

    def __init__(
        self,
        repository: LeaveRequestRepository,
        db_session: Session,
        directory: StudentDirectory,
        notifier: LeaveNotifier,
        otp_gateway: OtpGateway,
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
        self.otp_gateway = otp_gateway

    def resend_otp(self, request_id: str, student_id: str) -> ServiceResult[OtpResendResponse]:
        """
        Send the existing OTP to the parent again.

        Allowed once per cooldown period, measured from the last resend or,
        before the first resend, from creation.

        Returns:
            ServiceResult containing the new resend count and whether the SMS went out
        """
        operation = "resend OTP"
        try:
            now = self._now()
            with self.transaction():
                request = self.repository.get_for_update(request_id)
                if request.student_id != student_id:
                    raise AuthorizationError("You can only resend OTP for your own requests")
                self.otp_gateway.check_resend(request, now)
                self.otp_gateway.mark_resent(request, now)
                code = request.otp_code
                resend_count = request.otp_resend_count
            student = self._get_student(student_id)
        except Exception as e:
            return self._handle_exception(e, operation, request_id)

        warning = self.otp_gateway.deliver(student, code)
        self._log_operation(operation, request_id, {"resend_count": resend_count})

        result = ServiceResult.success(
            OtpResendResponse(request_id=request_id, resend_count=resend_count, delivered=warning is None),
            message="OTP resent successfully" if warning is None else "OTP resend recorded",
        )
        if warning:
            result.add_warning(warning)
        return result

    def verify_otp(
        self,
        request_id: str,
        actor_id: str,
        code: str,
    ) -> ServiceResult[LeaveRequestResponse]:
        """
        Warden enters the OTP read out by the parent.

        A correct code moves the request to WardenVerified and notifies
        the principals responsible for the student. Wrong codes count
        towards the lockout.
        """
        operation = "verify OTP"
        try:
            now = self._now()
            staff = self._get_staff(actor_id)
            request = self.repository.get_for_update(request_id)
            student = self._get_student(request.student_id)
            self.scope_resolver.ensure_warden_scope(staff, student)
            self.state_machine.target_for(request, Action.VERIFY_OTP)

            if not self.otp_gateway.verify(request, code, now):
                # Persist the failed attempt before refusing.
                self._commit()
                raise InvalidOtpError(attempts_remaining=self.otp_gateway.attempts_remaining(request, now))

            self.state_machine.apply(request, Action.VERIFY_OTP)
            request.warden_verified_by = actor_id
            request.warden_verified_at = now
            self._commit()
        except Exception as e:
            self._rollback()
            return self._handle_exception(e, operation, request_id, {"actor_id": actor_id})

        self._log_operation(operation, request_id, {"actor_id": actor_id})
        self.notifier.ready_for_principal(request, student)
        return ServiceResult.success(
            self._to_response(request),
            message="OTP verified. Request forwarded to principal for approval.",
        )


__all__ = ["LeaveOtpService"]
