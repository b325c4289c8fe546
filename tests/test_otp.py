import pytest

from hostel_outing.core.config import NotificationSettings, OtpSettings
from hostel_outing.models.base.enums import ApplicationType, LeaveRequestStatus
from hostel_outing.models.leave.leave_request import LeaveRequest
from hostel_outing.schemas.directory.profiles import StudentProfile
from hostel_outing.services.base.service_result import ErrorCode
from hostel_outing.services.leave.leave_otp_service import LeaveOtpService
from hostel_outing.services.leave.otp_gateway import OtpGateway
from tests.support import FakeSmsSender, InterferingRepository, ist

WRONG_CODE = "0000"


@pytest.fixture
def otp(factory):
    return factory.otp()


def pending_request(code="4821"):
    return LeaveRequest(
        id="req-1",
        application_type=ApplicationType.LEAVE,
        status=LeaveRequestStatus.PENDING_OTP_VERIFICATION,
        otp_code=code,
        otp_failed_attempts=0,
        created_at=ist(2026, 3, 10, 10, 0),
    )


class TestGenerate:
    def test_four_digit_codes(self):
        codes = {OtpGateway.generate() for _ in range(200)}
        assert all(len(code) == 4 and 1000 <= int(code) <= 9999 for code in codes)

    def test_is_required(self):
        gateway = OtpGateway()
        opted_in = StudentProfile(id="s1", name="A", parent_permission_for_outing=True)
        opted_out = StudentProfile(id="s2", name="B", parent_permission_for_outing=False)

        assert gateway.is_required(ApplicationType.LEAVE, opted_in)
        assert gateway.is_required(ApplicationType.LEAVE, opted_out)
        assert gateway.is_required(ApplicationType.PERMISSION, opted_in)
        assert not gateway.is_required(ApplicationType.PERMISSION, opted_out)
        assert not gateway.is_required(ApplicationType.STAY_IN_HOSTEL, opted_in)


class TestResend:
    def test_resend_within_cooldown_reports_wait(self, otp, create_leave, clock):
        request = create_leave()
        clock.advance(minutes=2)

        result = otp.resend_otp(request.id, "stu-1")

        assert result.error_code == ErrorCode.RATE_LIMIT_EXCEEDED
        assert result.message == "Please wait 3 more minutes before resending OTP"
        assert result.error.details["retry_after_seconds"] == 180

    def test_resend_after_cooldown_reuses_code(self, otp, create_leave, clock, sms):
        request = create_leave()
        original_code = sms.last_code
        clock.advance(minutes=5)

        result = otp.resend_otp(request.id, "stu-1")

        assert result.is_success, result.message
        assert result.data.resend_count == 1
        assert result.data.delivered
        assert len(sms.calls) == 2
        assert sms.last_code == original_code

    def test_cooldown_restarts_from_last_resend(self, otp, create_leave, clock):
        request = create_leave()
        clock.advance(minutes=5)
        assert otp.resend_otp(request.id, "stu-1").is_success

        clock.advance(minutes=2)
        result = otp.resend_otp(request.id, "stu-1")
        assert result.message == "Please wait 3 more minutes before resending OTP"

        clock.advance(minutes=3)
        result = otp.resend_otp(request.id, "stu-1")
        assert result.is_success
        assert result.data.resend_count == 2

    def test_only_owner_may_resend(self, otp, create_leave, clock):
        request = create_leave()
        clock.advance(minutes=10)

        result = otp.resend_otp(request.id, "stu-2")

        assert result.error_code == ErrorCode.UNAUTHORIZED
        assert result.message == "You can only resend OTP for your own requests"

    def test_resend_after_verification_is_refused(self, otp, create_leave, clock, sms):
        request = create_leave()
        assert otp.verify_otp(request.id, "warden-1", sms.last_code).is_success
        clock.advance(minutes=10)

        result = otp.resend_otp(request.id, "stu-1")

        assert result.error_code == ErrorCode.STATE_CONFLICT
        assert result.message == "Invalid leave status for OTP resend"

    def test_failed_delivery_is_a_warning(self, otp, create_leave, clock, sms):
        request = create_leave()
        sms.success = False
        clock.advance(minutes=5)

        result = otp.resend_otp(request.id, "stu-1")

        assert result.is_success
        assert not result.data.delivered
        assert result.warnings == ["OTP SMS could not be sent. Please ask for a resend."]


class TestVerify:
    def test_correct_code_forwards_to_principal(self, otp, create_leave, sms, notifications):
        request = create_leave()

        result = otp.verify_otp(request.id, "warden-1", sms.last_code)

        assert result.is_success, result.message
        assert result.data.status == LeaveRequestStatus.WARDEN_VERIFIED
        assert result.data.warden_verified_by == "warden-1"
        assert result.data.warden_verified_at == ist(2026, 3, 10, 10, 0)
        assert notifications.titles_for("principal-btech") == ["Leave Request Ready for Approval"]
        assert notifications.for_user("principal-diploma") == []

    def test_wrong_code_keeps_status_and_counts_attempt(self, otp, create_leave, session_factory):
        request = create_leave()

        result = otp.verify_otp(request.id, "warden-1", WRONG_CODE)

        assert result.error_code == ErrorCode.INVALID_OTP
        assert result.error.details["attempts_remaining"] == 2

        fresh = session_factory()
        try:
            stored = fresh.get(LeaveRequest, request.id)
            assert stored.status == LeaveRequestStatus.PENDING_OTP_VERIFICATION
            assert stored.otp_failed_attempts == 1
        finally:
            fresh.close()

    def test_lockout_after_repeated_failures(self, otp, create_leave, clock, sms):
        request = create_leave()
        code = sms.last_code

        remaining = [
            otp.verify_otp(request.id, "warden-1", WRONG_CODE).error.details["attempts_remaining"]
            for _ in range(3)
        ]
        assert remaining == [2, 1, 0]

        locked = otp.verify_otp(request.id, "warden-1", code)
        assert locked.error_code == ErrorCode.RATE_LIMIT_EXCEEDED
        assert locked.message == "Too many incorrect OTP attempts. Try again in 15 minutes"

        clock.advance(minutes=15)
        unlocked = otp.verify_otp(request.id, "warden-1", code)
        assert unlocked.is_success, unlocked.message
        assert unlocked.data.status == LeaveRequestStatus.WARDEN_VERIFIED

    def test_principal_cannot_verify(self, otp, create_leave, sms):
        request = create_leave()
        result = otp.verify_otp(request.id, "principal-btech", sms.last_code)
        assert result.error_code == ErrorCode.UNAUTHORIZED
        assert result.message == "Only wardens and administrators can perform this action"

    def test_sub_admin_scoped_to_assigned_courses(self, otp, create_leave, sms):
        in_scope = create_leave("stu-1")
        in_scope_code = sms.last_code
        out_of_scope = create_leave("stu-3")

        refused = otp.verify_otp(out_of_scope.id, "sub-admin-1", sms.last_code)
        assert refused.error_code == ErrorCode.UNAUTHORIZED
        assert refused.message == "You are not authorized to approve leave requests for this student's course"

        assert otp.verify_otp(in_scope.id, "sub-admin-1", in_scope_code).is_success

    def test_sub_admin_without_permission(self, otp, create_leave, sms, directory):
        directory.add_staff(id="sub-admin-2", name="Clerk", role="sub_admin", assigned_courses=["B.Tech"])
        request = create_leave()

        result = otp.verify_otp(request.id, "sub-admin-2", sms.last_code)

        assert result.error_code == ErrorCode.INSUFFICIENT_PERMISSIONS

    def test_verify_twice_is_a_conflict(self, otp, create_leave, sms):
        request = create_leave()
        code = sms.last_code
        assert otp.verify_otp(request.id, "warden-1", code).is_success

        result = otp.verify_otp(request.id, "warden-1", code)

        assert result.error_code == ErrorCode.STATE_CONFLICT

    def test_unknown_request(self, otp):
        assert otp.verify_otp("missing", "warden-1", "1234").error_code == ErrorCode.NOT_FOUND

    def test_concurrent_change_is_a_conflict(self, factory, db, session_factory, create_leave, sms, clock):
        request = create_leave()
        repository = InterferingRepository(db, session_factory, interferences=1)
        otp = LeaveOtpService(
            repository,
            db,
            factory.directory,
            factory.notifier(),
            factory.otp_gateway(),
            scope_resolver=factory.scope_resolver(),
            state_machine=factory.state_machine(),
            time_window=factory.time_window(),
            clock=clock,
        )

        result = otp.verify_otp(request.id, "warden-1", sms.last_code)

        assert result.error_code == ErrorCode.STATE_CONFLICT
        assert result.message == "Request was modified by another action. Please reload and try again."
        assert repository.calls == 1

        fresh = session_factory()
        try:
            stored = fresh.get(LeaveRequest, request.id)
            assert stored.status == LeaveRequestStatus.PENDING_OTP_VERIFICATION
            assert stored.warden_verified_by is None
        finally:
            fresh.close()


class TestGatewayUnit:
    def test_lockout_can_be_disabled(self):
        gateway = OtpGateway(otp_settings=OtpSettings(OTP_MAX_FAILED_ATTEMPTS=0))
        request = pending_request()
        now = ist(2026, 3, 10, 10, 5)

        for _ in range(10):
            assert not gateway.verify(request, WRONG_CODE, now)

        assert request.otp_locked_until is None
        assert gateway.attempts_remaining(request, now) is None
        assert gateway.verify(request, "4821", now)

    def test_success_resets_failed_attempts(self):
        gateway = OtpGateway(otp_settings=OtpSettings(OTP_MAX_FAILED_ATTEMPTS=5))
        request = pending_request()
        now = ist(2026, 3, 10, 10, 5)

        gateway.verify(request, WRONG_CODE, now)
        assert gateway.verify(request, " 4821 ", now)
        assert request.otp_failed_attempts == 0


class TestDelivery:
    @pytest.fixture
    def student(self):
        return StudentProfile(id="s1", name="Ravi", parent_phone="9876543210")

    def test_delivered(self, student):
        sender = FakeSmsSender()
        gateway = OtpGateway(sender, notification_settings=NotificationSettings(SMS_ENABLED=True))
        assert gateway.deliver(student, "1234") is None
        assert sender.calls == [{"phone": "9876543210", "code": "1234", "student_id": "s1"}]

    def test_disabled(self, student):
        sender = FakeSmsSender()
        gateway = OtpGateway(sender, notification_settings=NotificationSettings(SMS_ENABLED=False))
        assert gateway.deliver(student, "1234") == "SMS delivery is disabled; OTP was not sent to the parent"
        assert sender.calls == []

    def test_missing_phone(self):
        gateway = OtpGateway(FakeSmsSender(), notification_settings=NotificationSettings(SMS_ENABLED=True))
        student = StudentProfile(id="s1", name="Ravi")
        assert gateway.deliver(student, "1234") == "Parent phone number not available; OTP was not sent"

    def test_sender_exception_is_contained(self, student):
        class ExplodingSender:
            def send_otp(self, phone, code, student):
                raise ConnectionError("gateway down")

        gateway = OtpGateway(ExplodingSender(), notification_settings=NotificationSettings(SMS_ENABLED=True))
        assert gateway.deliver(student, "1234") == "OTP SMS could not be sent. Please ask for a resend."

    def test_leave_without_parent_phone_is_still_created(self, factory):
        result = factory.leave_requests().create_request(
            "stu-4", "Leave", "Going home",
            {"start_date": "2026-03-10T12:00", "end_date": "2026-03-11T12:00", "gate_pass_at": "2026-03-10T12:00"},
        )

        assert result.is_success
        assert result.data.status == LeaveRequestStatus.PENDING_OTP_VERIFICATION
        assert result.warnings == ["Parent phone number not available; OTP was not sent"]
