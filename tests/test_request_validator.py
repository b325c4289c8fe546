from datetime import time

import pytest

from hostel_outing.models.base.enums import ApplicationType, LeaveRequestStatus
from hostel_outing.services.base.service_result import ErrorCode
from hostel_outing.services.leave.request_validator import format_time_12h
from tests.support import ist, leave_fields


@pytest.fixture
def service(factory):
    return factory.leave_requests()


def field_errors(result):
    return (result.error.details or {}).get("field_errors", {})


class TestLeaveRules:
    def test_future_leave_gate_pass_before_cutoff_is_rejected(self, service):
        result = service.create_request(
            "stu-1", "Leave", "Family function",
            leave_fields("2026-03-11T15:00", "2026-03-13T12:00"),
        )

        assert not result.is_success
        assert result.error_code == ErrorCode.VALIDATION_ERROR
        assert result.message == "Gate pass must be after 4:30 PM for future dates"
        assert "gate_pass_at" in field_errors(result)

    def test_future_leave_gate_pass_after_cutoff_is_accepted(self, service, sms):
        result = service.create_request(
            "stu-1", "Leave", "Family function",
            leave_fields("2026-03-11T17:00", "2026-03-13T12:00"),
        )

        assert result.is_success, result.message
        assert result.data.status == LeaveRequestStatus.PENDING_OTP_VERIFICATION
        assert result.data.application_type == ApplicationType.LEAVE
        assert result.data.start_date == ist(2026, 3, 11, 17, 0)
        assert result.data.qr_available_from == ist(2026, 3, 11, 16, 58)
        assert sms.calls[0]["phone"] == "9876543210"

    def test_same_day_gate_pass_in_the_past(self, service):
        result = service.create_request(
            "stu-1", "Leave", "Doctor visit",
            leave_fields("2026-03-10T09:00", "2026-03-11T09:00"),
        )
        assert result.message == "Gate pass time cannot be in the past for same day leave"

    def test_same_day_gate_pass_ignores_cutoff(self, service):
        result = service.create_request(
            "stu-1", "Leave", "Doctor visit",
            leave_fields("2026-03-10T11:00", "2026-03-10T15:00"),
        )
        assert result.is_success, result.message

    def test_end_must_follow_start(self, service):
        result = service.create_request(
            "stu-1", "Leave", "Going home",
            leave_fields("2026-03-10T12:00", "2026-03-10T11:00"),
        )
        assert result.message == "End date must be after start date"
        assert field_errors(result)["end_date"] == ["End date must be after start date"]

    def test_start_in_the_past(self, service):
        result = service.create_request(
            "stu-1", "Leave", "Going home",
            leave_fields("2026-03-09T12:00", "2026-03-12T12:00"),
        )
        assert result.message == "Start date cannot be in the past"

    def test_missing_field(self, service):
        result = service.create_request(
            "stu-1", "Leave", "Going home",
            {"start_date": "2026-03-10T12:00", "gate_pass_at": "2026-03-10T12:00"},
        )
        assert result.message == "end_date is required for Leave applications"

    def test_field_of_another_type_is_rejected(self, service):
        fields = leave_fields()
        fields["stay_date"] = "2026-03-10"
        result = service.create_request("stu-1", "Leave", "Going home", fields)
        assert result.message == "Field 'stay_date' is not allowed for Leave applications"

    def test_camel_case_keys_are_accepted(self, service):
        result = service.create_request(
            "stu-1", "Leave", "Going home",
            {
                "startDate": "2026-03-10T12:00",
                "endDate": "2026-03-12T12:00",
                "gatePassDateTime": "2026-03-10T12:00",
            },
        )
        assert result.is_success, result.message


class TestPermissionRules:
    def test_valid_permission(self, service):
        result = service.create_request(
            "stu-1", "Permission", "Shopping",
            {"permission_date": "2026-03-10", "out_time": "14:00", "in_time": "18:30"},
        )
        assert result.is_success, result.message
        assert result.data.status == LeaveRequestStatus.PENDING_OTP_VERIFICATION
        assert result.data.out_time == "14:00"
        assert result.data.qr_available_from == ist(2026, 3, 10, 0, 0)

    def test_out_time_must_precede_in_time(self, service):
        result = service.create_request(
            "stu-1", "Permission", "Shopping",
            {"permission_date": "2026-03-10", "out_time": "14:00", "in_time": "13:00"},
        )
        assert result.message == "Out time must be before in time"
        assert "in_time" in field_errors(result)

    def test_time_format(self, service):
        result = service.create_request(
            "stu-1", "Permission", "Shopping",
            {"permission_date": "2026-03-10", "out_time": "2pm", "in_time": "18:00"},
        )
        assert result.message == "Time must be in HH:MM format (24-hour)"
        assert "out_time" in field_errors(result)

    def test_permission_date_in_the_past(self, service):
        result = service.create_request(
            "stu-1", "Permission", "Shopping",
            {"permission_date": "2026-03-09", "out_time": "14:00", "in_time": "18:00"},
        )
        assert result.message == "Permission date cannot be in the past"

    def test_parent_exempt_permission_goes_to_principal(self, service, sms, notifications):
        result = service.create_request(
            "stu-4", "Permission", "Shopping",
            {"permission_date": "2026-03-10", "out_time": "14:00", "in_time": "18:00"},
        )

        assert result.data.status == LeaveRequestStatus.PENDING_PRINCIPAL_APPROVAL
        assert sms.calls == []
        assert notifications.titles_for("principal-btech") == ["Leave Request Ready for Approval"]
        assert notifications.for_user("principal-diploma") == []


class TestStayInHostelRules:
    @pytest.mark.parametrize("stay_date", ["2026-03-10", "2026-03-11"])
    def test_today_or_tomorrow(self, service, stay_date):
        result = service.create_request("stu-1", "Stay in Hostel", "Exams", {"stay_date": stay_date})
        assert result.is_success, result.message
        assert result.data.status == LeaveRequestStatus.PENDING

    @pytest.mark.parametrize("stay_date", ["2026-03-09", "2026-03-12"])
    def test_other_days_rejected(self, service, stay_date):
        result = service.create_request("stu-1", "Stay in Hostel", "Exams", {"stay_date": stay_date})
        assert result.message == "Stay date must be today or tomorrow only"

    def test_stay_request_never_sends_otp(self, service, sms):
        service.create_request("stu-1", "Stay in Hostel", "Exams", {"stay_date": "2026-03-10"})
        assert sms.calls == []


class TestGeneralRules:
    def test_invalid_application_type(self, service):
        result = service.create_request("stu-1", "Vacation", "Going home", leave_fields())
        assert result.error_code == ErrorCode.VALIDATION_ERROR
        assert "Invalid application type" in result.message

    def test_reason_required(self, service):
        result = service.create_request("stu-1", "Leave", "   ", leave_fields())
        assert result.message == "Reason is required"

    def test_unknown_student(self, service):
        result = service.create_request("ghost", "Leave", "Going home", leave_fields())
        assert result.error_code == ErrorCode.NOT_FOUND

    def test_otp_never_in_response(self, service):
        result = service.create_request("stu-1", "Leave", "Going home", leave_fields())
        assert "otp_code" not in result.data.model_dump()


class TestDailyLimit:
    def test_second_request_same_day_is_rejected(self, service):
        assert service.create_request("stu-1", "Leave", "Going home", leave_fields()).is_success

        result = service.create_request("stu-1", "Leave", "Again", leave_fields())

        assert result.error_code == ErrorCode.DAILY_LIMIT_EXCEEDED
        assert result.message == "You have only one Leave request per day"

    def test_limit_is_per_type(self, service):
        assert service.create_request("stu-1", "Leave", "Going home", leave_fields()).is_success
        result = service.create_request(
            "stu-1", "Permission", "Shopping",
            {"permission_date": "2026-03-10", "out_time": "14:00", "in_time": "18:00"},
        )
        assert result.is_success, result.message

    def test_next_ist_day_is_allowed(self, service, clock):
        assert service.create_request("stu-1", "Leave", "Going home", leave_fields()).is_success

        clock.set(ist(2026, 3, 11, 9, 0))
        result = service.create_request(
            "stu-1", "Leave", "Going home again",
            leave_fields("2026-03-11T12:00", "2026-03-12T12:00"),
        )
        assert result.is_success, result.message

    def test_limit_follows_ist_not_utc_day(self, service, clock):
        # 23:00 IST on the 10th and 01:00 IST on the 11th share a UTC date
        clock.set(ist(2026, 3, 10, 23, 0))
        assert service.create_request(
            "stu-1", "Leave", "Late bus",
            leave_fields("2026-03-10T23:30", "2026-03-11T20:00"),
        ).is_success

        clock.set(ist(2026, 3, 11, 1, 0))
        result = service.create_request(
            "stu-1", "Leave", "Early bus",
            leave_fields("2026-03-11T01:30", "2026-03-11T20:00"),
        )
        assert result.is_success, result.message

    def test_unique_constraint_backs_up_the_check(self, service, factory, monkeypatch):
        assert service.create_request("stu-1", "Leave", "Going home", leave_fields()).is_success

        # Simulate a concurrent submission that passed the pre-check
        monkeypatch.setattr(factory.repository(), "exists_created_between", lambda *args: False)
        result = service.create_request("stu-1", "Leave", "Again", leave_fields())

        assert result.error_code == ErrorCode.DAILY_LIMIT_EXCEEDED


@pytest.mark.parametrize("value, expected", [
    (time(16, 30), "4:30 PM"),
    (time(0, 5), "12:05 AM"),
    (time(12, 0), "12:00 PM"),
])
def test_format_time_12h(value, expected):
    assert format_time_12h(value) == expected
