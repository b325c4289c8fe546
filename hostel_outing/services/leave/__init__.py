"""
Leave Service Layer

Outing authorization workflow for Leave, Permission and Stay in Hostel
requests:
- Request creation and validation (daily limit, date and gate-pass rules)
- Parent OTP issue, resend and verification
- Warden and principal decisions with course scoping
- Gate pass availability and visit tracking

All services follow consistent patterns:
- Errors returned as ServiceResult failures, never raised to callers
- Locked, version-checked writes
- Notifications dispatched after commit
"""

from hostel_outing.services.leave.course_scope_resolver import CourseScopeResolver, normalize_course_name
from hostel_outing.services.leave.gate_pass_service import GatePassService
from hostel_outing.services.leave.gate_pass_tracker import Availability, GatePassTracker
from hostel_outing.services.leave.leave_approval_service import LeaveApprovalService
from hostel_outing.services.leave.leave_notifier import LeaveNotifier
from hostel_outing.services.leave.leave_otp_service import LeaveOtpService
from hostel_outing.services.leave.leave_request_service import LeaveRequestService
from hostel_outing.services.leave.otp_gateway import OtpGateway
from hostel_outing.services.leave.request_validator import RequestValidator, ValidatedRequest
from hostel_outing.services.leave.state_machine import Action, ApprovalStateMachine

__all__ = [
    "Action",
    "ApprovalStateMachine",
    "Availability",
    "CourseScopeResolver",
    "GatePassService",
    "GatePassTracker",
    "LeaveApprovalService",
    "LeaveNotifier",
    "LeaveOtpService",
    "LeaveRequestService",
    "OtpGateway",
    "RequestValidator",
    "ValidatedRequest",
    "normalize_course_name",
]
