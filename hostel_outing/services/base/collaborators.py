"""
Interfaces of the systems the outing engine depends on but does not own.
"""

from typing import List, Optional, Protocol, runtime_checkable

from hostel_outing.models.base.enums import StaffRole
from hostel_outing.schemas.directory.profiles import StaffProfile, StudentProfile
from hostel_outing.schemas.notification.notification import NotificationPayload, SmsDeliveryResult


@runtime_checkable
class StudentDirectory(Protocol):
    """Read access to students, staff and courses."""

    def get_student(self, student_id: str) -> Optional[StudentProfile]:
        ...

    def get_staff(self, staff_id: str) -> Optional[StaffProfile]:
        ...

    def find_staff(self, role: StaffRole) -> List[StaffProfile]:
        ...

    def resolve_course_name(self, course_ref: str) -> Optional[str]:
        """Resolve a course id (e.g. ``sql_3`` or ``3``) to its display name."""
        ...


@runtime_checkable
class NotificationSender(Protocol):
    """Delivers a notification to one user. May raise; callers isolate failures."""

    def notify(self, user_id: str, payload: NotificationPayload) -> None:
        ...


@runtime_checkable
class OtpSmsSender(Protocol):
    """Sends the parent OTP by SMS."""

    def send_otp(self, phone: str, code: str, student: StudentProfile) -> SmsDeliveryResult:
        ...


__all__ = [
    "StudentDirectory",
    "NotificationSender",
    "OtpSmsSender",
]
