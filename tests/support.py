"""
Test doubles for the hostel directory, notification delivery, SMS and the clock.
"""

import threading
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

import pytz

from hostel_outing.models.base.enums import StaffRole
from hostel_outing.models.leave.leave_request import LeaveRequest
from hostel_outing.repositories.leave.leave_request_repository import LeaveRequestRepository
from hostel_outing.schemas.directory.profiles import StaffProfile, StudentProfile
from hostel_outing.schemas.notification.notification import NotificationPayload, SmsDeliveryResult

IST = pytz.timezone("Asia/Kolkata")


def ist(year: int, month: int, day: int, hour: int = 0, minute: int = 0, second: int = 0) -> datetime:
    """Hostel-local wall clock time as aware UTC."""
    return IST.localize(datetime(year, month, day, hour, minute, second)).astimezone(pytz.UTC)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now

    def set(self, value: datetime) -> None:
        self.now = value


class FakeDirectory:
    def __init__(self):
        self.students: Dict[str, StudentProfile] = {}
        self.staff: Dict[str, StaffProfile] = {}
        self.courses: Dict[str, str] = {}

    def add_student(self, **kwargs) -> StudentProfile:
        student = StudentProfile(**kwargs)
        self.students[student.id] = student
        return student

    def add_staff(self, **kwargs) -> StaffProfile:
        member = StaffProfile(**kwargs)
        self.staff[member.id] = member
        return member

    def get_student(self, student_id: str) -> Optional[StudentProfile]:
        return self.students.get(student_id)

    def get_staff(self, staff_id: str) -> Optional[StaffProfile]:
        return self.staff.get(staff_id)

    def find_staff(self, role: StaffRole) -> List[StaffProfile]:
        return [member for member in self.staff.values() if member.role == role]

    def resolve_course_name(self, course_ref: str) -> Optional[str]:
        key = course_ref.lower()
        if not key.startswith("sql_"):
            key = f"sql_{key}"
        return self.courses.get(key)


class RecordingNotificationSender:
    def __init__(self):
        self.sent: List[Tuple[str, NotificationPayload]] = []
        self.fail_for = set()
        self._lock = threading.Lock()

    def notify(self, user_id: str, payload: NotificationPayload) -> None:
        if user_id in self.fail_for:
            raise RuntimeError(f"delivery to {user_id} failed")
        with self._lock:
            self.sent.append((user_id, payload))

    def for_user(self, user_id: str) -> List[NotificationPayload]:
        return [payload for recipient, payload in self.sent if recipient == user_id]

    def titles_for(self, user_id: str) -> List[str]:
        return [payload.title for payload in self.for_user(user_id)]

    def clear(self) -> None:
        with self._lock:
            self.sent.clear()


class FakeSmsSender:
    def __init__(self, success: bool = True):
        self.success = success
        self.calls: List[Dict[str, str]] = []

    def send_otp(self, phone: str, code: str, student: StudentProfile) -> SmsDeliveryResult:
        self.calls.append({"phone": phone, "code": code, "student_id": student.id})
        if not self.success:
            return SmsDeliveryResult(success=False, error="gateway rejected")
        return SmsDeliveryResult(success=True, message_ids=["101", "102"], languages=["Telugu", "English"])

    @property
    def last_code(self) -> str:
        return self.calls[-1]["code"]


def leave_fields(
    start: str = "2026-03-10T12:00",
    end: str = "2026-03-12T12:00",
    gate_pass: Optional[str] = None,
) -> Dict[str, str]:
    return {
        "start_date": start,
        "end_date": end,
        "gate_pass_at": gate_pass or start,
    }


class InterferingRepository(LeaveRequestRepository):
    """Commits a change to the row from another session right after each locked read."""

    def __init__(self, db, session_factory, interferences):
        super().__init__(db)
        self.session_factory = session_factory
        self.interferences = interferences
        self.calls = 0

    def get_for_update(self, request_id):
        request = super().get_for_update(request_id)
        self.calls += 1
        if self.calls <= self.interferences:
            other = self.session_factory()
            try:
                row = other.get(LeaveRequest, request_id)
                row.updated_at = row.updated_at + timedelta(seconds=1)
                other.commit()
            finally:
                other.close()
        return request
