"""
Shared fixtures: a file-backed SQLite database per test, a controllable
clock, an in-memory hostel directory and recording notification/SMS
senders.
"""

import pytest

from hostel_outing.core.config import NotificationSettings, OtpSettings, OutingSettings, Settings
from hostel_outing.db.init_db import init_db
from hostel_outing.db.session import create_db_engine, create_session_factory
from hostel_outing.models.base.enums import Gender, StaffRole
from hostel_outing.schemas.directory.profiles import LEAVE_MANAGEMENT_PERMISSION
from hostel_outing.services.base.service_factory import OutingServiceFactory
from tests.support import (
    FakeClock,
    FakeDirectory,
    FakeSmsSender,
    RecordingNotificationSender,
    ist,
    leave_fields,
)


@pytest.fixture
def engine(tmp_path):
    db_engine = create_db_engine(f"sqlite:///{tmp_path / 'outing.db'}", echo=False)
    init_db(db_engine)
    yield db_engine
    db_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    # Tuesday 10 March 2026, 10:00 IST
    return FakeClock(ist(2026, 3, 10, 10, 0))


@pytest.fixture
def directory():
    d = FakeDirectory()
    d.courses = {"sql_1": "BTECH", "sql_2": "Diploma"}

    d.add_student(
        id="stu-1", name="Ravi Kumar", gender=Gender.MALE, parent_phone="9876543210",
        course="B.Tech", branch="CSE",
    )
    d.add_student(
        id="stu-2", name="Lakshmi Devi", gender=Gender.FEMALE, parent_phone="9876500000",
        course="sql_1", branch="ECE",
    )
    d.add_student(
        id="stu-3", name="Anil Reddy", gender=Gender.MALE, parent_phone="9000000003",
        course="Diploma", branch="Mechanical",
    )
    d.add_student(
        id="stu-4", name="Suresh Babu", gender=Gender.MALE, parent_phone=None,
        course="BTECH", branch="CSE", parent_permission_for_outing=False,
    )

    d.add_staff(id="warden-1", name="Warden One", role=StaffRole.WARDEN)
    d.add_staff(id="principal-btech", name="Principal BTech", role=StaffRole.PRINCIPAL, course="sql_1")
    d.add_staff(id="principal-diploma", name="Principal Diploma", role=StaffRole.PRINCIPAL, course="Diploma")
    d.add_staff(
        id="sub-admin-1", name="Sub Admin", role=StaffRole.SUB_ADMIN,
        assigned_courses=["B.Tech"], permissions=[LEAVE_MANAGEMENT_PERMISSION],
    )
    d.add_staff(id="guard-1", name="Guard One", role=StaffRole.SECURITY)
    d.add_staff(id="guard-2", name="Guard Two", role=StaffRole.SECURITY)
    return d


@pytest.fixture
def notifications():
    return RecordingNotificationSender()


@pytest.fixture
def sms():
    return FakeSmsSender()


@pytest.fixture
def app_settings():
    return Settings(
        ENVIRONMENT="testing",
        outing=OutingSettings(TIMEZONE="Asia/Kolkata"),
        otp=OtpSettings(OTP_RESEND_COOLDOWN_MINUTES=5, OTP_MAX_FAILED_ATTEMPTS=3, OTP_LOCKOUT_MINUTES=15),
        notifications=NotificationSettings(SMS_ENABLED=True, NOTIFICATION_TIMEOUT_SECONDS=5.0),
    )


@pytest.fixture
def make_factory(directory, notifications, sms, clock, app_settings):
    created = []

    def build(db_session):
        factory = OutingServiceFactory(
            db_session,
            directory,
            notification_sender=notifications,
            sms_sender=sms,
            clock=clock,
            settings=app_settings,
        )
        created.append(factory)
        return factory

    yield build
    for factory in created:
        factory.close()


@pytest.fixture
def factory(make_factory, db):
    return make_factory(db)


@pytest.fixture
def create_leave(factory):
    def create(student_id: str = "stu-1", **kwargs):
        result = factory.leave_requests().create_request(
            student_id, "Leave", kwargs.pop("reason", "Going home"), leave_fields(**kwargs)
        )
        assert result.is_success, result.message
        return result.data

    return create


@pytest.fixture
def approved_leave(factory, create_leave, sms):
    """A Leave for stu-1 from today 12:00 to 12 March 12:00, approved by the principal."""
    request = create_leave()
    verified = factory.otp().verify_otp(request.id, "warden-1", sms.last_code)
    assert verified.is_success, verified.message
    approved = factory.approvals().principal_approve(request.id, "principal-btech")
    assert approved.is_success, approved.message
    return approved.data
