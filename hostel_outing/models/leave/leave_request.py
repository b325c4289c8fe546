"""
Leave request database models.

A leave request is the aggregate root of the outing workflow: it holds
the type-specific field group, the OTP state, the approval trail and the
gate-pass visit tracking. Gate-pass visits are owned exclusively by their
request and are removed with it.
"""

from datetime import date as Date, datetime
from typing import List, Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date as SQLDate,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hostel_outing.models.base.base_model import BaseModel, TimestampMixin
from hostel_outing.models.base.enums import (
    ApplicationType,
    LeaveRequestStatus,
    PrincipalDecision,
    VerificationStatus,
    VisitType,
    WardenRecommendation,
)
from hostel_outing.models.base.types import UTCDateTime

__all__ = [
    "LeaveRequest",
    "GatePassVisit",
]


def _enum_type(enum_cls, length: int) -> Enum:
    """Store enum values (not member names) as plain strings."""
    return Enum(
        enum_cls,
        values_callable=lambda members: [member.value for member in members],
        native_enum=False,
        length=length,
        validate_strings=True,
    )


class LeaveRequest(BaseModel, TimestampMixin):
    """
    Student outing request.

    Exactly one field group is populated, selected by ``application_type``:
    Leave (start/end/gate pass datetimes), Permission (date plus out/in
    times) or Stay in Hostel (stay date).
    """

    __tablename__ = "leave_requests"
    __table_args__ = (
        CheckConstraint(
            """
            (application_type = 'Leave'
                AND start_date IS NOT NULL AND end_date IS NOT NULL AND gate_pass_at IS NOT NULL
                AND permission_date IS NULL AND out_time IS NULL AND in_time IS NULL
                AND stay_date IS NULL)
            OR (application_type = 'Permission'
                AND permission_date IS NOT NULL AND out_time IS NOT NULL AND in_time IS NOT NULL
                AND start_date IS NULL AND end_date IS NULL AND gate_pass_at IS NULL
                AND stay_date IS NULL)
            OR (application_type = 'Stay in Hostel'
                AND stay_date IS NOT NULL
                AND start_date IS NULL AND end_date IS NULL AND gate_pass_at IS NULL
                AND permission_date IS NULL AND out_time IS NULL AND in_time IS NULL)
            """,
            name="ck_leave_request_field_group"
        ),
        CheckConstraint(
            "visit_count >= 0 AND visit_count <= max_visits",
            name="ck_leave_request_visit_cap"
        ),
        CheckConstraint(
            "NOT (rejection_reason IS NOT NULL AND principal_decision = 'Approved')",
            name="ck_leave_request_rejection_excludes_approval"
        ),
        UniqueConstraint(
            "student_id", "application_type", "request_day",
            name="uq_leave_request_one_per_type_per_day"
        ),
        Index("ix_leave_request_student_type_created", "student_id", "application_type", "created_at"),
        Index("ix_leave_request_status", "status"),
    )

    # Ownership and type
    student_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
        comment="Requesting student (immutable after creation)"
    )
    application_type: Mapped[ApplicationType] = mapped_column(
        _enum_type(ApplicationType, 32),
        nullable=False,
    )
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    request_day: Mapped[Date] = mapped_column(
        SQLDate,
        nullable=False,
        comment="Hostel-local calendar day the request was created on"
    )
    status: Mapped[LeaveRequestStatus] = mapped_column(
        _enum_type(LeaveRequestStatus, 40),
        nullable=False,
    )

    # Leave field group
    start_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    end_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    gate_pass_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Permission field group
    permission_date: Mapped[Optional[Date]] = mapped_column(SQLDate, nullable=True)
    out_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)
    in_time: Mapped[Optional[str]] = mapped_column(String(5), nullable=True)

    # Stay in Hostel field group
    stay_date: Mapped[Optional[Date]] = mapped_column(SQLDate, nullable=True)

    # Parent OTP
    otp_code: Mapped[Optional[str]] = mapped_column(String(4), nullable=True)
    otp_resend_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    otp_last_resend_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    otp_failed_attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    otp_locked_until: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Warden verification (OTP accepted)
    warden_verified_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    warden_verified_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Warden recommendation (Stay in Hostel)
    warden_recommendation: Mapped[Optional[WardenRecommendation]] = mapped_column(
        _enum_type(WardenRecommendation, 20),
        nullable=True,
    )
    warden_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recommended_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    recommended_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Principal decision
    principal_decision: Mapped[Optional[PrincipalDecision]] = mapped_column(
        _enum_type(PrincipalDecision, 20),
        nullable=True,
    )
    principal_comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    decided_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    decided_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Rejection
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    rejected_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    rejected_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Gate pass
    qr_available_from: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    max_visits: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    visit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    visit_locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    outgoing_visit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    incoming_visit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    incoming_qr_generated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    incoming_qr_generated_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    incoming_qr_expires_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Guard verification
    verification_status: Mapped[VerificationStatus] = mapped_column(
        _enum_type(VerificationStatus, 20),
        nullable=False,
        default=VerificationStatus.NOT_VERIFIED,
    )
    verified_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)
    completed_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime, nullable=True)

    # Optimistic concurrency
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    visits: Mapped[List["GatePassVisit"]] = relationship(
        "GatePassVisit",
        back_populates="leave_request",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="GatePassVisit.scanned_at",
    )

    __mapper_args__ = {
        "version_id_col": version,
    }

    @property
    def is_leave(self) -> bool:
        return self.application_type == ApplicationType.LEAVE

    @property
    def is_permission(self) -> bool:
        return self.application_type == ApplicationType.PERMISSION

    @property
    def is_stay_in_hostel(self) -> bool:
        return self.application_type == ApplicationType.STAY_IN_HOSTEL

    def visits_of_type(self, visit_type: VisitType) -> List["GatePassVisit"]:
        return [visit for visit in self.visits if visit.visit_type == visit_type]

    def __repr__(self) -> str:
        return (
            f"<LeaveRequest(id={self.id}, type={self.application_type.value if self.application_type else None}, "
            f"status={self.status.value if self.status else None})>"
        )


class GatePassVisit(BaseModel):
    """
    One physical gate scan of a pass. Append-only.
    """

    __tablename__ = "gate_pass_visits"
    __table_args__ = (
        Index("ix_gate_pass_visit_request_scanned", "leave_request_id", "scanned_at"),
    )

    leave_request_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("leave_requests.id", ondelete="CASCADE"),
        nullable=False,
    )
    scanned_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    scanned_by: Mapped[str] = mapped_column(String(64), nullable=False)
    location: Mapped[str] = mapped_column(String(120), nullable=False)
    visit_type: Mapped[VisitType] = mapped_column(
        _enum_type(VisitType, 10),
        nullable=False,
    )

    leave_request: Mapped["LeaveRequest"] = relationship(
        "LeaveRequest",
        back_populates="visits",
    )

    def __repr__(self) -> str:
        return (
            f"<GatePassVisit(request={self.leave_request_id}, type={self.visit_type.value}, "
            f"scanned_at={self.scanned_at})>"
        )
