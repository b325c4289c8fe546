"""
Leave request response schemas.

The stored OTP is never part of any response.
"""

from __future__ import annotations

from datetime import date as Date, datetime
from typing import List, Optional

from pydantic import Field

from hostel_outing.models.base.enums import (
    ApplicationType,
    LeaveRequestStatus,
    PrincipalDecision,
    VerificationStatus,
    VisitType,
    WardenRecommendation,
)
from hostel_outing.schemas.common.base import BaseSchema

__all__ = [
    "VisitResponse",
    "LeaveRequestResponse",
    "OtpResendResponse",
    "GatePassView",
    "IncomingGatePassView",
    "VisitRecordResponse",
]


class VisitResponse(BaseSchema):
    scanned_at: datetime
    scanned_by: str
    location: str
    visit_type: VisitType


class LeaveRequestResponse(BaseSchema):
    """Full view of a leave request."""

    id: str
    student_id: str
    application_type: ApplicationType
    reason: str
    status: LeaveRequestStatus

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    gate_pass_at: Optional[datetime] = None
    permission_date: Optional[Date] = None
    out_time: Optional[str] = None
    in_time: Optional[str] = None
    stay_date: Optional[Date] = None

    otp_resend_count: int = 0

    warden_verified_by: Optional[str] = None
    warden_verified_at: Optional[datetime] = None
    warden_recommendation: Optional[WardenRecommendation] = None
    warden_comment: Optional[str] = None
    recommended_by: Optional[str] = None
    recommended_at: Optional[datetime] = None
    principal_decision: Optional[PrincipalDecision] = None
    principal_comment: Optional[str] = None
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None

    qr_available_from: Optional[datetime] = None
    max_visits: int
    visit_count: int
    visit_locked: bool
    outgoing_visit_count: int
    incoming_visit_count: int
    incoming_qr_generated: bool
    incoming_qr_generated_at: Optional[datetime] = None
    incoming_qr_expires_at: Optional[datetime] = None
    verification_status: VerificationStatus
    verified_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    visits: List[VisitResponse] = Field(default_factory=list)

    created_at: datetime
    updated_at: datetime


class OtpResendResponse(BaseSchema):
    request_id: str
    resend_count: int
    delivered: bool


class GatePassView(BaseSchema):
    """What the student sees when opening the outgoing QR."""

    request_id: str
    student_id: str
    application_type: ApplicationType
    available: bool
    reason: Optional[str] = None
    available_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    visit_count: int
    max_visits: int
    remaining_visits: int
    visit_locked: bool


class IncomingGatePassView(BaseSchema):
    """What the student sees when opening the return QR."""

    request_id: str
    student_id: str
    available: bool
    reason: Optional[str] = None
    generated_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    outgoing_visit_count: int
    incoming_visit_count: int


class VisitRecordResponse(BaseSchema):
    """Result of a gate scan."""

    request_id: str
    visit_type: VisitType
    scanned_at: datetime
    visit_count: int
    max_visits: int
    remaining_visits: int
    visit_locked: bool
    outgoing_visit_count: int
    incoming_visit_count: int
    incoming_qr_generated: bool
    incoming_qr_expires_at: Optional[datetime] = None
    verification_status: VerificationStatus
