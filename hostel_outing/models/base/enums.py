"""
Enumerations shared by the outing models, schemas and services.
"""

from enum import Enum


class ApplicationType(str, Enum):
    """Kind of outing a student can request."""

    LEAVE = "Leave"
    PERMISSION = "Permission"
    STAY_IN_HOSTEL = "Stay in Hostel"


class LeaveRequestStatus(str, Enum):
    """Lifecycle status of a leave request."""

    PENDING = "Pending"
    PENDING_OTP_VERIFICATION = "Pending OTP Verification"
    WARDEN_VERIFIED = "Warden Verified"
    PENDING_PRINCIPAL_APPROVAL = "Pending Principal Approval"
    APPROVED = "Approved"
    REJECTED = "Rejected"
    WARDEN_RECOMMENDED = "Warden Recommended"
    PRINCIPAL_APPROVED = "Principal Approved"
    PRINCIPAL_REJECTED = "Principal Rejected"


class VerificationStatus(str, Enum):
    """Gate verification state of an approved pass."""

    NOT_VERIFIED = "Not Verified"
    VERIFIED = "Verified"
    EXPIRED = "Expired"
    COMPLETED = "Completed"


class VisitType(str, Enum):
    OUTGOING = "outgoing"
    INCOMING = "incoming"


class WardenRecommendation(str, Enum):
    RECOMMENDED = "Recommended"
    NOT_RECOMMENDED = "Not Recommended"


class PrincipalDecision(str, Enum):
    APPROVED = "Approved"
    REJECTED = "Rejected"


class StaffRole(str, Enum):
    """Roles of staff members acting on requests."""

    WARDEN = "warden"
    PRINCIPAL = "principal"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"
    SUB_ADMIN = "sub_admin"
    SECURITY = "security"


class Gender(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class NotificationType(str, Enum):
    LEAVE = "leave"
    STAY_IN_HOSTEL_DECISION = "stay_in_hostel_decision"


__all__ = [
    "ApplicationType",
    "LeaveRequestStatus",
    "VerificationStatus",
    "VisitType",
    "WardenRecommendation",
    "PrincipalDecision",
    "StaffRole",
    "Gender",
    "NotificationType",
]
