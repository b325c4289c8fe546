"""
SQLAlchemy models.

Importing this package registers every table on ``Base.metadata``.
"""

from hostel_outing.models.base import Base, BaseModel
from hostel_outing.models.base.enums import (
    ApplicationType,
    Gender,
    LeaveRequestStatus,
    NotificationType,
    PrincipalDecision,
    StaffRole,
    VerificationStatus,
    VisitType,
    WardenRecommendation,
)
from hostel_outing.models.leave import GatePassVisit, LeaveRequest
from hostel_outing.models.notification import Notification

__all__ = [
    "Base",
    "BaseModel",
    "LeaveRequest",
    "GatePassVisit",
    "Notification",
    "ApplicationType",
    "Gender",
    "LeaveRequestStatus",
    "NotificationType",
    "PrincipalDecision",
    "StaffRole",
    "VerificationStatus",
    "VisitType",
    "WardenRecommendation",
]
