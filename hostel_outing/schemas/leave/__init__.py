"""
Leave request schemas.
"""

from hostel_outing.schemas.leave.leave_base import (
    FIELD_GROUPS,
    LeaveFields,
    PermissionFields,
    RequestFields,
    StayInHostelFields,
    apply_fields,
    fields_of,
)
from hostel_outing.schemas.leave.leave_response import (
    GatePassView,
    IncomingGatePassView,
    LeaveRequestResponse,
    OtpResendResponse,
    VisitRecordResponse,
    VisitResponse,
)

__all__ = [
    "FIELD_GROUPS",
    "LeaveFields",
    "PermissionFields",
    "RequestFields",
    "StayInHostelFields",
    "apply_fields",
    "fields_of",
    "GatePassView",
    "IncomingGatePassView",
    "LeaveRequestResponse",
    "OtpResendResponse",
    "VisitRecordResponse",
    "VisitResponse",
]
