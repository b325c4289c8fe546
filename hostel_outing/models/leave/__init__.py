"""
Leave request models.
"""

from hostel_outing.models.leave.leave_request import GatePassVisit, LeaveRequest

__all__ = [
    "LeaveRequest",
    "GatePassVisit",
]
