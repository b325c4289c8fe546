from hostel_outing.repositories.leave.leave_request_repository import LeaveRequestRepository

__all__ = ["LeaveRequestRepository"]
