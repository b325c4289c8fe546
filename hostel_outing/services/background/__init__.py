"""
Background jobs.
"""

from hostel_outing.services.background.leave_expiry_service import (
    ExpiryRunResult,
    LeaveExpiryService,
)

__all__ = [
    "ExpiryRunResult",
    "LeaveExpiryService",
]
