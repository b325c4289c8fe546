"""
Data access layer.
"""

from hostel_outing.repositories.base import BaseRepository
from hostel_outing.repositories.leave import LeaveRequestRepository
from hostel_outing.repositories.notification import NotificationRepository

__all__ = [
    "BaseRepository",
    "LeaveRequestRepository",
    "NotificationRepository",
]
