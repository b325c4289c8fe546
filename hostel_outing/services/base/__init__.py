"""
Base service layer components.
"""

from hostel_outing.services.base.service_result import (
    ServiceResult,
    ServiceError,
    ErrorCode,
    ErrorSeverity,
)
from hostel_outing.services.base.base_service import BaseService, Clock
from hostel_outing.services.base.collaborators import (
    StudentDirectory,
    NotificationSender,
    OtpSmsSender,
)
from hostel_outing.services.base.notification_dispatcher import (
    DispatchReport,
    NotificationDispatcher,
    InAppNotificationSender,
)

__all__ = [
    "ServiceResult",
    "ServiceError",
    "ErrorCode",
    "ErrorSeverity",
    "BaseService",
    "Clock",
    "StudentDirectory",
    "NotificationSender",
    "OtpSmsSender",
    "DispatchReport",
    "NotificationDispatcher",
    "InAppNotificationSender",
]
