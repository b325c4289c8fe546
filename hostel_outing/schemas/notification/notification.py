"""
Notification and SMS delivery schemas.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import Field

from hostel_outing.models.base.enums import NotificationType
from hostel_outing.schemas.common.base import BaseSchema

__all__ = [
    "NotificationPayload",
    "SmsDeliveryResult",
]


class NotificationPayload(BaseSchema):
    title: str
    message: str
    notification_type: NotificationType = NotificationType.LEAVE
    related_id: Optional[str] = None
    sender_id: Optional[str] = None
    priority: str = "high"


class SmsDeliveryResult(BaseSchema):
    success: bool
    message_ids: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    error: Optional[str] = None
