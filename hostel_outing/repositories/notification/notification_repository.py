"""
Notification repository for in-app notifications.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from hostel_outing.models.notification.notification import Notification
from hostel_outing.repositories.base.base_repository import BaseRepository


class NotificationRepository(BaseRepository[Notification]):

    def __init__(self, db: Session):
        super().__init__(Notification, db)

    def create_notification(
        self,
        recipient_id: str,
        title: str,
        message: str,
        notification_type: str,
        related_id: Optional[str] = None,
        sender_id: Optional[str] = None,
        priority: str = "high",
    ) -> Notification:
        notification = Notification(
            recipient_id=recipient_id,
            title=title,
            message=message,
            notification_type=notification_type,
            related_id=related_id,
            sender_id=sender_id,
            priority=priority,
            is_read=False,
        )
        return self.add(notification)

    def get_user_notifications(
        self,
        recipient_id: str,
        unread_only: bool = False,
        limit: int = 50,
    ) -> List[Notification]:
        stmt = select(Notification).where(Notification.recipient_id == recipient_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        return list(self.db.scalars(stmt))
