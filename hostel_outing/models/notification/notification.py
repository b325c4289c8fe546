"""
In-app notification model.
"""

from typing import Optional

from sqlalchemy import Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hostel_outing.models.base.base_model import BaseModel, TimestampMixin

__all__ = ["Notification"]


class Notification(BaseModel, TimestampMixin):
    """
    Notification shown to a student or staff member inside the app.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notification_recipient_read", "recipient_id", "is_read"),
    )

    recipient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    notification_type: Mapped[str] = mapped_column(String(40), nullable=False, default="leave")
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    related_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    sender_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="high")
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
