"""
Base model configuration for SQLAlchemy ORM.

Provides the declarative base and the abstract model every table
inherits from.
"""

from datetime import datetime
from uuid import uuid4

from sqlalchemy import String
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from hostel_outing.models.base.types import UTCDateTime
from hostel_outing.utils.date_utils import now_utc


Base = declarative_base()


class BaseModel(Base):
    """
    Abstract base model with a UUID string primary key.
    """

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
        nullable=False,
        comment="Primary key (UUID)"
    )

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"


class TimestampMixin:
    """
    Mixin for automatic timestamp tracking.

    Timestamps are set from the application clock so that callers with
    an injected clock see consistent values.
    """

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=now_utc,
        index=True,
        comment="Record creation timestamp (UTC)"
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=now_utc,
        onupdate=now_utc,
        comment="Record last update timestamp (UTC)"
    )
