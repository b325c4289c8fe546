"""
Base model package.
"""

from hostel_outing.models.base.base_model import Base, BaseModel, TimestampMixin
from hostel_outing.models.base.types import UTCDateTime

__all__ = [
    "Base",
    "BaseModel",
    "TimestampMixin",
    "UTCDateTime",
]
