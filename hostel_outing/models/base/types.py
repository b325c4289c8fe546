"""
Custom SQLAlchemy column types.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator

from hostel_outing.utils.date_utils import ensure_utc


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime column stored as naive UTC.

    Bound values must be aware (naive values are taken to be UTC);
    loaded values are always aware UTC regardless of backend support
    for timezones.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return ensure_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        return ensure_utc(value)
