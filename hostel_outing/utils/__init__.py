"""
Utility helpers.
"""

from hostel_outing.utils.date_utils import (
    TimeWindow,
    default_time_window,
    ensure_utc,
    now_utc,
    parse_time_of_day,
)

__all__ = [
    "TimeWindow",
    "default_time_window",
    "ensure_utc",
    "now_utc",
    "parse_time_of_day",
]
