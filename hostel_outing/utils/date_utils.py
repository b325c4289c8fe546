"""
IST-aware date helpers for the outing workflow.

All calendar reasoning ("today", "start of day", "before today") happens
in the hostel's local timezone. Values stored and compared internally are
timezone-aware UTC datetimes.
"""

import re
from datetime import date, datetime, time, timedelta
from typing import Optional, Tuple, Union

import pytz
from dateutil import parser

from hostel_outing.core.config import settings

DateLike = Union[date, datetime]

TIME_OF_DAY_PATTERN = re.compile(r'^([0-1]?[0-9]|2[0-3]):[0-5][0-9]$')
ISO_DATE_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def now_utc() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(pytz.UTC)


def ensure_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are taken to be UTC."""
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def parse_time_of_day(value: Union[str, time]) -> time:
    """
    Parse a 24-hour ``HH:MM`` string.

    Raises:
        ValueError: If the value is not a valid time of day
    """
    if isinstance(value, time):
        return value.replace(second=0, microsecond=0)
    text = str(value).strip()
    if not TIME_OF_DAY_PATTERN.match(text):
        raise ValueError(f"Invalid time format: {value!r}. Use HH:MM (24-hour format)")
    hours, minutes = text.split(':')
    return time(int(hours), int(minutes))


class TimeWindow:
    """
    Calendar arithmetic in a fixed local timezone.

    Every method that depends on "now" takes it as an argument so the
    caller controls the clock.
    """

    def __init__(self, timezone_name: Optional[str] = None):
        self.timezone_name = timezone_name or settings.outing.TIMEZONE
        self.tz = pytz.timezone(self.timezone_name)

    def __repr__(self) -> str:
        return f"TimeWindow({self.timezone_name!r})"

    def to_local(self, value: datetime) -> datetime:
        return ensure_utc(value).astimezone(self.tz)

    def local_date(self, value: DateLike) -> date:
        """Calendar date of ``value`` in local time; plain dates pass through."""
        if isinstance(value, datetime):
            return self.to_local(value).date()
        return value

    def time_of_day(self, value: datetime) -> time:
        local = self.to_local(value)
        return time(local.hour, local.minute, local.second)

    def localize(self, day: date, at: time = time.min) -> datetime:
        """Local wall-clock ``day at`` expressed as an aware UTC datetime."""
        return self.tz.localize(datetime.combine(day, at)).astimezone(pytz.UTC)

    def start_of_day(self, day: DateLike) -> datetime:
        return self.localize(self.local_date(day))

    def end_of_day(self, day: DateLike) -> datetime:
        return self.localize(self.local_date(day), time.max)

    def today(self, now: datetime) -> date:
        return self.local_date(now)

    def today_window(self, now: datetime) -> Tuple[datetime, datetime]:
        """Half-open ``[start of today, start of tomorrow)`` in UTC."""
        today = self.today(now)
        return self.localize(today), self.localize(today + timedelta(days=1))

    def is_today(self, value: DateLike, now: datetime) -> bool:
        return self.local_date(value) == self.today(now)

    def is_before_today(self, value: DateLike, now: datetime) -> bool:
        return self.local_date(value) < self.today(now)

    def parse_datetime(self, value: Union[str, DateLike]) -> datetime:
        """
        Parse a datetime input into aware UTC.

        Naive inputs are read as local time; a bare date means local
        midnight of that day.

        Raises:
            ValueError: If the value cannot be parsed
        """
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            return self.localize(value)
        else:
            text = str(value).strip()
            if not text:
                raise ValueError("Empty datetime value")
            try:
                parsed = parser.isoparse(text)
            except ValueError:
                try:
                    parsed = parser.parse(text)
                except (ValueError, OverflowError) as exc:
                    raise ValueError(f"Unable to parse datetime: {value!r}") from exc

        if parsed.tzinfo is None:
            return self.tz.localize(parsed).astimezone(pytz.UTC)
        return parsed.astimezone(pytz.UTC)

    def parse_date(self, value: Union[str, DateLike]) -> date:
        """
        Parse a calendar date input.

        Raises:
            ValueError: If the value cannot be parsed
        """
        if isinstance(value, datetime):
            return self.local_date(value) if value.tzinfo else value.date()
        if isinstance(value, date):
            return value
        text = str(value).strip()
        if ISO_DATE_PATTERN.match(text):
            return date.fromisoformat(text)
        parsed = self.parse_datetime(text)
        return self.local_date(parsed)


_default_window: Optional[TimeWindow] = None


def default_time_window() -> TimeWindow:
    """Process-wide TimeWindow for the configured hostel timezone."""
    global _default_window
    if _default_window is None:
        _default_window = TimeWindow()
    return _default_window
