from datetime import date, datetime, time

import pytest
import pytz

from hostel_outing.utils.date_utils import TimeWindow, ensure_utc, parse_time_of_day
from tests.support import ist


@pytest.fixture
def window():
    return TimeWindow("Asia/Kolkata")


class TestParseTimeOfDay:
    @pytest.mark.parametrize("value, expected", [
        ("09:05", time(9, 5)),
        ("9:05", time(9, 5)),
        ("23:59", time(23, 59)),
        ("00:00", time(0, 0)),
    ])
    def test_valid(self, value, expected):
        assert parse_time_of_day(value) == expected

    @pytest.mark.parametrize("value", ["24:00", "9:5", "12:60", "noon", ""])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_time_of_day(value)


class TestTimeWindow:
    def test_naive_input_is_local_time(self, window):
        assert window.parse_datetime("2026-03-10T12:00") == ist(2026, 3, 10, 12, 0)

    def test_bare_date_is_local_midnight(self, window):
        assert window.parse_datetime("2026-03-10") == ist(2026, 3, 10, 0, 0)

    def test_aware_input_is_converted_to_utc(self, window):
        parsed = window.parse_datetime("2026-03-10T12:00:00Z")
        assert parsed == datetime(2026, 3, 10, 12, 0, tzinfo=pytz.UTC)

    def test_unparseable_input(self, window):
        with pytest.raises(ValueError):
            window.parse_datetime("not a date")

    def test_today_follows_local_calendar(self, window):
        # 19:00 UTC on the 10th is already 00:30 IST on the 11th
        now = datetime(2026, 3, 10, 19, 0, tzinfo=pytz.UTC)
        assert window.today(now) == date(2026, 3, 11)

    def test_today_window_is_half_open_local_day(self, window):
        start, end = window.today_window(ist(2026, 3, 11, 0, 30))
        assert start == ist(2026, 3, 11)
        assert end == ist(2026, 3, 12)

    def test_is_before_today(self, window):
        now = ist(2026, 3, 11, 0, 30)
        assert window.is_before_today(date(2026, 3, 10), now)
        assert window.is_before_today(ist(2026, 3, 10, 23, 59), now)
        assert not window.is_before_today(ist(2026, 3, 11, 0, 0), now)

    def test_end_of_day_is_last_local_instant(self, window):
        end = window.end_of_day(date(2026, 3, 10))
        assert window.to_local(end).time() == time.max
        assert window.local_date(end) == date(2026, 3, 10)

    def test_parse_date(self, window):
        assert window.parse_date("2026-03-10") == date(2026, 3, 10)
        assert window.parse_date(datetime(2026, 3, 10, 20, 0, tzinfo=pytz.UTC)) == date(2026, 3, 11)


def test_ensure_utc_treats_naive_as_utc():
    assert ensure_utc(datetime(2026, 3, 10, 8, 0)) == datetime(2026, 3, 10, 8, 0, tzinfo=pytz.UTC)
