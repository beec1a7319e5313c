"""Unit tests for daotimeline.domain.date_utils."""

from datetime import datetime, timedelta, timezone

import pytest

from daotimeline.domain.date_utils import (
    add_days,
    add_months,
    end_of_day,
    format_date_range,
    format_time,
    format_ymd,
    get_date_label,
    is_past_date,
    is_same_day,
    parse_ymd,
    start_of_day,
)

pytestmark = pytest.mark.unit


class TestDayArithmetic:
    def test_start_and_end_of_day(self):
        dt = datetime(2024, 1, 15, 13, 45, 12)
        assert start_of_day(dt) == datetime(2024, 1, 15)
        assert end_of_day(dt) == datetime(2024, 1, 15, 23, 59, 59, 999999)

    def test_add_months_clamps_month_end(self):
        assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)
        assert add_months(datetime(2024, 3, 15), -1) == datetime(2024, 2, 15)

    def test_add_days(self):
        assert add_days(datetime(2024, 2, 28), 2) == datetime(2024, 3, 1)

    def test_is_same_day(self):
        assert is_same_day(datetime(2024, 1, 15, 0, 0), datetime(2024, 1, 15, 23, 59))
        assert not is_same_day(datetime(2024, 1, 15, 23, 59), datetime(2024, 1, 16, 0, 0))

    def test_is_same_day_in_explicit_zone(self):
        tz = timezone(timedelta(hours=-5))
        first = datetime(2024, 1, 16, 2, 0, tzinfo=timezone.utc)
        second = datetime(2024, 1, 15, 12, 0, tzinfo=tz)
        assert is_same_day(first, second, tz)

    def test_is_past_date(self, now):
        assert is_past_date(datetime(2024, 1, 14, 23, 59), now)
        assert not is_past_date(datetime(2024, 1, 15, 0, 0), now)
        assert not is_past_date(datetime(2024, 1, 15, 8, 0), now)


class TestLabels:
    def test_today_and_tomorrow(self, now):
        assert get_date_label(datetime(2024, 1, 15, 18, 0), now) == "Today"
        assert get_date_label(datetime(2024, 1, 16), now) == "Tomorrow"

    def test_full_date(self, now):
        assert get_date_label(datetime(2024, 1, 22), now) == "Monday, January 22, 2024"
        assert get_date_label(datetime(2024, 1, 14), now) == "Sunday, January 14, 2024"

    def test_label_follows_reference_zone(self):
        tz = timezone(timedelta(hours=9))
        now = datetime(2024, 1, 15, 9, 0, tzinfo=tz)
        # 2024-01-15 16:00 UTC is already the 16th in UTC+9
        assert get_date_label(datetime(2024, 1, 15, 16, 0, tzinfo=timezone.utc), now) == "Tomorrow"


class TestDisplayFormatting:
    def test_format_time(self):
        assert format_time(datetime(2024, 1, 15, 9, 5)) == "9:05 AM"
        assert format_time(datetime(2024, 1, 15, 0, 0)) == "12:00 AM"
        assert format_time(datetime(2024, 1, 15, 12, 30)) == "12:30 PM"
        assert format_time(datetime(2024, 1, 15, 23, 59)) == "11:59 PM"

    def test_all_day_ranges(self):
        start = datetime(2024, 1, 15)
        assert format_date_range(start, None, True) == "All day"
        assert format_date_range(start, datetime(2024, 1, 15, 23, 0), True) == "All day"
        assert format_date_range(start, datetime(2024, 1, 17), True) == "Jan 15 - Jan 17"

    def test_timed_ranges(self):
        start = datetime(2024, 1, 15, 9, 0)
        assert format_date_range(start, None, False) == "9:00 AM"
        assert format_date_range(start, datetime(2024, 1, 15, 10, 30), False) == "9:00 AM - 10:30 AM"
        assert format_date_range(datetime(2024, 1, 15, 21, 0), datetime(2024, 1, 16, 1, 0), False) == (
            "Jan 15, 9:00 PM - Jan 16, 1:00 AM"
        )


class TestYmd:
    def test_parse_and_format(self):
        assert parse_ymd("2024-03-01") == datetime(2024, 3, 1)
        assert format_ymd(datetime(2024, 3, 1, 15, 0)) == "2024-03-01"

    @pytest.mark.parametrize("value", ["2024-02-30", "20240301", "soon"])
    def test_parse_rejects_invalid(self, value):
        with pytest.raises(ValueError):
            parse_ymd(value)
