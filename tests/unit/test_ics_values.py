"""Unit tests for iCalendar value decoders and encoders."""

from datetime import datetime, timedelta, timezone

import pytest

from daotimeline.calendar.ics_values import (
    apply_duration,
    escape_text,
    format_ics_date,
    format_ics_datetime,
    parse_duration,
    parse_ics_date,
    unescape_text,
)
from daotimeline.exceptions import ICSValueError

pytestmark = pytest.mark.unit


class TestTextEscaping:
    """Tests for TEXT escaping (RFC 5545 section 3.3.11)."""

    def test_escape_special_characters(self):
        assert escape_text("Meeting; with, commas\\and backslash") == (
            "Meeting\\; with\\, commas\\\\and backslash"
        )

    def test_escape_newline(self):
        assert escape_text("Line one\nLine two") == "Line one\\nLine two"

    def test_unescape_accepts_upper_case_n(self):
        assert unescape_text("a\\Nb\\nc") == "a\nb\nc"

    def test_escaped_backslash_before_n_is_not_a_newline(self):
        assert unescape_text("C:\\\\new") == "C:\\new"

    def test_unknown_escape_left_untouched(self):
        assert unescape_text("a\\xb") == "a\\xb"

    @pytest.mark.parametrize(
        "text",
        [
            "",
            "plain",
            "\\",
            "\\n",
            "a;b,c\nd\\e",
            "trailing backslash\\",
            "\\\\;;,,\n\n",
            "Zürich, Schweiz; 10:00",
        ],
    )
    def test_unescape_inverts_escape(self, text):
        assert unescape_text(escape_text(text)) == text


class TestParseIcsDate:
    """Tests for DATE and DATE-TIME decoding."""

    def test_date_value_is_all_day(self):
        assert parse_ics_date("20240115", {"VALUE": "DATE"}) == (datetime(2024, 1, 15), True)

    def test_eight_characters_without_param_is_all_day(self):
        assert parse_ics_date("20240115") == (datetime(2024, 1, 15), True)

    def test_utc_datetime_is_aware(self):
        dt, is_all_day = parse_ics_date("20240115T100000Z")
        assert dt == datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        assert dt.tzinfo is not None
        assert is_all_day is False

    def test_floating_datetime_is_naive(self):
        dt, is_all_day = parse_ics_date("20240115T100000", {"TZID": "Europe/Zurich"})
        assert dt == datetime(2024, 1, 15, 10, 0)
        assert dt.tzinfo is None
        assert is_all_day is False

    def test_seconds_are_optional(self):
        dt, _ = parse_ics_date("20240115T1030")
        assert dt == datetime(2024, 1, 15, 10, 30)

    @pytest.mark.parametrize("value", ["", "garbage", "2024-01-15", "20241315", "20240115T250000Z"])
    def test_malformed_values_raise(self, value):
        with pytest.raises(ICSValueError):
            parse_ics_date(value)

    def test_error_is_a_value_error(self):
        with pytest.raises(ValueError):
            parse_ics_date("nope")


class TestDurations:
    """Tests for the DURATION subset."""

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("PT1H", timedelta(hours=1)),
            ("PT1H30M", timedelta(hours=1, minutes=30)),
            ("P1D", timedelta(days=1)),
            ("P1W", timedelta(weeks=1)),
            ("P1DT2H3M4S", timedelta(days=1, hours=2, minutes=3, seconds=4)),
            ("-PT15M", -timedelta(minutes=15)),
        ],
    )
    def test_parse_duration(self, value, expected):
        assert parse_duration(value) == expected

    def test_unparseable_duration_returns_none(self):
        assert parse_duration("one hour") is None

    def test_apply_duration(self):
        start = datetime(2024, 1, 15, 10, 0)
        assert apply_duration(start, "PT45M") == datetime(2024, 1, 15, 10, 45)

    def test_apply_invalid_duration_keeps_start(self):
        start = datetime(2024, 1, 15, 10, 0)
        assert apply_duration(start, "bogus") == start


class TestFormatting:
    """Tests for DATE / DATE-TIME encoders."""

    def test_format_datetime_is_utc(self):
        dt = datetime(2025, 6, 15, 16, 0, tzinfo=timezone(timedelta(hours=2)))
        assert format_ics_datetime(dt) == "20250615T140000Z"

    def test_format_date_of_naive_value(self):
        assert format_ics_date(datetime(2025, 6, 15, 23, 30)) == "20250615"

    def test_parse_then_format_utc_value(self):
        dt, _ = parse_ics_date("20240229T235959Z")
        assert format_ics_datetime(dt) == "20240229T235959Z"
