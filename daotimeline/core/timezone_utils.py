"""Clock and instant helpers for daotimeline.

Only two kinds of datetimes exist in the timeline: timezone-aware values
(decoded from ``Z``-suffixed iCalendar values or Unix timestamps) and naive
values that mean "local wall-clock time". No IANA database lookups happen here.
"""

from __future__ import annotations

import datetime
import logging
import os

logger = logging.getLogger(__name__)

TEST_TIME_ENV_VAR = "DAO_TIMELINE_TEST_TIME"


def _test_time_override() -> datetime.datetime | None:
    """Return the DAO_TIMELINE_TEST_TIME override, if set.

    A value without an offset is returned naive and means local wall-clock time.
    """
    test_time = os.environ.get(TEST_TIME_ENV_VAR)
    if not test_time:
        return None
    try:
        from dateutil import parser as date_parser

        return date_parser.isoparse(test_time)
    except (ValueError, OverflowError) as e:
        logger.warning("Failed to parse %s=%r: %s", TEST_TIME_ENV_VAR, test_time, e)
        return None


def now_utc() -> datetime.datetime:
    """Return the current time in UTC.

    Can be overridden for testing via the DAO_TIMELINE_TEST_TIME environment
    variable (ISO 8601, e.g. "2024-01-15T08:00:00Z").
    """
    override = _test_time_override()
    if override is not None:
        return override.astimezone(datetime.timezone.utc)
    return datetime.datetime.now(datetime.timezone.utc)


def now_local() -> datetime.datetime:
    """Return the current local wall-clock time as a naive datetime.

    Aware values are framed against it in the host zone, with the offset in
    force on their own date. Honours the same test override as
    ``now_utc``; an override carrying an explicit offset stays aware so tests
    can pin the frame.
    """
    override = _test_time_override()
    if override is not None:
        return override
    return datetime.datetime.now()


def to_instant(dt: datetime.datetime) -> datetime.datetime:
    """Return an aware datetime suitable for ordering and comparison.

    Naive values are local wall-clock times and are interpreted in the host's
    local offset, the same way the decoders produced them.
    """
    if dt.tzinfo is None:
        return dt.astimezone()
    return dt


def to_local(dt: datetime.datetime, tz: datetime.tzinfo | None) -> datetime.datetime:
    """Convert ``dt`` into the frame of ``tz`` (the host offset when ``tz`` is None)."""
    instant = to_instant(dt)
    if tz is None:
        return instant.astimezone()
    return instant.astimezone(tz)
