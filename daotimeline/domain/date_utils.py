"""Day arithmetic and display formatting for the timeline.

A naive value falls on its own calendar day. An aware value falls on the day
it has in the frame of the reference ``now``: its tz when aware, otherwise the
host zone.
"""

from __future__ import annotations

import datetime
from typing import Optional

from dateutil.relativedelta import relativedelta


def in_frame(dt: datetime.datetime, tz: Optional[datetime.tzinfo]) -> datetime.datetime:
    """Express ``dt`` as wall-clock time of the frame ``tz``.

    Naive values already are local wall-clock time and are returned unchanged.
    Aware values are converted into ``tz``, or into the host zone (with the
    offset in force on that date) when ``tz`` is None.
    """
    if dt.tzinfo is None:
        return dt
    if tz is None:
        return dt.astimezone()
    return dt.astimezone(tz)


def local_day(dt: datetime.datetime, tz: Optional[datetime.tzinfo] = None) -> datetime.date:
    """Calendar day on which ``dt`` falls in the given frame."""
    return in_frame(dt, tz).date()


def start_of_day(dt: datetime.datetime) -> datetime.datetime:
    """Midnight of the day of ``dt``, in the frame of ``dt`` itself."""
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def end_of_day(dt: datetime.datetime) -> datetime.datetime:
    """Last representable moment of the day of ``dt``."""
    return dt.replace(hour=23, minute=59, second=59, microsecond=999999)


def is_same_day(
    first: datetime.datetime, second: datetime.datetime, tz: Optional[datetime.tzinfo] = None
) -> bool:
    """True when both values fall on the same calendar day in ``tz``."""
    return local_day(first, tz) == local_day(second, tz)


def is_past_date(dt: datetime.datetime, now: datetime.datetime) -> bool:
    """True when ``dt`` falls on a calendar day before the day of ``now``."""
    return local_day(dt, now.tzinfo) < now.date()


def add_days(dt: datetime.datetime, days: int) -> datetime.datetime:
    return dt + relativedelta(days=days)


def add_months(dt: datetime.datetime, months: int) -> datetime.datetime:
    """Add calendar months, clamping to the last day of shorter months."""
    return dt + relativedelta(months=months)


def get_date_label(dt: datetime.datetime, now: datetime.datetime) -> str:
    """Human readable label for the day of ``dt``.

    Args:
        dt: Any moment of the day to label
        now: Reference time; its tz decides what "today" is

    Returns:
        "Today", "Tomorrow" or e.g. "Monday, January 15, 2024"
    """
    day = local_day(dt, now.tzinfo)
    today = now.date()
    if day == today:
        return "Today"
    if day == today + datetime.timedelta(days=1):
        return "Tomorrow"
    return f"{day:%A}, {day:%B} {day.day}, {day.year}"


def format_time(dt: datetime.datetime, tz: Optional[datetime.tzinfo] = None) -> str:
    """Format a time as e.g. "9:05 AM"."""
    local = in_frame(dt, tz)
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{hour}:{local.minute:02d} {suffix}"


def _short_date(dt: datetime.datetime) -> str:
    return f"{dt:%b} {dt.day}"


def format_date_range(
    start: datetime.datetime,
    end: Optional[datetime.datetime],
    is_all_day: bool,
    tz: Optional[datetime.tzinfo] = None,
) -> str:
    """Format the span of an event for display.

    Examples:
        "All day", "Jan 15 - Jan 17", "9:00 AM", "9:00 AM - 10:30 AM",
        "Jan 15, 9:00 PM - Jan 16, 1:00 AM"
    """
    local_start = in_frame(start, tz)
    local_end = in_frame(end, tz) if end is not None else None

    if is_all_day:
        if local_end is None or local_end.date() == local_start.date():
            return "All day"
        return f"{_short_date(local_start)} - {_short_date(local_end)}"

    start_time = format_time(local_start)
    if local_end is None:
        return start_time
    if local_end.date() == local_start.date():
        return f"{start_time} - {format_time(local_end)}"
    return (
        f"{_short_date(local_start)}, {start_time} - "
        f"{_short_date(local_end)}, {format_time(local_end)}"
    )


def parse_ymd(value: str) -> datetime.datetime:
    """Parse "YYYY-MM-DD" into a naive local midnight.

    Raises:
        ValueError: If the value is not a valid calendar date
    """
    return datetime.datetime.strptime(value.strip(), "%Y-%m-%d")


def format_ymd(dt: datetime.datetime) -> str:
    """Format as "YYYY-MM-DD"."""
    return f"{dt.year:04d}-{dt.month:02d}-{dt.day:02d}"
