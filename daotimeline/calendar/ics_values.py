"""iCalendar value decoders and encoders.

Covers TEXT escaping (RFC 5545 §3.3.11), DATE / DATE-TIME decoding (all-day vs
timed, UTC vs floating local) and the DURATION subset used by event blocks.
"""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from ..core.timezone_utils import to_instant, to_local
from ..exceptions import ICSValueError

_ESCAPE_MAP = {"\\": "\\\\", ";": "\\;", ",": "\\,", "\n": "\\n"}
_ESCAPE_RE = re.compile(r"[\\;,\n]")
_UNESCAPE_MAP = {"\\": "\\", ";": ";", ",": ",", "n": "\n", "N": "\n"}
_UNESCAPE_RE = re.compile(r"\\([\\;,nN])")

_DATE_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_DATETIME_RE = re.compile(r"^(\d{4})(\d{2})(\d{2})T(\d{2})(\d{2})(\d{2})?(Z)?$", re.IGNORECASE)
_DURATION_RE = re.compile(
    r"^(?P<sign>[+-])?P"
    r"(?:(?P<weeks>\d+)W)?"
    r"(?:(?P<days>\d+)D)?"
    r"(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$",
    re.IGNORECASE,
)


def escape_text(text: str) -> str:
    """Escape a TEXT value: backslash, semicolon, comma and newline."""
    return _ESCAPE_RE.sub(lambda m: _ESCAPE_MAP[m.group(0)], text)


def unescape_text(value: str) -> str:
    """Reverse ``escape_text``; ``\\N`` is accepted as a newline as well.

    Works in a single pass so an escaped backslash followed by ``n`` is never
    mistaken for an escaped newline. Unknown escapes are left untouched.
    """
    return _UNESCAPE_RE.sub(lambda m: _UNESCAPE_MAP[m.group(1)], value)


def is_date_value(value: str, params: Optional[dict[str, str]] = None) -> bool:
    """True when a DTSTART/DTEND value denotes a whole day."""
    value_type = (params or {}).get("VALUE", "").upper()
    return value_type == "DATE" or len(value.strip()) == 8


def parse_ics_date(value: str, params: Optional[dict[str, str]] = None) -> tuple[datetime, bool]:
    """Decode a DATE or DATE-TIME value.

    Returns:
        ``(datetime, is_all_day)``. All-day values and date-times without a
        ``Z`` suffix are naive local times (TZID is not resolved); ``Z``
        values are UTC-aware.

    Raises:
        ICSValueError: If the value does not match either format.
    """
    raw = value.strip()
    try:
        if is_date_value(raw, params):
            match = _DATE_RE.match(raw[:8])
            if not match:
                raise ICSValueError(f"Invalid DATE value: {value!r}")
            year, month, day = (int(part) for part in match.groups())
            return datetime(year, month, day), True

        match = _DATETIME_RE.match(raw)
        if not match:
            raise ICSValueError(f"Invalid DATE-TIME value: {value!r}")
        year, month, day, hour, minute = (int(part) for part in match.groups()[:5])
        second = int(match.group(6) or 0)
        if match.group(7):
            return datetime(year, month, day, hour, minute, second, tzinfo=timezone.utc), False
        return datetime(year, month, day, hour, minute, second), False
    except ValueError as e:
        if isinstance(e, ICSValueError):
            raise
        raise ICSValueError(f"Out of range date value {value!r}: {e}") from e


def parse_duration(value: str) -> Optional[timedelta]:
    """Parse an ISO 8601 duration (weeks, days, hours, minutes, seconds).

    Returns None when the value does not match the supported pattern.
    """
    match = _DURATION_RE.match(value.strip())
    if not match:
        return None
    parts = {k: int(v) for k, v in match.groupdict().items() if k != "sign" and v}
    duration = timedelta(
        weeks=parts.get("weeks", 0),
        days=parts.get("days", 0),
        hours=parts.get("hours", 0),
        minutes=parts.get("minutes", 0),
        seconds=parts.get("seconds", 0),
    )
    return -duration if match.group("sign") == "-" else duration


def apply_duration(start: datetime, value: str) -> datetime:
    """Return ``start`` shifted by a DURATION value, or ``start`` if it does not parse."""
    duration = parse_duration(value)
    if duration is None:
        return start
    return start + duration


def format_ics_date(dt: datetime) -> str:
    """Format the local calendar day of ``dt`` as ``YYYYMMDD``."""
    day = dt if dt.tzinfo is None else to_local(dt, None)
    return f"{day.year:04d}{day.month:02d}{day.day:02d}"


def format_ics_datetime(dt: datetime) -> str:
    """Format ``dt`` as a UTC DATE-TIME (``YYYYMMDDTHHMMSSZ``)."""
    utc = to_instant(dt).astimezone(timezone.utc)
    return f"{utc.year:04d}{utc.month:02d}{utc.day:02d}T{utc:%H%M%S}Z"
