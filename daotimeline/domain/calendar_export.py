"""Export a single timeline event as an iCalendar (RFC 5545) document."""

from __future__ import annotations

import datetime
import logging
import re
from pathlib import Path
from typing import Optional, Union

from ..calendar.ics_utils import CRLF, fold_line
from ..calendar.ics_values import escape_text, format_ics_date, format_ics_datetime
from ..calendar.models import SerializedEvent, UnifiedEvent
from ..core.timezone_utils import now_utc, to_instant
from ..exceptions import InvalidEventError
from .adapters import deserialize_event

logger = logging.getLogger(__name__)

PRODID = "-//DAOx//Timeline//EN"
UID_DOMAIN = "daox"

_FILENAME_STRIP_RE = re.compile(r"[^A-Za-z0-9\-_ ]")


def _text(value: str) -> str:
    return escape_text(value.replace("\r\n", "\n").replace("\r", "\n"))


def generate_ics(
    event: Union[UnifiedEvent, SerializedEvent], *, now: Optional[datetime.datetime] = None
) -> str:
    """Render one event as a VCALENDAR document.

    Args:
        event: Event to export (serialized events are decoded first)
        now: DTSTAMP value (defaults to the current UTC time)

    Returns:
        CRLF-separated document; lines over 75 characters are folded.

    Raises:
        InvalidEventError: If the event ends before it starts
    """
    if isinstance(event, SerializedEvent):
        event = deserialize_event(event)

    if event.end_date is not None and to_instant(event.end_date) < to_instant(event.start_date):
        raise InvalidEventError(f"Cannot export {event.id!r}: end precedes start")

    lines = [
        "BEGIN:VCALENDAR",
        "VERSION:2.0",
        f"PRODID:{PRODID}",
        "BEGIN:VEVENT",
        f"UID:{event.id}@{UID_DOMAIN}",
        f"DTSTAMP:{format_ics_datetime(now or now_utc())}",
    ]

    if event.is_all_day:
        lines.append(f"DTSTART;VALUE=DATE:{format_ics_date(event.start_date)}")
        if event.end_date is not None:
            lines.append(f"DTEND;VALUE=DATE:{format_ics_date(event.end_date)}")
    else:
        lines.append(f"DTSTART:{format_ics_datetime(event.start_date)}")
        if event.end_date is not None:
            lines.append(f"DTEND:{format_ics_datetime(event.end_date)}")

    lines.append(f"SUMMARY:{_text(event.title)}")
    if event.description:
        lines.append(f"DESCRIPTION:{_text(event.description)}")
    if event.location:
        lines.append(f"LOCATION:{_text(event.location)}")
    if event.source_url:
        lines.append(f"URL:{event.source_url}")

    lines.extend(["END:VEVENT", "END:VCALENDAR"])
    return CRLF.join(fold_line(line) for line in lines)


def export_filename(event: Union[UnifiedEvent, SerializedEvent]) -> str:
    """Download file name: the title reduced to letters, digits, ``-``, ``_`` and spaces."""
    stem = _FILENAME_STRIP_RE.sub("", event.title).strip()
    return f"{stem or 'event'}.ics"


def write_ics_file(
    event: Union[UnifiedEvent, SerializedEvent],
    directory: Path,
    *,
    now: Optional[datetime.datetime] = None,
) -> Path:
    """Write the exported document into ``directory`` under ``export_filename``.

    Returns:
        Path of the written file
    """
    path = Path(directory) / export_filename(event)
    path.write_bytes(generate_ics(event, now=now).encode("utf-8"))
    logger.debug("Exported event %s to %s", event.id, path)
    return path
