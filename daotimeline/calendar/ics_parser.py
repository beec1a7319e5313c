"""Lenient iCalendar (RFC 5545) event parser.

Malformed input never raises: unusable lines, blocks and values are dropped and
reported to the optional diagnostic sink, so a broken feed degrades to fewer
events instead of an error.
"""

import logging
from datetime import datetime
from typing import Optional

from ..core.timezone_utils import to_instant
from ..exceptions import ICSValueError
from .diagnostics import (
    END_BEFORE_START,
    INVALID_DTEND,
    INVALID_DTSTART,
    INVALID_DURATION,
    LINE_WITHOUT_COLON,
    MISSING_DTSTART,
    MISSING_UID,
    DiagnosticSink,
    ParseDiagnostics,
    report,
)
from .ics_utils import PropertyLine, extract_components, parse_property_line, unfold_lines
from .ics_values import parse_duration, parse_ics_date, unescape_text
from .models import UNTITLED_EVENT, RawCalendarEvent

logger = logging.getLogger(__name__)

VEVENT = "VEVENT"


def _collect_properties(
    block: str, diagnostics: Optional[DiagnosticSink]
) -> dict[str, PropertyLine]:
    """Map property name to its last occurrence, skipping nested sub-components."""
    properties: dict[str, PropertyLine] = {}
    depth = 0

    for line in block.split("\n"):
        if not line.strip():
            continue
        prop = parse_property_line(line)
        if not prop.name:
            report(diagnostics, LINE_WITHOUT_COLON, line[:80])
            continue
        # VALARM and friends carry their own DESCRIPTION/SUMMARY; ignore them.
        if prop.name == "BEGIN":
            depth += 1
            continue
        if prop.name == "END":
            depth = max(0, depth - 1)
            continue
        if depth:
            continue
        properties[prop.name] = prop

    return properties


def _text(properties: dict[str, PropertyLine], name: str) -> Optional[str]:
    prop = properties.get(name)
    if prop is None or not prop.value:
        return None
    return unescape_text(prop.value)


def _raw(properties: dict[str, PropertyLine], name: str) -> Optional[str]:
    prop = properties.get(name)
    if prop is None:
        return None
    return prop.value.strip() or None


def _decode_end(
    properties: dict[str, PropertyLine],
    start: datetime,
    uid: str,
    diagnostics: Optional[DiagnosticSink],
) -> Optional[datetime]:
    """DTEND wins over DURATION; an undecodable DTEND falls back to DURATION."""
    dtend = properties.get("DTEND")
    if dtend is not None:
        try:
            end, _ = parse_ics_date(dtend.value, dtend.params)
            return end
        except ICSValueError as e:
            report(diagnostics, INVALID_DTEND, f"{uid}: {e}")

    duration_prop = properties.get("DURATION")
    if duration_prop is None:
        return None

    duration = parse_duration(duration_prop.value)
    if duration is None:
        # Unparseable duration leaves the start unchanged (zero-length event).
        report(diagnostics, INVALID_DURATION, f"{uid}: {duration_prop.value!r}")
        return start
    return start + duration


def parse_vevent(block: str, diagnostics: Optional[DiagnosticSink] = None) -> Optional[RawCalendarEvent]:
    """Parse the body of one VEVENT block.

    Args:
        block: Text between BEGIN:VEVENT and END:VEVENT (already unfolded)
        diagnostics: Optional sink receiving a reason code for every drop

    Returns:
        The decoded event, or None when UID or a decodable DTSTART is missing.
    """
    properties = _collect_properties(block, diagnostics)

    uid = _raw(properties, "UID")
    if not uid:
        report(diagnostics, MISSING_UID, block[:80])
        return None

    dtstart = properties.get("DTSTART")
    if dtstart is None or not dtstart.value.strip():
        report(diagnostics, MISSING_DTSTART, uid)
        return None
    try:
        start, is_all_day = parse_ics_date(dtstart.value, dtstart.params)
    except ICSValueError as e:
        report(diagnostics, INVALID_DTSTART, f"{uid}: {e}")
        return None

    end = _decode_end(properties, start, uid, diagnostics)
    if end is not None and to_instant(end) < to_instant(start):
        report(diagnostics, END_BEFORE_START, uid)
        end = None

    return RawCalendarEvent(
        uid=uid,
        title=_text(properties, "SUMMARY") or UNTITLED_EVENT,
        description=_text(properties, "DESCRIPTION"),
        start=start,
        end=end,
        location=_text(properties, "LOCATION"),
        url=_raw(properties, "URL"),
        recurrence_rule=_raw(properties, "RRULE"),
        is_all_day=is_all_day,
    )


def parse_ics(content: str, diagnostics: Optional[DiagnosticSink] = None) -> list[RawCalendarEvent]:
    """Parse a whole iCalendar document into raw events, in document order."""
    unfolded = unfold_lines(content)
    events: list[RawCalendarEvent] = []
    for block in extract_components(unfolded, VEVENT, diagnostics):
        event = parse_vevent(block, diagnostics)
        if event is not None:
            events.append(event)
    return events


class ICSParser:
    """iCalendar parser that keeps drop statistics across calls."""

    def __init__(self, diagnostics: Optional[ParseDiagnostics] = None) -> None:
        """Initialize parser.

        Args:
            diagnostics: Counter shared with the caller; a private one is created if omitted
        """
        self.diagnostics = diagnostics if diagnostics is not None else ParseDiagnostics()

    def parse(self, content: str, source_url: Optional[str] = None) -> list[RawCalendarEvent]:
        """Parse ICS content and log a one-line summary."""
        dropped_before = self.diagnostics.total
        events = parse_ics(content, self.diagnostics)
        dropped = self.diagnostics.total - dropped_before
        recurring = sum(1 for event in events if event.recurrence_rule)

        logger.debug(
            "Parsed %d events (%d recurring) from %s, %d drop(s)",
            len(events),
            recurring,
            source_url or "<inline content>",
            dropped,
        )
        if dropped:
            logger.info(
                "Skipped %d malformed iCalendar item(s) from %s: %s",
                dropped,
                source_url or "<inline content>",
                self.diagnostics,
            )
        return events
