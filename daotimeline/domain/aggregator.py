"""Aggregation stages for the unified timeline: merge, deduplicate, filter, sort, group.

All functions are pure and return new lists. Anything that depends on "today"
takes ``now`` explicitly; its tz decides which calendar day events fall on.
"""

from __future__ import annotations

import datetime
import logging
from typing import Iterable, Optional

from ..calendar.models import EventGroup, TimelineFilters, UnifiedEvent
from ..core.timezone_utils import now_local, to_instant
from .adapters import serialize_event
from .date_utils import get_date_label, is_past_date, local_day

logger = logging.getLogger(__name__)


def merge_events(*event_lists: Iterable[UnifiedEvent]) -> list[UnifiedEvent]:
    """Concatenate event lists in argument order."""
    merged: list[UnifiedEvent] = []
    for events in event_lists:
        merged.extend(events)
    return merged


def deduplicate_events(events: Iterable[UnifiedEvent]) -> list[UnifiedEvent]:
    """Drop events whose id was already seen; the first occurrence wins and order is kept."""
    seen: set[str] = set()
    unique: list[UnifiedEvent] = []
    for event in events:
        if event.id in seen:
            continue
        seen.add(event.id)
        unique.append(event)
    return unique


def filter_by_source(events: Iterable[UnifiedEvent], source_ids: Iterable[str]) -> list[UnifiedEvent]:
    """Keep events from the given sources; an empty selection keeps everything."""
    wanted = frozenset(source_ids)
    if not wanted:
        return list(events)
    return [event for event in events if event.source_id in wanted]


def filter_by_date_range(
    events: Iterable[UnifiedEvent],
    start_date: Optional[datetime.datetime] = None,
    end_date: Optional[datetime.datetime] = None,
) -> list[UnifiedEvent]:
    """Keep events starting within ``[start_date, end_date]``; either bound may be open."""
    lower = to_instant(start_date) if start_date is not None else None
    upper = to_instant(end_date) if end_date is not None else None
    kept = []
    for event in events:
        instant = to_instant(event.start_date)
        if lower is not None and instant < lower:
            continue
        if upper is not None and instant > upper:
            continue
        kept.append(event)
    return kept


def filter_past_events(
    events: Iterable[UnifiedEvent], include_past: bool, now: Optional[datetime.datetime] = None
) -> list[UnifiedEvent]:
    """Drop events starting before today's midnight unless ``include_past`` is set.

    Events earlier today are kept.
    """
    if include_past:
        return list(events)
    now = now or now_local()
    return [event for event in events if not is_past_date(event.start_date, now)]


def apply_filters(
    events: Iterable[UnifiedEvent], filters: TimelineFilters, now: Optional[datetime.datetime] = None
) -> list[UnifiedEvent]:
    """Apply source, date range and past-event filters, in that order."""
    filtered = filter_by_source(events, filters.source_ids)
    filtered = filter_by_date_range(filtered, filters.start_date, filters.end_date)
    return filter_past_events(filtered, filters.include_past, now)


def sort_events_by_date(events: Iterable[UnifiedEvent]) -> list[UnifiedEvent]:
    """Sort ascending by start instant; ties keep their input order."""
    return sorted(events, key=lambda event: to_instant(event.start_date))


def group_events_by_day(
    events: Iterable[UnifiedEvent], now: Optional[datetime.datetime] = None
) -> list[EventGroup]:
    """Group events by the calendar day they start on, in ascending order.

    Args:
        events: Events to group (sorted here, so any order is accepted)
        now: Reference time; its tz frames aware start times and decides the labels

    Returns:
        One group per distinct day with at least one event; no empty groups.
    """
    now = now or now_local()
    by_day: dict[datetime.date, list[UnifiedEvent]] = {}
    for event in sort_events_by_date(events):
        by_day.setdefault(local_day(event.start_date, now.tzinfo), []).append(event)

    groups: list[EventGroup] = []
    for day in sorted(by_day):
        midnight = datetime.datetime.combine(day, datetime.time())
        groups.append(
            EventGroup(
                date=midnight,
                label=get_date_label(midnight, now),
                events=[serialize_event(event) for event in by_day[day]],
            )
        )
    return groups


def process_events(
    events: Iterable[UnifiedEvent],
    filters: Optional[TimelineFilters] = None,
    *,
    now: Optional[datetime.datetime] = None,
) -> list[EventGroup]:
    """Deduplicate, filter, sort and group events in a single pass.

    Args:
        events: Already merged (and expanded) events
        filters: Query to apply (defaults to ``get_default_filters()``)
        now: Reference time, read once from the clock if omitted

    Returns:
        Day groups in ascending order
    """
    now = now or now_local()
    filters = filters or get_default_filters()
    events = list(events)
    deduplicated = deduplicate_events(events)
    filtered = apply_filters(deduplicated, filters, now)
    groups = group_events_by_day(filtered, now)
    logger.debug(
        "Processed %d events: %d after dedupe, %d after filters, %d day group(s)",
        len(events),
        len(deduplicated),
        len(filtered),
        len(groups),
    )
    return groups


def get_default_filters() -> TimelineFilters:
    """Upcoming events from every source."""
    return TimelineFilters()
