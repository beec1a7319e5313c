"""Adapters from source-specific records to UnifiedEvent, plus transport serialization.

Every adapter is a pure function: it maps fields, namespaces the id with the
source id and never talks to other adapters. Only the ICS adapter carries a
recurrence rule; expansion happens later in ``rrule_expander``.
"""

from __future__ import annotations

import datetime
import logging
from typing import Iterable, Optional

from dateutil import parser as date_parser

from ..calendar.models import (
    AIExtractedEvent,
    AIMetadata,
    EventSourceConfig,
    IcsMetadata,
    ProposalMetadata,
    ProposalRecord,
    RawCalendarEvent,
    SerializedEvent,
    SourceKind,
    UnifiedEvent,
)
from ..core.config_manager import MAX_DESCRIPTION_LENGTH
from .date_utils import parse_ymd

logger = logging.getLogger(__name__)

AI_SOURCE_ID = "ai-insights"
AI_SOURCE_NAME = "AI Insights"
SNAPSHOT_PROPOSAL_URL = "https://snapshot.org/#/{space_id}/proposal/{proposal_id}"
ELLIPSIS = "..."


def truncate_description(text: Optional[str], limit: int = MAX_DESCRIPTION_LENGTH) -> Optional[str]:
    """Cut free text to ``limit`` characters and append an ellipsis.

    The cut never leaves a dangling escape backslash or half of a CRLF pair.
    Empty text gives None; text within the limit is returned unchanged.
    """
    if not text:
        return None
    if len(text) <= limit:
        return text

    cut = text[:limit]
    if cut.endswith("\r") and text[limit] == "\n":
        cut = cut[:-1]
    trailing = len(cut) - len(cut.rstrip("\\"))
    if trailing % 2:
        cut = cut[:-1]
    return cut + ELLIPSIS


def transform_ics_event(raw: RawCalendarEvent, source: EventSourceConfig) -> UnifiedEvent:
    """Map a decoded VEVENT to a UnifiedEvent.

    Args:
        raw: Event decoded by the ICS parser
        source: Configured source the feed belongs to

    Returns:
        Event with id ``<source id>-<uid>``; recurring when an RRULE is present,
        in which case it anchors its own series.
    """
    event_id = f"{source.id}-{raw.uid}"
    is_recurring = raw.recurrence_rule is not None
    return UnifiedEvent(
        id=event_id,
        source_id=source.id,
        title=raw.title,
        description=raw.description,
        start_date=raw.start,
        end_date=raw.end,
        is_all_day=raw.is_all_day,
        source_kind=SourceKind.ICS,
        source_name=source.name,
        source_url=raw.url,
        location=raw.location,
        is_recurring=is_recurring,
        recurrence_anchor_id=event_id if is_recurring else None,
        metadata=IcsMetadata(original_uid=raw.uid, rrule=raw.recurrence_rule),
    )


def transform_ics_events(raw_events: Iterable[RawCalendarEvent], source: EventSourceConfig) -> list[UnifiedEvent]:
    return [transform_ics_event(raw, source) for raw in raw_events]


def _from_unix(seconds: int) -> datetime.datetime:
    return datetime.datetime.fromtimestamp(seconds, tz=datetime.timezone.utc)


def transform_snapshot_proposal(
    proposal: ProposalRecord,
    source: EventSourceConfig,
    space_id: str,
    description_limit: int = MAX_DESCRIPTION_LENGTH,
) -> UnifiedEvent:
    """Map a governance proposal to a timed event spanning its voting period."""
    url = proposal.link or SNAPSHOT_PROPOSAL_URL.format(space_id=space_id, proposal_id=proposal.id)
    return UnifiedEvent(
        id=f"{source.id}-{proposal.id}",
        source_id=source.id,
        title=proposal.title,
        description=truncate_description(proposal.body, description_limit),
        start_date=_from_unix(proposal.start),
        end_date=_from_unix(proposal.end),
        is_all_day=False,
        source_kind=SourceKind.SNAPSHOT_PROPOSALS,
        source_name=source.name,
        source_url=url,
        location=None,
        is_recurring=False,
        metadata=ProposalMetadata(state=proposal.state, created=proposal.created, space_id=space_id),
    )


def transform_snapshot_proposals(
    proposals: Iterable[ProposalRecord],
    source: EventSourceConfig,
    space_id: str,
    description_limit: int = MAX_DESCRIPTION_LENGTH,
) -> list[UnifiedEvent]:
    """Transform proposals, skipping (and logging) ones whose voting period ends before it starts."""
    transformed: list[UnifiedEvent] = []
    for proposal in proposals:
        try:
            transformed.append(transform_snapshot_proposal(proposal, source, space_id, description_limit))
        except ValueError as e:
            logger.warning("Skipping proposal %s from %s: %s", proposal.id, source.id, e)
    return transformed


def transform_ai_extracted_event(event: AIExtractedEvent, index: int) -> UnifiedEvent:
    """Map an AI-extracted milestone to an all-day event on its date.

    Args:
        event: Record produced by the extraction service
        index: Position of the record within its proposal's extraction result

    Raises:
        ValueError: If ``event.date`` is not a YYYY-MM-DD date
    """
    return UnifiedEvent(
        id=f"{AI_SOURCE_ID}-{event.source_proposal_id}-{index}",
        source_id=AI_SOURCE_ID,
        title=event.title,
        description=event.description or None,
        start_date=parse_ymd(event.date),
        end_date=None,
        is_all_day=True,
        source_kind=SourceKind.AI_EXTRACTED,
        source_name=AI_SOURCE_NAME,
        source_url=event.source_proposal_url,
        location=None,
        is_recurring=False,
        metadata=AIMetadata(
            source_proposal_id=event.source_proposal_id,
            source_proposal_title=event.source_proposal_title,
            source_proposal_url=event.source_proposal_url,
            excerpt=event.excerpt,
            confidence=event.date_confidence,
            event_type=event.event_type,
        ),
    )


def transform_ai_extracted_events(events: Iterable[AIExtractedEvent]) -> list[UnifiedEvent]:
    """Transform records, skipping (and logging) ones with an unusable date."""
    transformed: list[UnifiedEvent] = []
    for index, event in enumerate(events):
        try:
            transformed.append(transform_ai_extracted_event(event, index))
        except ValueError as e:
            logger.warning("Skipping AI-extracted event %r: %s", event.title, e)
    return transformed


def format_iso(dt: datetime.datetime) -> str:
    """ISO-8601 with milliseconds: UTC with a ``Z`` suffix for aware values, naive otherwise."""
    if dt.tzinfo is None:
        return dt.isoformat(timespec="milliseconds")
    utc = dt.astimezone(datetime.timezone.utc).replace(tzinfo=None)
    return utc.isoformat(timespec="milliseconds") + "Z"


def parse_iso(value: str) -> datetime.datetime:
    return date_parser.isoparse(value)


def serialize_event(event: UnifiedEvent) -> SerializedEvent:
    """Render an event for transport, with dates as ISO-8601 strings."""
    data = event.model_dump(exclude={"start_date", "end_date"})
    return SerializedEvent(
        **data,
        start_date=format_iso(event.start_date),
        end_date=format_iso(event.end_date) if event.end_date is not None else None,
    )


def deserialize_event(event: SerializedEvent) -> UnifiedEvent:
    """Inverse of ``serialize_event`` (up to millisecond precision)."""
    data = event.model_dump(exclude={"start_date", "end_date"})
    return UnifiedEvent(
        **data,
        start_date=parse_iso(event.start_date),
        end_date=parse_iso(event.end_date) if event.end_date is not None else None,
    )


def serialize_events(events: Iterable[UnifiedEvent]) -> list[SerializedEvent]:
    return [serialize_event(event) for event in events]


def deserialize_events(events: Iterable[SerializedEvent]) -> list[UnifiedEvent]:
    return [deserialize_event(event) for event in events]
