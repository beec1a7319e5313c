"""Fetch events from every configured source and merge them."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Iterable, Optional

import httpx

from ..calendar.diagnostics import DiagnosticSink
from ..calendar.models import AIExtractedEvent, EventSourceConfig, SourceKind, UnifiedEvent
from ..calendar.rrule_expander import RRuleExpanderConfig, expand_all_recurring_events
from ..core.config_manager import TimelineConfig
from ..core.timezone_utils import now_local
from ..domain.adapters import (
    transform_ai_extracted_events,
    transform_ics_events,
    transform_snapshot_proposals,
)
from ..domain.aggregator import merge_events
from .ics_fetcher import fetch_ics_from_url
from .snapshot_client import fetch_timeline_proposals

logger = logging.getLogger(__name__)


async def fetch_from_source(
    source: EventSourceConfig,
    *,
    config: TimelineConfig,
    now: datetime,
    client: Optional[httpx.AsyncClient] = None,
    diagnostics: Optional[DiagnosticSink] = None,
) -> list[UnifiedEvent]:
    """Fetch, adapt and (for ICS feeds) expand the events of one source.

    Args:
        source: Source to fetch; ``url`` is the feed URL or the Snapshot space id
        config: Timeline configuration
        now: Reference time for the recurrence window
        client: HTTP client override (shared clients are used when omitted)
        diagnostics: Optional sink for parser drops

    Returns:
        Unified events of the source; empty on fetch failure or unsupported type
    """
    if source.type == SourceKind.ICS:
        raw_events = await fetch_ics_from_url(
            source.url, client, config.fetch_timeout_seconds, diagnostics
        )
        events = transform_ics_events(raw_events, source)
        return expand_all_recurring_events(
            events,
            now=now,
            config=RRuleExpanderConfig.from_settings(config),
            diagnostics=diagnostics,
        )

    if source.type == SourceKind.SNAPSHOT_PROPOSALS:
        space_id = source.url
        proposals = await fetch_timeline_proposals(
            space_id,
            config.proposal_limit,
            config.snapshot_api_url,
            client,
            config.fetch_timeout_seconds,
        )
        return transform_snapshot_proposals(
            proposals, source, space_id, config.description_max_length
        )

    logger.warning("Unsupported source type %r for source %s", source.type, source.id)
    return []


async def fetch_all_events(
    config: TimelineConfig,
    now: Optional[datetime] = None,
    *,
    ai_events: Optional[Iterable[AIExtractedEvent]] = None,
    client: Optional[httpx.AsyncClient] = None,
    diagnostics: Optional[DiagnosticSink] = None,
) -> list[UnifiedEvent]:
    """Fetch all configured sources concurrently and merge in configuration order.

    Args:
        config: Timeline configuration with the enabled sources
        now: Reference time, read once from the clock if omitted
        ai_events: Already extracted AI milestones to append after the sources
        client: HTTP client override
        diagnostics: Optional sink for parser drops

    Returns:
        Merged (not yet deduplicated) events
    """
    now = now or now_local()
    sources = [source for source in config.sources if source.enabled]

    if not sources and not ai_events:
        logger.warning("No event sources configured")
        return []

    event_lists = await asyncio.gather(
        *(
            fetch_from_source(source, config=config, now=now, client=client, diagnostics=diagnostics)
            for source in sources
        )
    )
    for source, events in zip(sources, event_lists):
        logger.debug("Source %s produced %d event(s)", source.id, len(events))

    merged = merge_events(*event_lists)
    if ai_events:
        merged = merge_events(merged, transform_ai_extracted_events(ai_events))

    logger.info("Fetched %d event(s) from %d source(s)", len(merged), len(sources))
    return merged


def get_sources_metadata(config: TimelineConfig) -> list[dict[str, Optional[str]]]:
    """Id, name and color of each configured source, for display."""
    return [
        {"id": source.id, "name": source.name, "color": source.color}
        for source in config.sources
    ]
