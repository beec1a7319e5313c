"""Fetch and parse remote iCalendar feeds."""

from __future__ import annotations

import asyncio
import logging
from typing import Iterable, Optional

import httpx

from ..calendar.diagnostics import DiagnosticSink
from ..calendar.ics_parser import parse_ics
from ..calendar.models import RawCalendarEvent
from ..core.http_client import (
    build_timeout,
    get_shared_client,
    record_client_error,
    record_client_success,
)
from ..exceptions import ICSFetchError, SourceFetchError

logger = logging.getLogger(__name__)

ICS_ACCEPT_HEADER = "text/calendar, application/calendar+json, */*"
ICS_CLIENT_ID = "ics"


async def download_ics(
    url: str, client: Optional[httpx.AsyncClient] = None, timeout: float = 30.0
) -> str:
    """Download a feed and return its text.

    Args:
        url: Feed URL
        client: Client to use; the shared "ics" client when omitted
        timeout: Request timeout in seconds

    Raises:
        ICSFetchError: On non-2xx responses, timeouts or network failures
    """
    use_shared = client is None
    if client is None:
        client = await get_shared_client(ICS_CLIENT_ID)

    try:
        response = await client.get(
            url, headers={"Accept": ICS_ACCEPT_HEADER}, timeout=build_timeout(timeout)
        )
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise ICSFetchError(
            f"HTTP {e.response.status_code} fetching ICS from {url}", e.response.status_code
        ) from e
    except httpx.TimeoutException as e:
        if use_shared:
            await record_client_error(ICS_CLIENT_ID)
        raise ICSFetchError(f"Timeout fetching ICS from {url}") from e
    except httpx.HTTPError as e:
        if use_shared:
            await record_client_error(ICS_CLIENT_ID)
        raise ICSFetchError(f"Network error fetching ICS from {url}: {e}") from e

    if use_shared:
        await record_client_success(ICS_CLIENT_ID)
    logger.debug("Fetched %d bytes of ICS from %s", len(response.content), url)
    return response.text


async def fetch_ics_from_url(
    url: str,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 30.0,
    diagnostics: Optional[DiagnosticSink] = None,
) -> list[RawCalendarEvent]:
    """Fetch a feed and parse it into raw events.

    Failures are logged and yield an empty list so one broken feed never hides
    the other sources.
    """
    try:
        content = await download_ics(url, client, timeout)
    except SourceFetchError as e:
        logger.error("Failed to fetch ICS from %s: %s", url, e.message)
        return []

    events = parse_ics(content, diagnostics)
    logger.debug("Parsed %d events from %s", len(events), url)
    return events


async def fetch_multiple_ics(
    urls: Iterable[str],
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 30.0,
) -> dict[str, list[RawCalendarEvent]]:
    """Fetch several feeds concurrently; the result maps each URL to its events."""
    url_list = list(urls)
    results = await asyncio.gather(
        *(fetch_ics_from_url(url, client, timeout) for url in url_list)
    )
    return dict(zip(url_list, results))
