"""Snapshot GraphQL client for governance proposal timelines."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from ..calendar.models import ProposalRecord
from ..core.config_manager import DEFAULT_PROPOSAL_LIMIT, SNAPSHOT_API_URL
from ..core.http_client import (
    build_timeout,
    get_shared_client,
    record_client_error,
    record_client_success,
)
from ..exceptions import ProposalFetchError, SourceFetchError

logger = logging.getLogger(__name__)

SNAPSHOT_CLIENT_ID = "snapshot"

TIMELINE_PROPOSALS_QUERY = """
  query GetTimelineProposals($spaceId: String!, $limit: Int!) {
    proposals(
      first: $limit
      where: { space: $spaceId }
      orderBy: "created"
      orderDirection: desc
    ) {
      id
      title
      body
      created
      start
      end
      state
      link
    }
  }
"""


def _parse_proposals(payload: Any) -> list[ProposalRecord]:
    """Extract proposal records from a GraphQL response body.

    Raises:
        ProposalFetchError: If the response carries GraphQL errors or is not an object
    """
    if not isinstance(payload, dict):
        raise ProposalFetchError("Unexpected Snapshot response shape")

    errors = payload.get("errors") or []
    if errors:
        first = errors[0]
        message = first.get("message", first) if isinstance(first, dict) else first
        raise ProposalFetchError(f"GraphQL error: {message}")

    data = payload.get("data") or {}
    records: list[ProposalRecord] = []
    for item in data.get("proposals") or []:
        try:
            records.append(ProposalRecord.model_validate(item))
        except ValidationError as e:
            logger.warning("Skipping malformed proposal %r: %s", item.get("id") if isinstance(item, dict) else item, e)
    return records


async def query_timeline_proposals(
    space_id: str,
    limit: int = DEFAULT_PROPOSAL_LIMIT,
    api_url: str = SNAPSHOT_API_URL,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 30.0,
) -> list[ProposalRecord]:
    """Run the timeline proposals query for one space.

    Raises:
        ProposalFetchError: On HTTP, network or GraphQL failures
    """
    use_shared = client is None
    if client is None:
        client = await get_shared_client(SNAPSHOT_CLIENT_ID)

    try:
        response = await client.post(
            api_url,
            json={"query": TIMELINE_PROPOSALS_QUERY, "variables": {"spaceId": space_id, "limit": limit}},
            timeout=build_timeout(timeout),
        )
        response.raise_for_status()
        payload = response.json()
    except httpx.HTTPStatusError as e:
        raise ProposalFetchError(
            f"Snapshot API error: {e.response.status_code} {e.response.reason_phrase}",
            e.response.status_code,
        ) from e
    except httpx.HTTPError as e:
        if use_shared:
            await record_client_error(SNAPSHOT_CLIENT_ID)
        raise ProposalFetchError(f"Snapshot API request failed: {e}") from e
    except ValueError as e:
        raise ProposalFetchError(f"Snapshot API returned invalid JSON: {e}") from e

    if use_shared:
        await record_client_success(SNAPSHOT_CLIENT_ID)
    return _parse_proposals(payload)


async def fetch_timeline_proposals(
    space_id: str,
    limit: int = DEFAULT_PROPOSAL_LIMIT,
    api_url: str = SNAPSHOT_API_URL,
    client: Optional[httpx.AsyncClient] = None,
    timeout: float = 30.0,
) -> list[ProposalRecord]:
    """Fetch recent proposals of a space, newest first.

    Failures are logged and yield an empty list so other sources still load.
    """
    try:
        proposals = await query_timeline_proposals(space_id, limit, api_url, client, timeout)
    except SourceFetchError as e:
        logger.error("Failed to fetch timeline proposals for space %s: %s", space_id, e.message)
        return []

    logger.debug("Fetched %d proposals for space %s", len(proposals), space_id)
    return proposals
