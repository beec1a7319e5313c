"""Pooled httpx clients shared by the source fetchers.

Each fetcher owns one client id ("ics", "snapshot"). Transport failures
(timeouts, refused connections) are counted per id; once
``MAX_TRANSPORT_FAILURES`` pile up without a success in between, the pooled
client is thrown away and the next fetch starts on a fresh connection pool.
HTTP status errors are answers from the server and do not count.
"""

import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)

_pooled_clients: dict[str, httpx.AsyncClient] = {}
_transport_failures: dict[str, int] = {}
_pool_lock = asyncio.Lock()

SOURCE_POOL_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5)
DEFAULT_TIMEOUT_SECONDS = 30.0
USER_AGENT = "daotimeline/0.1 (+https://snapshot.org)"

MAX_TRANSPORT_FAILURES = 3


def build_timeout(seconds: float = DEFAULT_TIMEOUT_SECONDS) -> httpx.Timeout:
    """Timeout with a short connect phase and ``seconds`` for everything else."""
    return httpx.Timeout(seconds, connect=min(10.0, seconds))


async def get_shared_client(client_id: str) -> httpx.AsyncClient:
    """Return the pooled client for a fetcher, replacing it first if it kept failing."""
    async with _pool_lock:
        client = _pooled_clients.get(client_id)
        if client is not None and _transport_failures.get(client_id, 0) >= MAX_TRANSPORT_FAILURES:
            logger.warning(
                "Replacing '%s' HTTP client after %d transport failures",
                client_id,
                _transport_failures[client_id],
            )
            await client.aclose()
            client = None

        if client is None or client.is_closed:
            logger.debug("Opening pooled HTTP client '%s'", client_id)
            client = httpx.AsyncClient(
                limits=SOURCE_POOL_LIMITS,
                timeout=build_timeout(),
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            )
            _pooled_clients[client_id] = client
            _transport_failures[client_id] = 0

        return client


async def record_client_error(client_id: str) -> None:
    """Count a transport failure against the pooled client."""
    async with _pool_lock:
        _transport_failures[client_id] = _transport_failures.get(client_id, 0) + 1
        logger.debug("'%s' client transport failures: %d", client_id, _transport_failures[client_id])


async def record_client_success(client_id: str) -> None:
    async with _pool_lock:
        _transport_failures[client_id] = 0


async def close_all_clients() -> None:
    """Close every pooled client; call once a run is finished."""
    async with _pool_lock:
        for client_id, client in _pooled_clients.items():
            if not client.is_closed:
                await client.aclose()
                logger.debug("Closed pooled HTTP client '%s'", client_id)
        _pooled_clients.clear()
        _transport_failures.clear()
