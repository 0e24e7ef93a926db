"""Shared HTTP client manager for calendar feed retrieval.

Several pollers running in one process can share a single pooled
``httpx.AsyncClient`` instead of opening a connection pool per feed.
"""

import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

# Global state for shared HTTP clients
_shared_clients: dict[str, httpx.AsyncClient] = {}

DEFAULT_HEADERS = {
    "User-Agent": "calendar-poller/1.0 (+https://pypi.org/project/calendar-poller/)",
    "Accept": "text/calendar, text/plain;q=0.9, */*;q=0.5",
}

_DEFAULT_LIMITS = httpx.Limits(
    max_connections=4,
    max_keepalive_connections=2,
)

DEFAULT_REQUEST_TIMEOUT = 30.0


def build_timeout(read: float = DEFAULT_REQUEST_TIMEOUT) -> httpx.Timeout:
    """Timeout profile used for feed downloads; only the read budget varies."""
    return httpx.Timeout(connect=10.0, read=read, write=10.0, pool=30.0)


def build_client(
    timeout: Optional[httpx.Timeout] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Create an individual (unshared) client with the default feed settings."""
    return httpx.AsyncClient(
        limits=_DEFAULT_LIMITS,
        timeout=timeout or build_timeout(),
        follow_redirects=True,
        verify=True,
        headers=DEFAULT_HEADERS,
        transport=transport,
    )


async def get_shared_client(
    client_id: str = "default",
    timeout: Optional[httpx.Timeout] = None,
) -> httpx.AsyncClient:
    """Get or create a shared HTTP client with connection pooling.

    Args:
        client_id: Identifier for the client (allows multiple clients if needed)
        timeout: Custom timeout configuration, only used when the client is created

    Returns:
        Shared httpx.AsyncClient

    Raises:
        RuntimeError: If client creation fails
    """
    client = _shared_clients.get(client_id)
    if client is None or client.is_closed:
        try:
            client = build_client(timeout)
        except Exception as e:
            logger.exception("Failed to create shared HTTP client '%s'", client_id)
            raise RuntimeError(f"Failed to create shared HTTP client: {e}") from e
        _shared_clients[client_id] = client
        logger.debug("Created shared HTTP client '%s'", client_id)

    return client


async def close_all_clients() -> None:
    """Close all shared HTTP clients.

    Call during application shutdown to release pooled connections.
    """
    for client_id, client in list(_shared_clients.items()):
        try:
            if not client.is_closed:
                await client.aclose()
                logger.debug("Closed shared HTTP client '%s'", client_id)
        except Exception as e:  # noqa: PERF203
            logger.warning("Error closing shared HTTP client '%s': %s", client_id, e)

    _shared_clients.clear()
