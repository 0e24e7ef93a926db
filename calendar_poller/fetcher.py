"""HTTP retrieval of calendar feed documents."""

import logging
import re
from typing import Any, Optional
from urllib.parse import urlparse

import httpx

from .exceptions import FeedFetchError, FeedHTTPError, FeedNetworkError, FeedTimeoutError
from .http_client import DEFAULT_REQUEST_TIMEOUT, build_client, build_timeout, get_shared_client

logger = logging.getLogger(__name__)

_WEBCAL_SCHEME = re.compile(r"^\s*webcals?://", re.IGNORECASE)


def normalize_feed_url(url: str) -> str:
    """Rewrite a ``webcal://`` (or ``webcals://``) locator to ``https://``.

    Other locators are returned stripped of surrounding whitespace.
    """
    return _WEBCAL_SCHEME.sub("https://", url, count=1).strip()


class FeedFetcher:
    """Single-shot async downloader for ICS feeds.

    No retry logic lives here; a failed fetch raises and the caller decides
    when to try again.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
        use_shared_client: bool = False,
    ) -> None:
        """Initialize feed fetcher.

        Args:
            timeout: Read timeout in seconds for a single download
            client: Optional externally owned client (never closed here)
            use_shared_client: Use the process-wide pooled client when no client is given
        """
        self.timeout = timeout
        self.client: Optional[httpx.AsyncClient] = client
        self._owns_client = client is None and not use_shared_client
        self._use_shared_client = client is None and use_shared_client

        logger.debug(
            "Feed fetcher initialized (external_client: %s, shared_client: %s)",
            client is not None,
            self._use_shared_client,
        )

    async def __aenter__(self) -> "FeedFetcher":
        await self._ensure_client()
        return self

    async def __aexit__(self, _exc_type: Any, _exc_val: Any, _exc_tb: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the HTTP client if this fetcher created it."""
        if self.client is not None and self._owns_client:
            if not self.client.is_closed:
                await self.client.aclose()
                logger.debug("Closed individual HTTP client")
            self.client = None
        elif self._use_shared_client:
            # Shared clients are closed by close_all_clients()
            self.client = None

    async def _ensure_client(self) -> httpx.AsyncClient:
        if self.client is not None and not self.client.is_closed:
            return self.client
        if self._use_shared_client:
            self.client = await get_shared_client(timeout=build_timeout(self.timeout))
        else:
            self.client = build_client(build_timeout(self.timeout))
            self._owns_client = True
        return self.client

    @staticmethod
    def _validate_url(url: str) -> None:
        """Require an http(s) URL with a hostname.

        Raises:
            FeedFetchError: If the URL cannot be fetched
        """
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            raise FeedFetchError(f"Invalid URL scheme: {parsed.scheme or '<none>'}")
        if not parsed.hostname:
            raise FeedFetchError("URL missing hostname")

    async def fetch(self, url: str) -> str:
        """Download one feed document.

        Args:
            url: Feed locator; ``webcal://`` is rewritten to ``https://`` first

        Returns:
            The complete response body as text

        Raises:
            FeedTimeoutError: The server did not answer in time
            FeedHTTPError: Non-2xx response status
            FeedNetworkError: DNS, connection, or TLS failure
            FeedFetchError: Invalid URL, empty body, or any other failure
        """
        url = normalize_feed_url(url)
        self._validate_url(url)
        client = await self._ensure_client()

        logger.debug("Fetching calendar feed from %s", url)
        try:
            response = await client.get(url, timeout=build_timeout(self.timeout))
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise FeedTimeoutError(f"Request timeout after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise FeedHTTPError(f"HTTP {status}: {e.response.reason_phrase}", status) from e
        except httpx.TransportError as e:
            raise FeedNetworkError(f"Network error: {e}") from e
        except Exception as e:
            logger.exception("Unexpected error fetching calendar feed from %s", url)
            raise FeedFetchError(f"Unexpected error: {e}") from e

        content = response.text
        if not content or not content.strip():
            raise FeedFetchError("Empty content received", response.status_code)

        content_type = response.headers.get("content-type", "").lower()
        if content_type and not any(ct in content_type for ct in ("text/calendar", "text/plain")):
            logger.debug("Unexpected content type for %s: %s", url, content_type)

        logger.debug("Fetched calendar feed from %s (%d bytes)", url, len(content))
        return content
