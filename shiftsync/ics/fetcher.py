"""Feed retrieval: HTTP download of ICS calendars and decoding of uploaded data URLs."""

import asyncio
import base64
import binascii
import logging
import re
from typing import Any, Optional, Union
from urllib.parse import unquote_to_bytes

import httpx

from .exceptions import FetchFailure, FetchTimeoutFailure

logger = logging.getLogger(__name__)

FETCH_TIMEOUT_SECONDS = 10
TIMEOUT_MESSAGE = f"Request timed out after {FETCH_TIMEOUT_SECONDS} seconds. Please try again."

ICS_DATA_URL_PREFIX = "data:text/calendar;base64,"

_WEBCAL_RE = re.compile(r"^webcal://", re.IGNORECASE)


def normalize_feed_url(url: str) -> str:
    """Rewrite a ``webcal://`` URL to ``https://``; other URLs are unchanged."""
    return _WEBCAL_RE.sub("https://", url.strip())


def encode_ics_upload(content: Union[str, bytes]) -> str:
    """Store uploaded ICS content as a base64 ``data:`` URL."""
    raw = content.encode("utf-8") if isinstance(content, str) else content
    return ICS_DATA_URL_PREFIX + base64.b64encode(raw).decode("ascii")


def is_data_url(url: str) -> bool:
    return url.strip().lower().startswith("data:")


def decode_data_url(url: str) -> str:
    """Return the text carried by a ``data:`` URL.

    Raises:
        FetchFailure: If the URL is malformed
    """
    header, separator, data = url.strip().partition(",")
    if not separator or not header.lower().startswith("data:"):
        raise FetchFailure("Failed to fetch calendar: malformed data URL")

    try:
        if header.lower().endswith(";base64"):
            raw = base64.b64decode(data, validate=True)
        else:
            raw = unquote_to_bytes(data)
    except (binascii.Error, ValueError) as e:
        raise FetchFailure("Failed to fetch calendar: malformed data URL") from e

    return raw.decode("utf-8", errors="replace")


class ICSFetcher:
    """Async HTTP client for downloading ICS feeds with a fixed time budget."""

    def __init__(self, settings: Any, client: Optional[httpx.AsyncClient] = None):
        """Initialize ICS fetcher.

        Args:
            settings: Application settings
            client: Optional shared HTTP client; when given the caller owns it
        """
        self.settings = settings
        self.client = client
        self._owns_client = client is None

        logger.debug("ICS fetcher initialized")

    async def __aenter__(self) -> "ICSFetcher":
        """Async context manager entry."""
        await self._ensure_client()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit."""
        await self._close_client()

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Ensure HTTP client exists and return it."""
        if self.client is None or self.client.is_closed:
            self.client = httpx.AsyncClient(
                timeout=httpx.Timeout(FETCH_TIMEOUT_SECONDS),
                follow_redirects=True,
                verify=True,
                headers={
                    "User-Agent": f"{self.settings.app_name}/1.0.0 ICS-Client",
                    "Accept": "text/calendar, text/plain, */*",
                    "Accept-Charset": "utf-8",
                    "Cache-Control": "no-cache",
                },
            )
            self._owns_client = True
        return self.client

    async def _close_client(self) -> None:
        """Close HTTP client if this fetcher created it."""
        if self._owns_client and self.client and not self.client.is_closed:
            await self.client.aclose()

    async def fetch(self, url: str) -> str:
        """Download a feed and return its text.

        ``data:`` URLs (stored uploads) are decoded without a request. The
        request is cancelled once FETCH_TIMEOUT_SECONDS elapse. No retries
        are attempted.

        Args:
            url: Feed URL; ``webcal://`` and ``data:`` are accepted

        Returns:
            Raw feed text

        Raises:
            FetchTimeoutFailure: If the request did not finish in time
            FetchFailure: On network errors, non-2xx responses or a malformed data URL
        """
        if is_data_url(url):
            return decode_data_url(url)

        request_url = normalize_feed_url(url)
        client = await self._ensure_client()

        logger.debug(f"Fetching calendar feed from {request_url}")

        try:
            response = await asyncio.wait_for(
                client.get(request_url), timeout=FETCH_TIMEOUT_SECONDS
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            logger.warning(f"Calendar fetch timed out: {request_url}")
            raise FetchTimeoutFailure(TIMEOUT_MESSAGE) from e
        except httpx.HTTPError as e:
            reason = str(e) or type(e).__name__
            logger.warning(f"Network error fetching calendar {request_url}: {reason}")
            raise FetchFailure(f"Failed to fetch calendar: {reason}") from e

        if not response.is_success:
            logger.warning(f"HTTP {response.status_code} fetching calendar {request_url}")
            raise FetchFailure(
                f"Failed to fetch calendar: {response.reason_phrase}",
                status_code=response.status_code,
            )

        logger.debug(f"Fetched {len(response.content)} bytes from {request_url}")
        return response.text
