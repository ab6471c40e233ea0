"""Async HTTP client for downloading sprite images.

The fetcher performs no transformation; it only returns the body bytes.
Every network call is bounded by the configured timeout so that a single
unreachable sprite host cannot stall a conversion request.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

import aiohttp

LOGGER = logging.getLogger(__name__)


class ImageFetchError(Exception):
    """Raised when an image cannot be downloaded."""

    def __init__(self, url: str, reason: str, *, status: Optional[int] = None):
        super().__init__(f"failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason
        self.status = status


@dataclass(slots=True)
class FetchedImage:
    """Body and metadata of a downloaded image."""

    url: str
    data: bytes
    content_type: Optional[str] = None


class ImageFetcher:
    """Downloads raster images by absolute URL.

    Server errors (5xx), timeouts and transport errors are retried with
    exponential backoff; any other non-2xx status fails immediately.
    """

    def __init__(
        self,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 10.0,
        max_retries: int = 1,
        base_retry_delay: float = 0.25,
    ) -> None:
        """Initialize the fetcher.

        Args:
            session: Optional aiohttp session to share. If None, one is created
                lazily and closed by :meth:`close`.
            timeout: Per-request timeout in seconds.
            max_retries: Additional attempts after the first failure.
            base_retry_delay: Base delay between retries (exponential backoff).
        """
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout
        self._max_retries = max_retries
        self._base_retry_delay = base_retry_delay

    @property
    def timeout(self) -> float:
        return self._timeout

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        """Close the HTTP session if we own it."""
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def fetch(self, url: str) -> FetchedImage:
        """Download ``url`` and return its body.

        Raises:
            ImageFetchError: On network failure, timeout or non-2xx status.
        """
        session = await self._ensure_session()
        request_timeout = aiohttp.ClientTimeout(total=self._timeout)
        last_error: Optional[ImageFetchError] = None

        for attempt in range(self._max_retries + 1):
            if attempt > 0:
                delay = self._base_retry_delay * (2 ** (attempt - 1))
                LOGGER.debug(
                    "Retry %d/%d for %s after %.2fs",
                    attempt,
                    self._max_retries,
                    url,
                    delay,
                )
                await asyncio.sleep(delay)

            try:
                async with session.get(url, timeout=request_timeout) as response:
                    if 200 <= response.status < 300:
                        data = await response.read()
                        LOGGER.debug("Fetched %d bytes from %s", len(data), url)
                        return FetchedImage(
                            url=url,
                            data=data,
                            content_type=response.headers.get("Content-Type"),
                        )

                    reason = f"HTTP {response.status} {response.reason or ''}".strip()
                    last_error = ImageFetchError(url, reason, status=response.status)
                    if response.status < 500:
                        raise last_error

            except asyncio.TimeoutError:
                last_error = ImageFetchError(url, f"timed out after {self._timeout}s")
                LOGGER.warning("Image fetch timeout for %s (attempt %d)", url, attempt + 1)

            except aiohttp.ClientError as exc:
                last_error = ImageFetchError(url, str(exc) or type(exc).__name__)
                LOGGER.warning(
                    "Image fetch error for %s (attempt %d): %s", url, attempt + 1, exc
                )

        assert last_error is not None
        raise last_error
