"""Pick the smallest sprite, by byte size, among candidate URLs."""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Optional, Sequence

import aiohttp

from .image_fetcher import ImageFetcher, ImageFetchError

LOGGER = logging.getLogger(__name__)


def _parse_content_length(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        length = int(value.strip())
    except ValueError:
        return None
    return length if length >= 0 else None


class SpriteSizeProber:
    """Measures candidate sprite sizes concurrently.

    Sizes come from a ``HEAD`` request's ``Content-Length`` when the server
    reports one; otherwise the full body is downloaded and measured. A URL that
    cannot be measured is treated as infinitely large.
    """

    def __init__(
        self,
        fetcher: ImageFetcher,
        *,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: Optional[float] = None,
        max_concurrency: int = 8,
    ) -> None:
        self._fetcher = fetcher
        self._session = session
        self._owns_session = session is None
        self._timeout = timeout if timeout is not None else fetcher.timeout
        self._semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _ensure_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self._timeout)
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _head_size(self, url: str) -> Optional[int]:
        session = await self._ensure_session()
        try:
            async with session.head(
                url,
                allow_redirects=True,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as response:
                if not 200 <= response.status < 300:
                    return None
                return _parse_content_length(response.headers.get("Content-Length"))
        except (asyncio.TimeoutError, aiohttp.ClientError) as exc:
            LOGGER.debug("HEAD probe failed for %s: %s", url, exc)
            return None

    async def probe_size(self, url: str) -> float:
        """Return the byte size of ``url``, or ``math.inf`` when unknown."""

        async with self._semaphore:
            size = await self._head_size(url)
            if size is not None:
                return size

            # TODO: stream and count instead of buffering once sprites are larger than a few KB
            try:
                fetched = await self._fetcher.fetch(url)
            except ImageFetchError as exc:
                LOGGER.warning("Could not measure sprite size for %s: %s", url, exc)
                return math.inf
            return len(fetched.data)

    async def select_smallest(self, urls: Sequence[str]) -> Optional[str]:
        """Return the URL with the smallest measured size.

        Ties, including all-unmeasurable candidates, go to the URL that appears
        first in ``urls``. Returns ``None`` for an empty sequence.
        """

        if not urls:
            return None

        sizes = await asyncio.gather(*(self.probe_size(url) for url in urls))
        ranked = sorted(zip(urls, sizes), key=lambda item: item[1])
        smallest_url, smallest_size = ranked[0]
        LOGGER.debug(
            "Smallest of %d sprites is %s (%s bytes)",
            len(urls),
            smallest_url,
            smallest_size,
        )
        return smallest_url
