from __future__ import annotations

import logging
from urllib.parse import urljoin

import httpx

from core.errors import DownloadFailed, TooManyRedirects

logger = logging.getLogger(__name__)

DEFAULT_MAX_REDIRECTS = 5
DEFAULT_TIMEOUT_SECONDS = 30.0


class DownloadFetcher:
    """Fetch a document body into memory, following a bounded redirect chain."""

    def __init__(
        self,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._timeout = timeout
        self._max_redirects = max_redirects
        self._transport = transport

    async def fetch(self, url: str) -> bytes:
        current_url = url
        redirects = 0
        async with httpx.AsyncClient(
            timeout=self._timeout,
            follow_redirects=False,
            transport=self._transport,
        ) as client:
            while True:
                response = await client.get(current_url)

                if response.status_code >= 400:
                    raise DownloadFailed(current_url, response.status_code, response.reason_phrase)

                location = response.headers.get("location")
                if 300 <= response.status_code < 400 and location:
                    if redirects >= self._max_redirects:
                        raise TooManyRedirects(url, response.status_code, self._max_redirects)
                    redirects += 1
                    current_url = urljoin(str(response.url), location)
                    logger.debug("Following redirect %d to %s", redirects, current_url)
                    continue

                logger.info("Downloaded %d bytes from %s", len(response.content), current_url)
                return response.content
