"""Fetch capability: ``fetch(url) -> bytes``.

Network timeouts and redirects are the fetcher's concern; callers only see
bytes or a ``FetchError``.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from lgpm.errors import FetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0


class Fetcher(Protocol):
    async def fetch(self, url: str) -> bytes: ...


class HttpFetcher:
    """Fetcher backed by a shared ``httpx.AsyncClient``.

    Usage:
        async with HttpFetcher() as fetcher:
            data = await fetcher.fetch("https://example.org/list.json")
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
        )

    async def fetch(self, url: str) -> bytes:
        logger.debug(f"Fetching {url}")
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as e:
            raise FetchError(f"Request to {url} failed: {e}", url=url) from e

        if response.status_code != 200:
            raise FetchError(
                f"HTTP {response.status_code} for {url}",
                url=url,
                status=response.status_code,
            )

        logger.debug(f"Fetched {url} ({len(response.content)} bytes)")
        return response.content

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()
