"""Lightweight HTTP fetcher for plain request/response retrieval."""

import httpx

from bookmark_archiver.config import FetcherConfig
from bookmark_archiver.fetcher.base import BaseFetcher, FetchResult

BROWSER_HEADERS = {
    "Referer": "https://www.google.com/",
    "Accept-Charset": "utf-8",
    "Accept-Language": "en-US,en;q=0.9,ru;q=0.8",
    "Accept": (
        "text/html,application/xhtml+xml,application/xml;q=0.9,"
        "image/avif,image/webp,image/apng,*/*;q=0.8,"
        "application/signed-exchange;v=b3;q=0.9"
    ),
}


class HttpFetcher(BaseFetcher):
    """HTTP fetcher without JavaScript rendering."""

    def __init__(self, config: FetcherConfig, transport: httpx.AsyncBaseTransport | None = None):
        super().__init__(config)
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def __aenter__(self):
        """Initialize HTTP client."""
        self._client = httpx.AsyncClient(
            headers=BROWSER_HEADERS,
            follow_redirects=True,
            timeout=self.config.timeout_ms / 1000,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Clean up HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch(self, url: str, identity: str | None = None) -> FetchResult:
        """Fetch a page via HTTP.

        Transport failures are reported through ``FetchResult.error`` with a
        zero status code; HTTP error statuses are returned as-is.
        """
        if not self._client:
            raise RuntimeError("Fetcher not initialized. Use 'async with' context manager.")

        try:
            response = await self._client.get(
                url,
                headers={"User-Agent": identity or self.config.user_agent},
            )
            return FetchResult(
                url=url,
                final_url=str(response.url),
                status_code=response.status_code,
                body=response.content,
                encoding=response.encoding,
            )

        except Exception as e:
            return FetchResult(
                url=url,
                final_url=url,
                status_code=0,
                error=str(e) or type(e).__name__,
            )
