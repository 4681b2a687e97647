"""Base class for page fetchers."""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from bookmark_archiver.config import FetcherConfig


class FetchResult(BaseModel):
    """Result of fetching a page."""

    url: str
    final_url: str  # After redirects
    status_code: int
    body: bytes = b""
    encoding: str | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status_code == 200 and not self.error

    @property
    def html(self) -> str:
        """The body decoded with the response encoding (UTF-8 fallback)."""
        try:
            return self.body.decode(self.encoding or "utf-8", errors="replace")
        except LookupError:
            return self.body.decode("utf-8", errors="replace")


class BaseFetcher(ABC):
    """Abstract base class for page fetchers."""

    def __init__(self, config: FetcherConfig):
        self.config = config

    @abstractmethod
    async def fetch(self, url: str, identity: str | None = None) -> FetchResult:
        """Fetch a page, presenting ``identity`` as the user agent if given."""
        pass

    @abstractmethod
    async def __aenter__(self):
        """Async context manager entry."""
        pass

    @abstractmethod
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        pass
