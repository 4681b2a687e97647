"""Shared pytest fixtures for bookmark-archiver tests.

Fixture summary
---------------
app_config   - AppConfig tuned for fast tests (tiny backoff, high rate limit).
store        - BookmarkStore backed by a throwaway LMDB environment.
light        - ScriptedFetcher standing in for the plain HTTP tier.
heavy        - ScriptedFetcher standing in for the browser tier.
extractor    - StubExtractor returning a fixed article.
tagger       - LanguageTagger driven by a FakeDetector.
make_archiver - Factory building an Archiver wired to the fakes above.

Nothing here touches the network or launches a browser.
"""

from __future__ import annotations

import asyncio
import io
from pathlib import Path
from time import monotonic
from typing import Any

import pytest
from rich.console import Console

from bookmark_archiver.config import AppConfig, FetcherConfig, RateLimitConfig, RetryConfig
from bookmark_archiver.extractor import ExtractedArticle
from bookmark_archiver.fetcher import BaseFetcher, FetchResult, UserAgentRotator
from bookmark_archiver.normalizer import LanguageTagger
from bookmark_archiver.orchestrator import Archiver
from bookmark_archiver.sources import BaseSource, Bookmark
from bookmark_archiver.store import BookmarkStore

PAGE = b"<html><head><title>Page</title></head><body><p>Hello there</p></body></html>"

# A script entry of None stands for a transport failure.
Script = list[int | None]


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class ScriptedFetcher(BaseFetcher):
    """Fetcher that answers from a per-URL list of status codes.

    Each call consumes the next status; the last one repeats once the
    script runs out.
    """

    def __init__(
        self,
        default: Script | None = None,
        per_url: dict[str, Script] | None = None,
        body: bytes = PAGE,
        delay: float = 0.0,
    ) -> None:
        super().__init__(FetcherConfig())
        self.default = list(default or [200])
        self.per_url = {url: list(script) for url, script in (per_url or {}).items()}
        self.body = body
        self.delay = delay
        self.calls: list[tuple[str, str | None, float]] = []
        self.active = 0
        self.max_active = 0
        self.entered = False
        self.exited = False

    async def __aenter__(self) -> ScriptedFetcher:
        self.entered = True
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.exited = True

    def _next_status(self, url: str) -> int | None:
        script = self.per_url.get(url, self.default)
        return script.pop(0) if len(script) > 1 else script[0]

    async def fetch(self, url: str, identity: str | None = None) -> FetchResult:
        self.calls.append((url, identity, monotonic()))
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            status = self._next_status(url)
        finally:
            self.active -= 1

        if status is None:
            return FetchResult(url=url, final_url=url, status_code=0, error="connection refused")
        return FetchResult(
            url=url,
            final_url=url,
            status_code=status,
            body=self.body if status == 200 else b"blocked",
            encoding="utf-8",
        )

    @property
    def urls(self) -> list[str]:
        return [url for url, _, _ in self.calls]


class StubExtractor:
    """Returns a fixed article; raises for URLs listed in ``broken``."""

    def __init__(self, title: str = "Stub title", broken: set[str] | None = None) -> None:
        self.title = title
        self.broken = broken or set()
        self.calls: list[str] = []

    def parse(self, html: str, url: str) -> ExtractedArticle:
        self.calls.append(url)
        if url in self.broken:
            raise ValueError("parser exploded")
        return ExtractedArticle(
            title=self.title,
            html=f"<div>{html}</div>",
            text="Hello there",
            excerpt="Hello",
            author="A. Writer",
            site_name="Example",
            extraction_method="stub",
        )


class FakeDetector:
    """Looks detections up in a table; unknown text is undetectable."""

    def __init__(self, table: dict[str, tuple[str, float]] | None = None) -> None:
        self.table = table or {}
        self.seen: list[str] = []

    def __call__(self, text: str) -> tuple[str, float]:
        self.seen.append(text)
        return self.table.get(text, ("", 0.0))


class ListSource(BaseSource):
    def __init__(self, bookmarks: list[Bookmark]) -> None:
        self.bookmarks = bookmarks

    def list(self) -> list[Bookmark]:
        return list(self.bookmarks)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def app_config(tmp_path: Path) -> AppConfig:
    return AppConfig(
        rate_limit=RateLimitConfig(requests_per_second=100.0, pool_size=4),
        retry=RetryConfig(backoff_interval=0.01, backoff_max=0.05, jitter=False),
        log_dir=tmp_path / "log",
    )


@pytest.fixture
def store(tmp_path: Path):
    with BookmarkStore.open(tmp_path / "db", map_size=1 << 24) as s:
        yield s


@pytest.fixture
def light() -> ScriptedFetcher:
    return ScriptedFetcher()


@pytest.fixture
def heavy() -> ScriptedFetcher:
    return ScriptedFetcher()


@pytest.fixture
def extractor() -> StubExtractor:
    return StubExtractor()


@pytest.fixture
def tagger() -> LanguageTagger:
    return LanguageTagger(detector=FakeDetector({"Stub title": ("en", 0.99)}))


@pytest.fixture
def identities() -> UserAgentRotator:
    return UserAgentRotator(["test-agent/1.0"])


@pytest.fixture
def make_archiver(app_config, store, light, heavy, extractor, tagger, identities):
    def _make(
        bookmarks: list[Bookmark] | None = None,
        config: AppConfig | None = None,
        **overrides: Any,
    ) -> Archiver:
        kwargs: dict[str, Any] = dict(
            source=ListSource(bookmarks or []),
            light=light,
            heavy=heavy,
            extractor=extractor,
            identities=identities,
            tagger=tagger,
            console=Console(file=io.StringIO()),
            show_progress=False,
        )
        kwargs.update(overrides)
        return Archiver(config or app_config, store, **kwargs)

    return _make
