"""Page fetching: plain HTTP and headless-browser tiers."""

from bookmark_archiver.fetcher.base import BaseFetcher, FetchResult
from bookmark_archiver.fetcher.http_fetcher import HttpFetcher
from bookmark_archiver.fetcher.playwright_fetcher import PlaywrightFetcher
from bookmark_archiver.fetcher.tiered import FetchState, TieredFetcher
from bookmark_archiver.fetcher.user_agents import UserAgentRotator

__all__ = [
    "BaseFetcher",
    "FetchResult",
    "FetchState",
    "HttpFetcher",
    "PlaywrightFetcher",
    "TieredFetcher",
    "UserAgentRotator",
]
