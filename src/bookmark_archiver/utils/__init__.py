"""Utility functions and classes."""

from bookmark_archiver.utils.backoff import Backoff
from bookmark_archiver.utils.pool import TaskOutcome, WorkerPool
from bookmark_archiver.utils.rate_limiter import HostRateLimiter, RateLimiterRegistry
from bookmark_archiver.utils.url_utils import get_host, is_web_url

__all__ = [
    "Backoff",
    "HostRateLimiter",
    "RateLimiterRegistry",
    "TaskOutcome",
    "WorkerPool",
    "get_host",
    "is_web_url",
]
