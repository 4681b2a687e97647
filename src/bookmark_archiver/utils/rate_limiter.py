"""Per-host rate limiting for polite fetching."""

import asyncio
from time import monotonic

from bookmark_archiver.utils.cancel import cancellable, sleep


class HostRateLimiter:
    """Rate limiter that spaces request starts for a single host.

    Grants are handed out at least ``1 / requests_per_second`` seconds
    apart. Waiters queue on a lock, so concurrent callers are released one
    interval after another.
    """

    def __init__(self, requests_per_second: float = 2.0):
        if requests_per_second <= 0:
            raise ValueError("requests_per_second must be positive")
        self.interval = 1.0 / requests_per_second
        self._last_grant: float | None = None
        self._lock = asyncio.Lock()
        self.grants: int = 0

    async def take(self, cancel: asyncio.Event | None = None) -> None:
        """Wait until the next request to this host may start."""
        await cancellable(self._take(cancel), cancel)

    async def _take(self, cancel: asyncio.Event | None) -> None:
        async with self._lock:
            if self._last_grant is not None:
                wait_time = self.interval - (monotonic() - self._last_grant)
                if wait_time > 0:
                    await sleep(wait_time, cancel)

            self._last_grant = monotonic()
            self.grants += 1


class RateLimiterRegistry:
    """Lazily creates one ``HostRateLimiter`` per host.

    Limiters live as long as the registry; they are never evicted, so every
    worker targeting a host shares the same limiter.
    """

    def __init__(self, requests_per_second: float = 2.0):
        self.requests_per_second = requests_per_second
        self._limiters: dict[str, HostRateLimiter] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._limiters)

    def __contains__(self, host: str) -> bool:
        return host.lower() in self._limiters

    async def for_host(self, host: str) -> HostRateLimiter:
        """Return the limiter for ``host``, creating it on first use."""
        key = host.lower()
        async with self._lock:
            limiter = self._limiters.get(key)
            if limiter is None:
                limiter = HostRateLimiter(self.requests_per_second)
                self._limiters[key] = limiter
            return limiter

    async def take(self, host: str, cancel: asyncio.Event | None = None) -> None:
        """Wait for a token from ``host``'s limiter."""
        limiter = await self.for_host(host)
        await limiter.take(cancel)
