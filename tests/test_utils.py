"""Tests for the concurrency utilities: cancellation, pool, rate limiting, backoff."""

from __future__ import annotations

import asyncio
import random
from time import monotonic

import pytest

from bookmark_archiver.errors import ArchiveCancelled, InvalidBookmarkURL, ScheduleTimeout
from bookmark_archiver.utils import (
    Backoff,
    HostRateLimiter,
    RateLimiterRegistry,
    TaskOutcome,
    WorkerPool,
    get_host,
    is_web_url,
)
from bookmark_archiver.utils.cancel import cancellable, sleep


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
class TestCancellable:
    async def test_returns_result_when_not_cancelled(self) -> None:
        async def work() -> int:
            return 42

        assert await cancellable(work(), asyncio.Event()) == 42

    async def test_no_event_awaits_directly(self) -> None:
        async def work() -> str:
            return "done"

        assert await cancellable(work(), None) == "done"

    async def test_already_set_event_raises(self) -> None:
        started = False

        async def work() -> None:
            nonlocal started
            started = True

        cancel = asyncio.Event()
        cancel.set()
        with pytest.raises(ArchiveCancelled):
            await cancellable(work(), cancel)
        assert not started

    async def test_event_set_while_pending_interrupts(self) -> None:
        cancel = asyncio.Event()
        inner = asyncio.create_task(asyncio.sleep(30))
        asyncio.get_running_loop().call_later(0.05, cancel.set)

        start = monotonic()
        with pytest.raises(ArchiveCancelled):
            await cancellable(inner, cancel)
        assert monotonic() - start < 1.0
        assert inner.cancelled()

    async def test_inner_exception_propagates(self) -> None:
        async def work() -> None:
            raise ValueError("boom")

        with pytest.raises(ValueError, match="boom"):
            await cancellable(work(), asyncio.Event())

    async def test_sleep_wakes_on_cancel(self) -> None:
        cancel = asyncio.Event()
        asyncio.get_running_loop().call_later(0.05, cancel.set)
        with pytest.raises(ArchiveCancelled):
            await asyncio.wait_for(sleep(30, cancel), timeout=1.0)

    async def test_zero_sleep_honours_set_event(self) -> None:
        cancel = asyncio.Event()
        cancel.set()
        with pytest.raises(ArchiveCancelled):
            await sleep(0, cancel)


# ---------------------------------------------------------------------------
# Worker pool
# ---------------------------------------------------------------------------


class TestWorkerPoolConstruction:
    def test_rejects_empty_pool(self) -> None:
        with pytest.raises(ValueError):
            WorkerPool(0)


@pytest.mark.asyncio
class TestWorkerPool:
    async def test_bounds_concurrency(self) -> None:
        pool = WorkerPool(3)
        active = 0
        peak = 0

        async def task() -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.02)
            active -= 1

        for i in range(10):
            await pool.submit(task, name=f"t{i}")
        await pool.join()

        assert peak == 3
        assert pool.in_flight == 0

    async def test_failures_are_reported_not_raised(self) -> None:
        outcomes: list[TaskOutcome] = []
        pool = WorkerPool(2, on_outcome=outcomes.append)

        async def bad() -> None:
            raise RuntimeError("nope")

        async def good() -> None:
            return None

        await pool.submit(bad, name="bad")
        await pool.submit(good, name="good")
        await pool.join()

        by_name = {o.name: o for o in outcomes}
        assert not by_name["bad"].ok
        assert isinstance(by_name["bad"].error, RuntimeError)
        assert by_name["good"].ok

    async def test_failed_task_frees_its_slot(self) -> None:
        pool = WorkerPool(1)

        async def bad() -> None:
            raise RuntimeError("nope")

        await pool.submit(bad)
        await asyncio.wait_for(pool.submit(bad), timeout=1.0)
        await pool.join()

    async def test_schedule_timeout_when_full(self) -> None:
        pool = WorkerPool(1)
        release = asyncio.Event()

        async def blocker() -> None:
            await release.wait()

        await pool.submit(blocker)
        with pytest.raises(ScheduleTimeout):
            await pool.submit_with_timeout(blocker, 0.05, name="late")
        release.set()
        await pool.join()

    async def test_join_waits_for_all(self) -> None:
        pool = WorkerPool(4)
        finished: list[int] = []

        async def task(i: int) -> None:
            await asyncio.sleep(0.01 * i)
            finished.append(i)

        for i in range(4):
            await pool.submit(lambda i=i: task(i))
        await pool.join()
        assert sorted(finished) == [0, 1, 2, 3]


# ---------------------------------------------------------------------------
# Rate limiting
# ---------------------------------------------------------------------------


class TestHostRateLimiterConstruction:
    def test_interval_from_rate(self) -> None:
        assert HostRateLimiter(2.0).interval == 0.5

    def test_rejects_non_positive_rate(self) -> None:
        with pytest.raises(ValueError):
            HostRateLimiter(0)


@pytest.mark.asyncio
class TestHostRateLimiter:
    async def test_first_take_is_immediate(self) -> None:
        limiter = HostRateLimiter(1.0)
        start = monotonic()
        await limiter.take()
        assert monotonic() - start < 0.1

    async def test_grants_are_spaced(self) -> None:
        limiter = HostRateLimiter(20.0)
        stamps: list[float] = []

        async def worker() -> None:
            await limiter.take()
            stamps.append(monotonic())

        await asyncio.gather(*(worker() for _ in range(4)))
        stamps.sort()
        gaps = [b - a for a, b in zip(stamps, stamps[1:])]
        assert all(gap >= 0.045 for gap in gaps)
        assert limiter.grants == 4

    async def test_cancel_interrupts_wait(self) -> None:
        limiter = HostRateLimiter(0.01)
        cancel = asyncio.Event()
        await limiter.take(cancel)

        asyncio.get_running_loop().call_later(0.05, cancel.set)
        with pytest.raises(ArchiveCancelled):
            await asyncio.wait_for(limiter.take(cancel), timeout=1.0)
        assert limiter.grants == 1


@pytest.mark.asyncio
class TestRateLimiterRegistry:
    async def test_same_limiter_per_host(self) -> None:
        registry = RateLimiterRegistry(2.0)
        a = await registry.for_host("example.com")
        b = await registry.for_host("EXAMPLE.com")
        c = await registry.for_host("other.org")
        assert a is b
        assert a is not c
        assert len(registry) == 2
        assert "Example.COM" in registry

    async def test_concurrent_lookup_creates_one(self) -> None:
        registry = RateLimiterRegistry(2.0)
        limiters = await asyncio.gather(*(registry.for_host("h.example") for _ in range(20)))
        assert len({id(limiter) for limiter in limiters}) == 1
        assert len(registry) == 1

    async def test_hosts_do_not_block_each_other(self) -> None:
        registry = RateLimiterRegistry(0.5)
        await registry.take("a.example")
        start = monotonic()
        await registry.take("b.example")
        assert monotonic() - start < 0.1


# ---------------------------------------------------------------------------
# Backoff
# ---------------------------------------------------------------------------


class TestBackoff:
    def test_doubles_until_capped(self) -> None:
        backoff = Backoff(max_duration=60, interval=10, jitter=False)
        assert [backoff.duration() for _ in range(5)] == [10, 20, 40, 60, 60]

    def test_reset_restarts_schedule(self) -> None:
        backoff = Backoff(max_duration=60, interval=10, jitter=False)
        backoff.duration()
        backoff.duration()
        backoff.reset()
        assert backoff.duration() == 10

    def test_jitter_stays_below_ceiling(self) -> None:
        backoff = Backoff(max_duration=60, interval=10, jitter=True, rng=random.Random(7))
        ceilings = [10, 20, 40, 60, 60, 60]
        for ceiling in ceilings:
            assert 0 <= backoff.duration() < ceiling

    def test_zero_interval_never_waits(self) -> None:
        backoff = Backoff(max_duration=60, interval=0, jitter=True)
        assert backoff.duration() == 0


# ---------------------------------------------------------------------------
# URLs
# ---------------------------------------------------------------------------


class TestGetHost:
    def test_lowercases_host_and_keeps_port(self) -> None:
        assert get_host("https://Example.COM:8080/path") == "example.com:8080"

    def test_unbracketed_ipv6_is_rejected(self) -> None:
        with pytest.raises(InvalidBookmarkURL):
            get_host("http://[invalid")

    def test_out_of_range_port_is_rejected(self) -> None:
        with pytest.raises(InvalidBookmarkURL):
            get_host("http://example.com:99999/")

    def test_hostless_url_gives_empty_host(self) -> None:
        assert get_host("javascript:void(0)") == ""


class TestIsWebUrl:
    def test_http_and_https(self) -> None:
        assert is_web_url("http://example.com")
        assert is_web_url("https://example.com/x")

    def test_other_schemes(self) -> None:
        assert not is_web_url("ftp://example.com/file")
        assert not is_web_url("javascript:void(0)")

    def test_unparseable_url(self) -> None:
        assert not is_web_url("http://[invalid")
