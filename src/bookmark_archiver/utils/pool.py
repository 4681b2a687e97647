"""Bounded-concurrency worker pool."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from bookmark_archiver.errors import ScheduleTimeout

logger = logging.getLogger(__name__)

Task = Callable[[], Awaitable[None]]


@dataclass
class TaskOutcome:
    """Result of one scheduled task, captured at the task boundary."""

    name: str
    ok: bool
    error: BaseException | None = None


class WorkerPool:
    """Run tasks with at most ``size`` of them in flight.

    ``submit`` waits for a free slot; the task itself runs in the background.
    Task failures are logged and reported through ``on_outcome`` but never
    propagate out of the pool.
    """

    def __init__(
        self,
        size: int,
        on_outcome: Callable[[TaskOutcome], None] | None = None,
    ):
        if size < 1:
            raise ValueError("pool size must be at least 1")
        self.size = size
        self._slots = asyncio.Semaphore(size)
        self._tasks: set[asyncio.Task] = set()
        self._on_outcome = on_outcome

    @property
    def in_flight(self) -> int:
        return len(self._tasks)

    async def submit(self, task: Task, name: str = "") -> None:
        """Wait for a free slot, then start ``task``."""
        await self._slots.acquire()
        self._spawn(task, name)

    async def submit_with_timeout(self, task: Task, timeout: float, name: str = "") -> None:
        """Like ``submit`` but give up after ``timeout`` seconds."""
        try:
            await asyncio.wait_for(self._slots.acquire(), timeout)
        except asyncio.TimeoutError:
            raise ScheduleTimeout(
                f"no free worker within {timeout:.1f}s for {name or 'task'}"
            ) from None
        self._spawn(task, name)

    async def join(self) -> None:
        """Wait until every task started so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn(self, task: Task, name: str) -> None:
        t = asyncio.create_task(self._run(task, name))
        self._tasks.add(t)
        t.add_done_callback(self._tasks.discard)

    async def _run(self, task: Task, name: str) -> None:
        outcome = TaskOutcome(name=name, ok=True)
        try:
            await task()
        except asyncio.CancelledError:
            outcome = TaskOutcome(name=name, ok=False, error=asyncio.CancelledError())
            raise
        except Exception as e:
            logger.error("run time failure in task %s: %s", name or "<unnamed>", e, exc_info=True)
            outcome = TaskOutcome(name=name, ok=False, error=e)
        finally:
            self._slots.release()
            if self._on_outcome:
                try:
                    self._on_outcome(outcome)
                except Exception:
                    logger.debug("Outcome callback failed", exc_info=True)
