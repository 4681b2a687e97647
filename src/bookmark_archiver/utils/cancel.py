"""Cooperative cancellation for pending awaits."""

import asyncio
from collections.abc import Awaitable
from typing import TypeVar

from bookmark_archiver.errors import ArchiveCancelled

T = TypeVar("T")


async def cancellable(aw: Awaitable[T], cancel: asyncio.Event | None) -> T:
    """Await ``aw`` unless ``cancel`` fires first.

    When the event is set before ``aw`` completes, the underlying task is
    cancelled and ``ArchiveCancelled`` is raised.
    """
    if cancel is None:
        return await aw

    task = asyncio.ensure_future(aw)
    if cancel.is_set():
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        raise ArchiveCancelled("cancelled before start")

    waiter = asyncio.ensure_future(cancel.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        if not task.done():
            task.cancel()
        waiter.cancel()

    if task.cancelled() or not task.done():
        await asyncio.gather(task, return_exceptions=True)
        raise ArchiveCancelled("cancelled while pending")
    return task.result()


async def sleep(delay: float, cancel: asyncio.Event | None) -> None:
    """Sleep for ``delay`` seconds, waking early with ``ArchiveCancelled``."""
    if delay <= 0:
        if cancel is not None and cancel.is_set():
            raise ArchiveCancelled("cancelled before sleep")
        return
    await cancellable(asyncio.sleep(delay), cancel)
