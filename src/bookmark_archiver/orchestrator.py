"""Archive pipeline: schedules, fetches, extracts, tags and stores bookmarks."""

import asyncio
import logging
import time
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from functools import partial

from rich.console import Console
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from bookmark_archiver.config import AppConfig
from bookmark_archiver.errors import (
    ArchiveCancelled,
    ArchiveError,
    ExtractionError,
    SaveError,
    ScheduleTimeout,
    SourceError,
    StoreError,
)
from bookmark_archiver.extractor import ArticleExtractor, ExtractedArticle
from bookmark_archiver.fetcher import (
    BaseFetcher,
    HttpFetcher,
    PlaywrightFetcher,
    TieredFetcher,
    UserAgentRotator,
)
from bookmark_archiver.normalizer import ArchivedDocument, LanguageTagger, build_document
from bookmark_archiver.sources import BaseSource, Bookmark
from bookmark_archiver.store import BookmarkStore
from bookmark_archiver.utils.cancel import cancellable
from bookmark_archiver.utils.pool import TaskOutcome, WorkerPool
from bookmark_archiver.utils.rate_limiter import RateLimiterRegistry
from bookmark_archiver.utils.url_utils import get_host

logger = logging.getLogger(__name__)


@dataclass
class RunProgress:
    """Counters for a bulk run. Advisory only."""

    total: int = 0
    completed: int = 0
    archived: int = 0
    skipped: int = 0
    failed: int = 0
    cancelled: bool = False
    errors: list[tuple[str, str]] = field(default_factory=list)  # (url, message)
    started: float = field(default_factory=time.monotonic)
    finished: float = 0.0

    @property
    def duration(self) -> float:
        return (self.finished or time.monotonic()) - self.started

    def record_failure(self, url: str, error: BaseException) -> None:
        self.failed += 1
        self.errors.append((url, str(error) or type(error).__name__))


class Archiver:
    """Coordinates the bookmark archive pipeline.

    Use as an async context manager so both fetch tiers are started and
    shut down with the run.
    """

    def __init__(
        self,
        config: AppConfig,
        store: BookmarkStore,
        source: BaseSource | None = None,
        light: BaseFetcher | None = None,
        heavy: BaseFetcher | None = None,
        extractor: ArticleExtractor | None = None,
        identities: UserAgentRotator | None = None,
        tagger: LanguageTagger | None = None,
        console: Console | None = None,
        show_progress: bool = True,
    ):
        self.config = config
        self.store = store
        self.source = source
        self.console = console or Console()
        self.show_progress = show_progress

        # Set by cancel() and, for the rest of a failing run, by run_all itself.
        self._cancel = asyncio.Event()
        self._cancel_requested = False
        self.light = light or HttpFetcher(config.fetcher)
        self.heavy = heavy or PlaywrightFetcher(config.fetcher)
        self.fetcher = TieredFetcher(
            self.light,
            self.heavy,
            identities or UserAgentRotator.default(),
            config.retry,
            cancel=self._cancel,
        )
        # A single extractor instance, so parsing is serialized across workers.
        self.extractor = extractor or ArticleExtractor(config.extractor)
        self._extract_lock = asyncio.Lock()
        self.tagger = tagger or LanguageTagger(
            threshold=config.language.confidence_threshold,
            default=config.language.default,
        )
        self.limiters = RateLimiterRegistry(config.rate_limit.requests_per_second)
        self._stack: AsyncExitStack | None = None

    async def __aenter__(self) -> "Archiver":
        stack = AsyncExitStack()
        try:
            await stack.enter_async_context(self.light)
            await stack.enter_async_context(self.heavy)
        except BaseException:
            await stack.aclose()
            raise
        self._stack = stack
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._stack:
            await self._stack.aclose()
            self._stack = None

    def cancel(self) -> None:
        """Ask the pipeline to stop; pending waits and fetches unblock promptly."""
        if not self._cancel_requested:
            logger.info("Cancellation requested")
        self._cancel_requested = True
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_requested

    async def run_all(self, force: bool = False) -> RunProgress:
        """Archive every bookmark from the source.

        Per-bookmark failures are logged and counted; only source errors and
        unparseable URLs abort the run.
        """
        if self.source is None:
            raise SourceError("no bookmark source configured")

        try:
            bookmarks = self.source.list()
        except SourceError:
            raise
        except Exception as e:
            raise SourceError(f"couldn't enumerate bookmarks: {e}") from e

        progress = RunProgress(total=len(bookmarks))
        self.limiters = RateLimiterRegistry(self.config.rate_limit.requests_per_second)
        pool = WorkerPool(
            self.config.rate_limit.pool_size,
            on_outcome=partial(self._record_outcome, progress),
        )
        scheduled: set[str] = set()
        schedule_timeout = self.config.rate_limit.schedule_timeout

        bar = Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            TextColumn("•"),
            TimeRemainingColumn(),
            console=self.console,
            disable=not self.show_progress,
        )

        with bar:
            task_id = bar.add_task("Archiving...", total=len(bookmarks))
            advance = partial(self._advance, progress, bar, task_id)

            try:
                for bookmark in bookmarks:
                    if self._cancel.is_set():
                        break

                    if bookmark.url in scheduled:
                        logger.debug("%s listed more than once, skipping repeat", bookmark.url)
                        progress.skipped += 1
                        advance()
                        continue
                    scheduled.add(bookmark.url)

                    if not force and self.store.exists(bookmark.url):
                        progress.skipped += 1
                        advance()
                        continue

                    host = get_host(bookmark.url)
                    await self.limiters.for_host(host)

                    task = partial(self._archive_task, bookmark, host, force, progress, advance)
                    try:
                        if schedule_timeout is not None:
                            submit = pool.submit_with_timeout(task, schedule_timeout, name=bookmark.url)
                        else:
                            submit = pool.submit(task, name=bookmark.url)
                        await cancellable(submit, self._cancel)
                    except ScheduleTimeout as e:
                        logger.error("couldn't schedule bookmark %s: %s", bookmark.url, e)
                        progress.record_failure(bookmark.url, e)
                        advance()
                    except ArchiveCancelled:
                        break
            except ArchiveError as e:
                # Fatal to the run: stop in-flight work before re-raising
                logger.error("archive run aborted: %s", e)
                self._cancel.set()
                raise
            finally:
                await pool.join()
                progress.finished = time.monotonic()
                if not self._cancel_requested:
                    self._cancel.clear()

        progress.cancelled = self._cancel_requested
        return progress

    async def _archive_task(
        self,
        bookmark: Bookmark,
        host: str,
        force: bool,
        progress: RunProgress,
        advance,
    ) -> None:
        """Pool task: wait for the host token, archive, and record the outcome."""
        try:
            await self.limiters.take(host, self._cancel)
            doc = await self.archive(bookmark, force=force)
        except ArchiveCancelled as e:
            logger.info("archiving %s cancelled", bookmark.url)
            progress.record_failure(bookmark.url, e)
        except Exception as e:
            logger.error("failed dumping bookmark %s: %s", bookmark.url, e)
            progress.record_failure(bookmark.url, e)
        else:
            if doc is None:
                progress.skipped += 1
            else:
                progress.archived += 1
        finally:
            advance()

    @staticmethod
    def _record_outcome(progress: RunProgress, outcome: TaskOutcome) -> None:
        """Count tasks that crashed outside their own error handling."""
        if not outcome.ok and isinstance(outcome.error, Exception):
            progress.record_failure(outcome.name, outcome.error)

    @staticmethod
    def _advance(progress: RunProgress, bar: Progress, task_id: TaskID) -> None:
        progress.completed += 1
        bar.update(task_id, advance=1)

    async def archive(self, bookmark: Bookmark, force: bool = False) -> ArchivedDocument | None:
        """Fetch, extract, tag and store a single bookmark.

        Returns None when the bookmark is already stored and ``force`` is
        false. Failures are raised to the caller.
        """
        if not force and self.store.exists(bookmark.url):
            logger.debug("%s already archived, skipping", bookmark.url)
            return None

        result = await self.fetcher.fetch(bookmark.url)
        article = await self._parse(result.html, bookmark.url)

        title = article.title or bookmark.title
        lang = self.tagger.tag(article.text or "", article.excerpt or "", title)
        doc = build_document(bookmark, article, lang)

        try:
            self.store.put_document(doc)
        except StoreError as e:
            raise SaveError(f"couldn't save {bookmark.url} ({title!r}): {e}") from e

        logger.debug("archived %s as %s (%d chars)", bookmark.url, lang, len(doc.text))
        return doc

    async def _parse(self, html: str, url: str) -> ExtractedArticle:
        """Run the shared extractor, one page at a time."""
        async with self._extract_lock:
            try:
                return await asyncio.to_thread(self.extractor.parse, html, url)
            except Exception as e:
                raise ExtractionError(f"couldn't extract article from {url}: {e}") from e
