"""Two-tier fetch: plain HTTP first, headless browser as the fallback."""

import asyncio
import logging
from enum import Enum

from bookmark_archiver.config import RetryConfig
from bookmark_archiver.errors import FetchFailed
from bookmark_archiver.fetcher.base import BaseFetcher, FetchResult
from bookmark_archiver.fetcher.user_agents import UserAgentRotator
from bookmark_archiver.utils.backoff import Backoff
from bookmark_archiver.utils.cancel import cancellable, sleep

logger = logging.getLogger(__name__)


class FetchState(str, Enum):
    """States of the per-bookmark fetch machine."""

    LIGHTWEIGHT = "lightweight"
    BACKOFF = "backoff"
    HEAVY = "heavy"
    DONE = "done"
    FAILED = "failed"


class TieredFetcher:
    """Drive the lightweight/backoff/heavy fetch sequence for one URL at a time.

    The lightweight fetcher is retried with exponential backoff while the
    origin answers with a retryable status (403/503 by default). Any other
    failure status, or running out of attempts, hands the URL to the
    heavyweight fetcher exactly once. Transport errors are not retried.
    """

    def __init__(
        self,
        light: BaseFetcher,
        heavy: BaseFetcher,
        identities: UserAgentRotator,
        config: RetryConfig | None = None,
        cancel: asyncio.Event | None = None,
    ):
        self.light = light
        self.heavy = heavy
        self.identities = identities
        self.config = config or RetryConfig()
        self.cancel = cancel

    def _new_backoff(self) -> Backoff:
        return Backoff(
            max_duration=self.config.backoff_max,
            interval=self.config.backoff_interval,
            jitter=self.config.jitter,
        )

    async def fetch(self, url: str) -> FetchResult:
        """Return the first non-empty successful result, or raise ``FetchFailed``."""
        state = FetchState.LIGHTWEIGHT
        attempt = 1
        heavy_attempts = 0
        backoff = self._new_backoff()
        result: FetchResult | None = None
        reason = ""

        while True:
            if state == FetchState.LIGHTWEIGHT:
                identity = self.identities.next()
                result = await cancellable(self.light.fetch(url, identity), self.cancel)

                if result.error:
                    reason = f"request failed: {result.error}"
                    state = FetchState.FAILED
                elif result.ok:
                    state = FetchState.DONE
                elif (
                    result.status_code in self.config.retryable_statuses
                    and attempt < self.config.max_attempts
                ):
                    state = FetchState.BACKOFF
                else:
                    logger.debug(
                        "received HTTP %d for %s after %d attempt(s), trying the browser",
                        result.status_code, url, attempt,
                    )
                    state = FetchState.HEAVY

            elif state == FetchState.BACKOFF:
                delay = backoff.duration()
                logger.debug(
                    "HTTP %d for %s, retrying in %.1fs (attempt %d)",
                    result.status_code if result else 0, url, delay, attempt,
                )
                await sleep(delay, self.cancel)
                attempt += 1
                state = FetchState.LIGHTWEIGHT

            elif state == FetchState.HEAVY:
                heavy_attempts += 1
                result = await cancellable(self.heavy.fetch(url), self.cancel)
                if result.error:
                    reason = f"browser fetch failed: {result.error}"
                    state = FetchState.FAILED
                else:
                    state = FetchState.DONE

            elif state == FetchState.DONE:
                assert result is not None
                if not result.body:
                    reason = f"empty body (status {result.status_code})"
                    state = FetchState.FAILED
                    continue
                if attempt > 1:
                    logger.debug("retrieved %s after %d attempts", url, attempt)
                return result

            elif state == FetchState.FAILED:
                raise FetchFailed(url, attempt + heavy_attempts, reason)
