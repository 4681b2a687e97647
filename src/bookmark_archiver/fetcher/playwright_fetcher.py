"""Headless-browser fetcher, the last resort for pages that refuse plain HTTP."""

import asyncio
import logging

from playwright.async_api import Browser, BrowserContext, Page, Playwright, async_playwright

from bookmark_archiver.config import FetcherConfig
from bookmark_archiver.fetcher.base import BaseFetcher, FetchResult

logger = logging.getLogger(__name__)

# Runs before any page script so bot checks see an ordinary browser.
_STEALTH_SCRIPT = """
Object.defineProperty(navigator, 'webdriver', {get: () => undefined});
Object.defineProperty(navigator, 'languages', {get: () => ['en-US', 'en']});
Object.defineProperty(navigator, 'plugins', {get: () => [1, 2, 3, 4, 5]});
window.chrome = window.chrome || {runtime: {}};
"""


class PlaywrightFetcher(BaseFetcher):
    """Render pages in headless Chromium.

    A fixed set of tabs is opened up front and shared between callers; a
    tab that cannot be reset after use is swapped for a fresh one.
    """

    def __init__(self, config: FetcherConfig):
        super().__init__(config)
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._context: BrowserContext | None = None
        self._idle: asyncio.Queue[Page] | None = None
        self._live: int = 0

    async def __aenter__(self):
        """Launch the browser and open the tab pool."""
        self._playwright = await async_playwright().start()
        try:
            self._browser = await self._playwright.chromium.launch(headless=self.config.headless)
            self._context = await self._browser.new_context(
                user_agent=self.config.user_agent,
                viewport={"width": 1280, "height": 720},
            )
            await self._context.add_init_script(_STEALTH_SCRIPT)
            self._idle = asyncio.Queue()
            for _ in range(self.config.page_pool_size):
                self._idle.put_nowait(await self._context.new_page())
                self._live += 1
        except Exception:
            await self.__aexit__(None, None, None)
            raise
        logger.debug("browser started with %d tabs", self._live)
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Close tabs, context, browser and driver in that order."""
        if self._idle is not None:
            while not self._idle.empty():
                await _close_quietly(self._idle.get_nowait())
        for resource in (self._context, self._browser):
            if resource is not None:
                await resource.close()
        if self._playwright is not None:
            await self._playwright.stop()
        self._idle = None
        self._context = None
        self._browser = None
        self._playwright = None
        self._live = 0

    async def fetch(self, url: str, identity: str | None = None) -> FetchResult:
        """Render ``url`` and return the final document HTML.

        Anything other than a 200 main-document response is reported as an
        error result.
        """
        if self._context is None or self._idle is None:
            raise RuntimeError("Fetcher not initialized. Use 'async with' context manager.")
        if self._live <= 0:
            return FetchResult(url=url, final_url=url, status_code=0, error="no browser tabs left")

        page = await self._idle.get()
        try:
            if identity:
                await page.set_extra_http_headers({"User-Agent": identity})

            response = await page.goto(
                url,
                wait_until=self.config.wait_until,
                timeout=self.config.timeout_ms,
            )
            if response is None:
                return FetchResult(url=url, final_url=url, status_code=0, error="no response")
            if response.status != 200:
                return FetchResult(
                    url=url,
                    final_url=page.url,
                    status_code=response.status,
                    error=f"failed to retrieve page, status code {response.status}",
                )

            if self.config.wait_after_load_ms > 0:
                await asyncio.sleep(self.config.wait_after_load_ms / 1000)

            html = await page.content()
            return FetchResult(
                url=url,
                final_url=page.url,
                status_code=200,
                body=html.encode("utf-8"),
                encoding="utf-8",
            )
        except Exception as e:
            return FetchResult(url=url, final_url=url, status_code=0, error=str(e) or type(e).__name__)
        finally:
            await self._release(page)

    async def _release(self, page: Page) -> None:
        """Blank the tab and put it back, or replace it if it is wedged."""
        assert self._idle is not None and self._context is not None
        try:
            await page.set_extra_http_headers({})
            await page.goto("about:blank", timeout=5000)
        except Exception:
            logger.debug("tab reset failed, opening a replacement", exc_info=True)
            await _close_quietly(page)
            try:
                page = await self._context.new_page()
            except Exception:
                self._live -= 1
                logger.warning("couldn't replace browser tab, %d left", self._live, exc_info=True)
                return
        self._idle.put_nowait(page)


async def _close_quietly(page: Page) -> None:
    try:
        await page.close()
    except Exception:
        logger.debug("failed to close browser tab", exc_info=True)
