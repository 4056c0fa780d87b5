"""Request frontier: a URL queue worked by a bounded pool of browser pages.

One :class:`Frontier` serves exactly one crawl session.  It owns its request
queue and visited set, so two frontiers never suppress each other's pages.
Workers share a single Playwright browser context and open a fresh page per
request.  A request whose handler raises is retried up to
``max_request_retries`` times and then given up on; it never aborts the run.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Sequence

from playwright.async_api import BrowserContext, Page, async_playwright
from playwright.async_api import Error as PlaywrightError

from gptcrawl.services.links import extract_links, matches_any, normalise, same_hostname

logger = logging.getLogger(__name__)

BROWSER_ARGS = [
    # --no-sandbox is required when running as root inside a container
    # (Docker drops the user namespace needed by Chromium's sandbox).
    "--no-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]


@dataclass
class Request:
    url: str
    retry_count: int = 0


@dataclass
class PageContext:
    """What a request handler receives for one loaded page."""

    request: Request
    page: Page
    loaded_url: str  # final URL after redirects
    push_data: Callable[[Any], Any]
    enqueue_links: Callable[[Sequence[str]], Awaitable[int]]


@dataclass
class FrontierStats:
    requests_started: int = 0
    requests_handled: int = 0
    requests_failed: int = 0


RequestHandler = Callable[[PageContext], Awaitable[Any]]
PreNavigationHook = Callable[[Page], Awaitable[None]]


class Frontier:
    def __init__(
        self,
        request_handler: RequestHandler,
        *,
        push_data: Callable[[Any], Any],
        max_requests_per_crawl: Optional[int] = None,
        max_concurrency: int = 4,
        max_request_retries: int = 3,
        navigation_timeout_ms: int = 30_000,
        pre_navigation_hooks: Iterable[PreNavigationHook] = (),
        headless: bool = True,
        browser_context: Optional[BrowserContext] = None,
    ) -> None:
        self.request_handler = request_handler
        self.push_data = push_data
        self.max_requests_per_crawl = max_requests_per_crawl
        self.max_concurrency = max(1, max_concurrency)
        self.max_request_retries = max_request_retries
        self.navigation_timeout_ms = navigation_timeout_ms
        self.pre_navigation_hooks = list(pre_navigation_hooks)
        self.headless = headless
        self.stats = FrontierStats()

        self._context = browser_context
        self._owns_browser = browser_context is None
        self._playwright = None
        self._browser = None

        self._seen: set = set()
        self._pending: List[Request] = []
        self._queue: Optional[asyncio.Queue] = None

    # ------------------------------------------------------------------
    # Queue
    # ------------------------------------------------------------------

    def add_requests(self, urls: Iterable[str]) -> int:
        """Queue every URL not seen before; returns how many were added."""
        added = 0
        for url in urls:
            normalised = normalise(url)
            if normalised in self._seen:
                continue
            self._seen.add(normalised)
            self._put(Request(normalised))
            added += 1
        return added

    def _put(self, request: Request) -> None:
        if self._queue is None:
            self._pending.append(request)
        else:
            self._queue.put_nowait(request)

    def _limit_reached(self) -> bool:
        return (
            self.max_requests_per_crawl is not None
            and self.stats.requests_started >= self.max_requests_per_crawl
        )

    async def enqueue_links(self, page: Page, base_url: str, globs: Sequence[str]) -> int:
        """Queue same-hostname links on *page* that match one of *globs*."""
        html = await page.content()
        candidates = [
            link
            for link in extract_links(html, base_url)
            if same_hostname(link, base_url) and matches_any(link, globs)
        ]
        added = self.add_requests(candidates)
        logger.debug("Enqueued %d of %d links from %s", added, len(candidates), base_url)
        return added

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def run(self, urls: Optional[Iterable[str]] = None) -> FrontierStats:
        """Process the queue until it is empty or the request ceiling is hit."""
        if urls:
            self.add_requests(urls)

        self._queue = asyncio.Queue()
        for request in self._pending:
            self._queue.put_nowait(request)
        self._pending.clear()

        context = await self._open_context()
        workers = [asyncio.create_task(self._worker(context)) for _ in range(self.max_concurrency)]
        try:
            await self._queue.join()
        finally:
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)

        logger.info(
            "Frontier finished: %d handled, %d failed, %d started",
            self.stats.requests_handled,
            self.stats.requests_failed,
            self.stats.requests_started,
        )
        return self.stats

    async def _worker(self, context: BrowserContext) -> None:
        while True:
            request = await self._queue.get()
            try:
                # Retries were already counted when first started
                if request.retry_count == 0:
                    if self._limit_reached():
                        continue
                    self.stats.requests_started += 1
                await self._process(context, request)
            finally:
                self._queue.task_done()

    async def _process(self, context: BrowserContext, request: Request) -> None:
        page = None
        try:
            page = await context.new_page()
            for hook in self.pre_navigation_hooks:
                await hook(page)
            await page.goto(request.url, timeout=self.navigation_timeout_ms)
            loaded_url = page.url

            async def enqueue(globs: Sequence[str]) -> int:
                return await self.enqueue_links(page, loaded_url, globs)

            await self.request_handler(
                PageContext(
                    request=request,
                    page=page,
                    loaded_url=loaded_url,
                    push_data=self.push_data,
                    enqueue_links=enqueue,
                )
            )
            self.stats.requests_handled += 1
        except Exception as exc:
            if request.retry_count < self.max_request_retries:
                logger.warning(
                    "Request %s failed (attempt %d), retrying: %s",
                    request.url,
                    request.retry_count + 1,
                    exc,
                )
                self._put(Request(request.url, request.retry_count + 1))
            else:
                self.stats.requests_failed += 1
                logger.error(
                    "Request %s failed after %d attempts: %s",
                    request.url,
                    request.retry_count + 1,
                    exc,
                )
        finally:
            if page is not None:
                try:
                    await page.close()
                except PlaywrightError as exc:
                    logger.debug("Could not close page for %s: %s", request.url, exc)

    # ------------------------------------------------------------------
    # Browser lifecycle
    # ------------------------------------------------------------------

    async def _open_context(self) -> BrowserContext:
        if self._context is not None:
            return self._context
        self._playwright = await async_playwright().start()
        self._browser = await self._playwright.chromium.launch(headless=self.headless, args=BROWSER_ARGS)
        self._context = await self._browser.new_context()
        return self._context

    async def teardown(self) -> None:
        """Drop the queue and close the browser this frontier launched."""
        if self._queue is not None:
            while not self._queue.empty():
                self._queue.get_nowait()
                self._queue.task_done()
            self._queue = None
        self._pending.clear()
        self._seen.clear()

        if self._owns_browser:
            if self._context is not None:
                await self._context.close()
            if self._browser is not None:
                await self._browser.close()
            if self._playwright is not None:
                await self._playwright.stop()
            self._context = None
            self._browser = None
            self._playwright = None
