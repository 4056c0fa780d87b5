"""Per-page extraction contract, run by the frontier for every visited page.

For each page, in order:

1. add the configured cookies to the browser context, scoped to the page URL;
2. wait for the configured selector (XPath when it starts with ``/``);
3. read the visible text of the selector (or of ``<body>``);
4. store a :class:`PageRecord` for the page, once per request even when the
   request is retried after a later step failed;
5. call the ``onVisitPage`` hook, if any;
6. enqueue links matching the configured globs.
"""

import asyncio
import inspect
import logging
from typing import List, Optional, Set

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import Page
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from gptcrawl.errors import PageExtractionError
from gptcrawl.models.crawl_config import CrawlConfig
from gptcrawl.models.page_record import PageRecord
from gptcrawl.services.frontier import PageContext, PreNavigationHook

logger = logging.getLogger(__name__)

DEFAULT_SELECTOR = "body"
XPATH_PREFIX = "/"

# XPath: textContent of the first matching node.  CSS: rendered innerText.
_PAGE_TEXT_JS = """
(selector) => {
  if (selector.startsWith("/")) {
    const result = document.evaluate(
      selector, document, null, XPathResult.FIRST_ORDERED_NODE_TYPE, null,
    );
    const node = result.singleNodeValue;
    return node ? node.textContent || "" : "";
  }
  const el = document.querySelector(selector);
  return el ? el.innerText || "" : "";
}
"""


def is_xpath(selector: str) -> bool:
    return selector.startswith(XPATH_PREFIX)


async def wait_for_content(page: Page, selector: str, timeout_ms: int) -> None:
    """Block until *selector* matches, or raise Playwright's TimeoutError."""
    if is_xpath(selector):
        await page.wait_for_selector(f"xpath={selector}", state="attached", timeout=timeout_ms)
    else:
        await page.wait_for_selector(selector, timeout=timeout_ms)


async def get_page_text(page: Page, selector: Optional[str] = None) -> str:
    text = await page.evaluate(_PAGE_TEXT_JS, selector or DEFAULT_SELECTOR)
    return text or ""


def resource_exclusion_hook(extensions: List[str]) -> Optional[PreNavigationHook]:
    """Pre-navigation hook aborting requests for files with any of *extensions*."""
    cleaned = [ext.strip().lstrip(".") for ext in extensions if ext.strip().lstrip(".")]
    if not cleaned:
        return None
    pattern = "**/*.{" + ",".join(cleaned) + "}"

    async def _abort(route) -> None:
        await route.abort("aborted")

    async def exclude_resources(page: Page) -> None:
        await page.route(pattern, _abort)
        logger.debug("Aborting requests matching %s", pattern)

    return exclude_resources


class PageExtractor:
    def __init__(self, config: CrawlConfig) -> None:
        self.config = config
        # Request URLs whose record is already in the store
        self._stored: Set[str] = set()

    async def __call__(self, ctx: PageContext) -> PageRecord:
        config = self.config
        page = ctx.page
        url = ctx.loaded_url

        if config.cookies:
            await page.context.add_cookies(
                [{"name": c.name, "value": c.value, "url": url} for c in config.cookies]
            )

        title = await page.title()

        if config.selector:
            try:
                await wait_for_content(page, config.selector, config.wait_for_selector_timeout)
            except PlaywrightTimeoutError as exc:
                raise PageExtractionError(
                    f"Timed out after {config.wait_for_selector_timeout} ms waiting for "
                    f"{config.selector!r} on {url}"
                ) from exc

        try:
            html = await get_page_text(page, config.selector)
        except PlaywrightError as exc:
            raise PageExtractionError(f"Could not extract text from {url}: {exc}") from exc

        record = PageRecord(title=title, url=url, html=html, source_url=url)
        if ctx.request.url in self._stored:
            logger.debug("Record for %s already stored, not storing it again", ctx.request.url)
        else:
            # Store appends are blocking file writes
            await asyncio.to_thread(ctx.push_data, record)
            self._stored.add(ctx.request.url)

        if config.on_visit_page is not None:
            result = config.on_visit_page(page, ctx.push_data)
            if inspect.isawaitable(result):
                await result

        await ctx.enqueue_links(config.match_patterns)
        return record
