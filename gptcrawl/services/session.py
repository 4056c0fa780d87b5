"""One crawl session: one frontier run for one (configuration, seed URL) pair."""

import logging
from typing import Callable, Optional

from gptcrawl.config import Settings, get_settings
from gptcrawl.errors import SeedResolutionError
from gptcrawl.models.crawl_config import CrawlConfig
from gptcrawl.services.extractor import PageExtractor, resource_exclusion_hook
from gptcrawl.services.frontier import Frontier, PageContext
from gptcrawl.services.sitemap import resolve_seed
from gptcrawl.services.store import RecordStore

logger = logging.getLogger(__name__)

FrontierFactory = Callable[..., Frontier]


class CrawlSession:
    """Drives one frontier to completion and counts the pages it visits.

    The page counter belongs to this instance alone; concurrent page handlers
    of the same session share it, other sessions never do.
    """

    def __init__(
        self,
        config: CrawlConfig,
        seed_url: str,
        store: RecordStore,
        settings: Optional[Settings] = None,
        *,
        frontier_factory: FrontierFactory = Frontier,
    ) -> None:
        self.config = config
        self.seed_url = seed_url
        self.store = store
        self.settings = settings or get_settings()
        self.frontier_factory = frontier_factory
        self.pages_crawled = 0
        self._extractor = PageExtractor(config)

    async def run(self) -> int:
        """Crawl from the seed and return the number of pages visited."""
        if self.settings.no_crawl:
            logger.info("Crawling disabled, skipping %s", self.seed_url)
            return 0

        try:
            urls = await resolve_seed(self.seed_url)
        except SeedResolutionError as exc:
            logger.error("Skipping seed %s: %s", self.seed_url, exc)
            return 0

        if not urls:
            logger.warning("Seed %s resolved to no URLs", self.seed_url)
            return 0

        hooks = []
        exclusion = resource_exclusion_hook(self.config.resource_exclusions)
        if exclusion is not None:
            hooks.append(exclusion)

        frontier = self.frontier_factory(
            self._handle_page,
            push_data=self.store.append,
            max_requests_per_crawl=self.config.max_pages_to_crawl,
            max_concurrency=self.settings.max_concurrency,
            max_request_retries=self.settings.max_request_retries,
            navigation_timeout_ms=self.settings.navigation_timeout_ms,
            pre_navigation_hooks=hooks,
            headless=self.settings.headless,
        )
        logger.info(
            "Crawl session started",
            extra={"seed": self.seed_url, "requests": len(urls), "dataset": self.store.name},
        )
        try:
            await frontier.run(urls)
        finally:
            await frontier.teardown()

        logger.info("Crawl session for %s visited %d pages", self.seed_url, self.pages_crawled)
        return self.pages_crawled

    async def _handle_page(self, ctx: PageContext) -> None:
        self.pages_crawled += 1
        logger.info(
            "Crawling: Page %d / %d - URL: %s...",
            self.pages_crawled,
            self.config.max_pages_to_crawl,
            ctx.loaded_url,
        )
        await self._extractor(ctx)
