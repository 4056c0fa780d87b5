"""Shared fixtures and helpers for gptcrawl tests."""

import json
from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest
from playwright.async_api import Error as PlaywrightError

from gptcrawl.config import Settings
from gptcrawl.services.frontier import PageContext, Request


@pytest.fixture()
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment, storing datasets under tmp_path."""
    return Settings(
        _env_file=None,
        no_crawl=False,
        storage_dir=tmp_path / "storage",
        max_concurrency=1,
        max_request_retries=1,
        purge_on_start=True,
    )


def title_estimator(tokens_by_title: Dict[str, int]):
    """Token estimator whose counts are looked up by the record's title."""

    def estimate(text: str, limit: float):
        count = tokens_by_title[json.loads(text)["title"]]
        return count if count <= limit else False

    return estimate


SAMPLE_URLSET = """\
<?xml version="1.0" encoding="UTF-8"?>
<urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <url><loc>https://site.test/</loc></url>
  <url><loc>https://site.test/docs/intro</loc></url>
  <url><loc> https://site.test/docs/setup </loc></url>
</urlset>
"""

SAMPLE_SITEMAP_INDEX = """\
<?xml version="1.0" encoding="UTF-8"?>
<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
  <sitemap><loc>https://site.test/sitemap-pages.xml</loc></sitemap>
  <sitemap><loc>https://site.test/sitemap-blog.xml</loc></sitemap>
</sitemapindex>
"""


# ---------------------------------------------------------------------------
# Browser and frontier fakes
# ---------------------------------------------------------------------------


class FakePage:
    """Stands in for a Playwright page served from an in-memory site."""

    def __init__(self, context: "FakeContext") -> None:
        self.context = context
        self.url = "about:blank"
        self.routes = []
        self.closed = False

    async def goto(self, url: str, timeout=None) -> None:
        self.context.visits.append(url)
        target = self.context.redirects.get(url, url)
        if target not in self.context.site:
            raise PlaywrightError(f"net::ERR_NAME_NOT_RESOLVED at {url}")
        self.url = target

    async def content(self) -> str:
        return self.context.site.get(self.url, "")

    async def title(self) -> str:
        return f"Title of {self.url}"

    async def evaluate(self, script: str, selector: str) -> str:
        return f"Text of {self.url}"

    async def wait_for_selector(self, selector: str, **kwargs) -> None:
        return None

    async def route(self, pattern: str, handler) -> None:
        self.routes.append(pattern)

    async def close(self) -> None:
        self.closed = True


class FakeContext:
    """Stands in for a Playwright browser context; *site* maps URL to HTML."""

    def __init__(self, site: Dict[str, str], redirects: Optional[Dict[str, str]] = None) -> None:
        self.site = site
        self.redirects = redirects or {}
        self.visits: List[str] = []
        self.pages: List[FakePage] = []
        self.cookies: List[dict] = []
        self.closed = False

    async def new_page(self) -> FakePage:
        page = FakePage(self)
        self.pages.append(page)
        return page

    async def add_cookies(self, cookies) -> None:
        self.cookies.extend(cookies)

    async def close(self) -> None:
        self.closed = True


class FakeFrontier:
    """Frontier replacement visiting each start URL once on a FakePage."""

    def __init__(self, request_handler, **kwargs) -> None:
        self.request_handler = request_handler
        self.kwargs = kwargs
        self.runs: List[List[str]] = []
        self.torn_down = False
        self.context = FakeContext({})

    async def run(self, urls):
        urls = list(urls)
        self.runs.append(urls)
        limit = self.kwargs.get("max_requests_per_crawl") or len(urls)
        for url in urls[:limit]:
            self.context.site.setdefault(url, "")
            page = await self.context.new_page()
            await page.goto(url)
            await self.request_handler(
                PageContext(
                    request=Request(url),
                    page=page,
                    loaded_url=page.url,
                    push_data=self.kwargs["push_data"],
                    enqueue_links=AsyncMock(return_value=0),
                )
            )

    async def teardown(self) -> None:
        self.torn_down = True


def frontier_factory(created: list, frontier_class=FakeFrontier):
    """Factory for CrawlSession that records every frontier it builds."""

    def make(request_handler, **kwargs):
        frontier = frontier_class(request_handler, **kwargs)
        created.append(frontier)
        return frontier

    return make
