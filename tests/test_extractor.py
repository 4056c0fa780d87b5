"""Tests for the per-page extraction contract."""

import asyncio
import threading
from unittest.mock import AsyncMock, MagicMock, call

import pytest
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from gptcrawl.errors import PageExtractionError
from gptcrawl.models.crawl_config import CrawlConfig
from gptcrawl.models.page_record import PageRecord
from gptcrawl.services.extractor import PageExtractor, is_xpath, resource_exclusion_hook
from gptcrawl.services.frontier import PageContext, Request

URL = "https://s.test/docs/intro"


def _page(title: str = "Intro", text: str = "Welcome to the docs") -> AsyncMock:
    page = AsyncMock()
    page.title.return_value = title
    page.evaluate.return_value = text
    return page


def _ctx(page: AsyncMock) -> PageContext:
    return PageContext(
        request=Request(URL),
        page=page,
        loaded_url=URL,
        push_data=MagicMock(),
        enqueue_links=AsyncMock(return_value=0),
    )


def _extract(config: dict, page: AsyncMock):
    ctx = _ctx(page)
    record = asyncio.run(PageExtractor(CrawlConfig.model_validate({"url": URL, **config}))(ctx))
    return ctx, record


class TestPageExtractor:
    def test_stores_record_and_enqueues_links(self):
        page = _page()
        ctx, record = _extract({"match": "https://s.test/docs/**"}, page)

        assert record == PageRecord(title="Intro", url=URL, html="Welcome to the docs", source_url=URL)
        ctx.push_data.assert_called_once_with(record)
        ctx.enqueue_links.assert_awaited_once_with(["https://s.test/docs/**"])

    def test_without_selector_reads_body_and_does_not_wait(self):
        page = _page()
        _extract({}, page)

        page.wait_for_selector.assert_not_awaited()
        assert page.evaluate.await_args.args[1] == "body"

    def test_css_selector_waits_until_visible(self):
        page = _page()
        _extract({"selector": ".content", "waitForSelectorTimeout": 2500}, page)

        page.wait_for_selector.assert_awaited_once_with(".content", timeout=2500)
        assert page.evaluate.await_args.args[1] == ".content"

    def test_xpath_selector_waits_until_attached(self):
        page = _page()
        _extract({"selector": "//main"}, page)

        page.wait_for_selector.assert_awaited_once_with("xpath=//main", state="attached", timeout=1000)
        assert page.evaluate.await_args.args[1] == "//main"

    def test_selector_timeout_fails_the_page(self):
        page = _page()
        page.wait_for_selector.side_effect = PlaywrightTimeoutError("Timeout 1000ms exceeded")
        ctx = _ctx(page)
        extractor = PageExtractor(CrawlConfig.model_validate({"url": URL, "selector": ".missing"}))

        with pytest.raises(PageExtractionError):
            asyncio.run(extractor(ctx))
        ctx.push_data.assert_not_called()
        ctx.enqueue_links.assert_not_awaited()

    def test_evaluation_error_fails_the_page(self):
        page = _page()
        page.evaluate.side_effect = PlaywrightError("Execution context was destroyed")
        extractor = PageExtractor(CrawlConfig.model_validate({"url": URL}))

        with pytest.raises(PageExtractionError):
            asyncio.run(extractor(_ctx(page)))

    def test_missing_text_becomes_empty_string(self):
        page = _page()
        page.evaluate.return_value = None
        _, record = _extract({}, page)

        assert record.html == ""

    def test_cookies_scoped_to_the_page(self):
        page = _page()
        _extract({"cookie": [{"name": "consent", "value": "yes"}, {"name": "lang", "value": "en"}]}, page)

        page.context.add_cookies.assert_awaited_once_with(
            [
                {"name": "consent", "value": "yes", "url": URL},
                {"name": "lang", "value": "en", "url": URL},
            ]
        )

    def test_no_cookies_configured(self):
        page = _page()
        _extract({}, page)

        page.context.add_cookies.assert_not_awaited()


class TestVisitHook:
    def test_sync_hook_runs_after_record_is_stored(self):
        def hook(page, push_data):
            push_data({"title": "extra", "url": URL})

        page = _page()
        ctx = _ctx(page)
        config = CrawlConfig(url=URL, on_visit_page=hook)
        record = asyncio.run(PageExtractor(config)(ctx))

        assert ctx.push_data.call_args_list == [call(record), call({"title": "extra", "url": URL})]

    def test_async_hook_is_awaited(self):
        hook = AsyncMock()
        page = _page()
        ctx = _ctx(page)

        asyncio.run(PageExtractor(CrawlConfig(url=URL, on_visit_page=hook))(ctx))

        hook.assert_awaited_once_with(page, ctx.push_data)

    def test_retry_after_hook_failure_does_not_store_the_page_again(self):
        hook = MagicMock(side_effect=[RuntimeError("hook broke"), None])
        ctx = _ctx(_page())
        extractor = PageExtractor(CrawlConfig(url=URL, on_visit_page=hook))

        with pytest.raises(RuntimeError):
            asyncio.run(extractor(ctx))
        record = asyncio.run(extractor(ctx))

        ctx.push_data.assert_called_once_with(record)
        assert hook.call_count == 2
        assert ctx.enqueue_links.await_count == 1

    def test_record_is_stored_off_the_event_loop_thread(self):
        threads = []
        ctx = _ctx(_page())
        ctx.push_data.side_effect = lambda record: threads.append(threading.get_ident())

        asyncio.run(PageExtractor(CrawlConfig(url=URL))(ctx))

        assert len(threads) == 1
        assert threads[0] != threading.get_ident()


class TestResourceExclusion:
    def test_routes_matching_extensions_are_aborted(self):
        hook = resource_exclusion_hook(["png", ".jpg", "woff2"])
        page = AsyncMock()
        asyncio.run(hook(page))

        pattern, handler = page.route.await_args.args
        assert pattern == "**/*.{png,jpg,woff2}"

        route = AsyncMock()
        asyncio.run(handler(route))
        route.abort.assert_awaited_once_with("aborted")

    @pytest.mark.parametrize("extensions", [[], ["", "  "]])
    def test_no_hook_without_extensions(self, extensions):
        assert resource_exclusion_hook(extensions) is None


def test_is_xpath():
    assert is_xpath("//div[@id='main']")
    assert is_xpath("/html/body")
    assert not is_xpath("div.main")
