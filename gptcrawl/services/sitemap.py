"""Seed resolution: direct URLs pass through, sitemaps expand to their page URLs."""

import logging
from collections import deque
from typing import List, Tuple
from xml.etree import ElementTree

import httpx

from gptcrawl.errors import SeedResolutionError
from gptcrawl.services.fetcher import fetch_text

logger = logging.getLogger(__name__)

SITEMAP_SUFFIX = "sitemap.xml"
# A <loc> inside a urlset with one of these suffixes is itself a sitemap
NESTED_SITEMAP_SUFFIXES = (".xml", ".xml.gz")


def is_sitemap(url: str) -> bool:
    """Return True when *url* names a sitemap document."""
    return url.endswith(SITEMAP_SUFFIX)


def _parse_sitemap(xml_text: str) -> Tuple[bool, List[str]]:
    """Return ``(is_index, locs)`` for a ``<urlset>`` or ``<sitemapindex>`` document.

    Raises:
        ElementTree.ParseError: if *xml_text* is not well-formed XML.
    """
    root = ElementTree.fromstring(xml_text.strip())
    ns = root.tag.split("}")[0] + "}" if root.tag.startswith("{") else ""
    is_index = root.tag == f"{ns}sitemapindex"
    locs = [elem.text.strip() for elem in root.iter(f"{ns}loc") if elem.text and elem.text.strip()]
    return is_index, locs


async def _load(sitemap_url: str) -> Tuple[bool, List[str]]:
    try:
        xml_text = await fetch_text(sitemap_url)
    except (ValueError, httpx.HTTPError, RuntimeError) as exc:
        raise SeedResolutionError(f"Could not download sitemap {sitemap_url}: {exc}") from exc
    try:
        return _parse_sitemap(xml_text)
    except ElementTree.ParseError as exc:
        raise SeedResolutionError(f"Could not parse sitemap {sitemap_url}: {exc}") from exc


async def expand_sitemap(sitemap_url: str) -> List[str]:
    """Return every page URL listed by *sitemap_url*, in document order.

    Sitemap-index entries and ``.xml``/``.xml.gz`` locations are followed breadth-first,
    each at most once.  Only a failure of the seed sitemap itself is fatal;
    nested sitemaps that fail are logged and skipped.

    Raises:
        SeedResolutionError: if the seed sitemap cannot be downloaded or parsed.
    """
    page_urls: List[str] = []
    seen: set = {sitemap_url}
    queue: deque = deque([sitemap_url])

    while queue:
        current = queue.popleft()
        try:
            is_index, locs = await _load(current)
        except SeedResolutionError:
            if current == sitemap_url:
                raise
            logger.warning("Skipping nested sitemap %s", current, exc_info=True)
            continue

        for loc in locs:
            if loc in seen:
                continue
            seen.add(loc)
            if is_index or loc.endswith(NESTED_SITEMAP_SUFFIXES):
                queue.append(loc)
            else:
                page_urls.append(loc)

    logger.info("Sitemap %s expanded to %d URLs", sitemap_url, len(page_urls))
    return page_urls


async def resolve_seed(url: str) -> List[str]:
    """Return the initial request list for one seed URL.

    Raises:
        SeedResolutionError: if *url* is a sitemap that cannot be expanded.
    """
    if is_sitemap(url):
        return await expand_sitemap(url)
    return [url]
