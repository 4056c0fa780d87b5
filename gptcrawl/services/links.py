"""Link discovery helpers used by the frontier's ``enqueue_links``."""

from fnmatch import fnmatchcase
from typing import Iterable, List
from urllib.parse import urljoin, urlparse

from bs4 import BeautifulSoup

ALLOWED_SCHEMES = ("http", "https")


def normalise(url: str) -> str:
    """Strip URL fragment so http://x.com/page#sec and http://x.com/page are the same."""
    return urlparse(url)._replace(fragment="").geturl()


def same_hostname(url: str, base_url: str) -> bool:
    return urlparse(url).hostname == urlparse(base_url).hostname


def matches_any(url: str, globs: Iterable[str]) -> bool:
    """Return True when *url* matches at least one glob (``*`` also matches ``/``)."""
    return any(fnmatchcase(url, pattern) for pattern in globs)


def extract_links(html: str, base_url: str) -> List[str]:
    """Return the absolute http(s) links of *html*, deduplicated, in document order."""
    soup = BeautifulSoup(html, "lxml")
    seen: set = set()
    links: List[str] = []
    for a in soup.find_all("a", href=True):
        href = str(a["href"]).strip()
        if not href or href.startswith(("#", "javascript:", "mailto:", "tel:")):
            continue
        abs_url = normalise(urljoin(base_url, href))
        if urlparse(abs_url).scheme not in ALLOWED_SCHEMES:
            continue
        if abs_url not in seen:
            seen.add(abs_url)
            links.append(abs_url)
    return links
