"""Tests for gptcrawl.services.links."""

import pytest

from gptcrawl.services.links import extract_links, matches_any, normalise, same_hostname

_HTML = """
<html><body>
  <a href="/docs/intro">Intro</a>
  <a href="setup#install">Setup</a>
  <a href="https://site.test/docs/intro#top">Intro again</a>
  <a href="#local">Anchor</a>
  <a href="mailto:team@site.test">Mail</a>
  <a href="javascript:void(0)">JS</a>
  <a href="ftp://files.site.test/archive">FTP</a>
  <a href="https://other.test/page">Elsewhere</a>
  <a>No href</a>
</body></html>
"""


class TestExtractLinks:
    def test_absolute_deduplicated_in_order(self):
        links = extract_links(_HTML, "https://site.test/docs/")

        assert links == [
            "https://site.test/docs/intro",
            "https://site.test/docs/setup",
            "https://other.test/page",
        ]

    def test_empty_document(self):
        assert extract_links("", "https://site.test/") == []


class TestHelpers:
    def test_normalise_drops_fragment(self):
        assert normalise("https://site.test/a?x=1#frag") == "https://site.test/a?x=1"

    def test_same_hostname(self):
        assert same_hostname("https://site.test/a", "http://site.test/b")
        assert not same_hostname("https://docs.site.test/a", "https://site.test/")

    @pytest.mark.parametrize(
        "url, globs, expected",
        [
            ("https://site.test/docs/a/b", ["https://site.test/docs/**"], True),
            ("https://site.test/blog/a", ["https://site.test/docs/**"], False),
            ("https://site.test/blog/a", ["https://site.test/docs/**", "https://site.test/blog/*"], True),
            ("https://site.test/anything", ["**"], True),
            ("https://site.test/docs", [], False),
        ],
    )
    def test_matches_any(self, url, globs, expected):
        assert matches_any(url, globs) is expected
