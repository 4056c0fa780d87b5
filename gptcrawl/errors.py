"""Exception hierarchy for the crawl and write phases.

Each error is scoped to the unit of work it aborts:

``ConfigValidationError``
    The configuration could not be parsed; nothing has started yet.

``SeedResolutionError``
    A sitemap seed could not be expanded; only that seed's session is skipped.

``PageExtractionError``
    One page failed (selector timeout, evaluation error); the frontier retries
    it and then moves on.

``AggregationReadError``
    A stored record could not be read back; its text is routed into the
    configuration's fallback group.

``ArtifactWriteError``
    An output file could not be written; the error propagates to the caller.
"""


class CrawlerError(Exception):
    """Base class for every error raised by gptcrawl."""


class ConfigValidationError(CrawlerError):
    """Raised when a crawl configuration fails validation."""


class SeedResolutionError(CrawlerError):
    """Raised when a sitemap seed cannot be expanded into a URL list."""


class PageExtractionError(CrawlerError):
    """Raised when content cannot be extracted from a single page."""


class AggregationReadError(CrawlerError):
    """Raised when a stored page record cannot be read or decoded."""


class ArtifactWriteError(CrawlerError):
    """Raised when an output artifact cannot be written to disk."""
