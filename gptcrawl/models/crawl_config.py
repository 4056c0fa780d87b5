import math
import re
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator
from pydantic.alias_generators import to_camel
from pydantic.json_schema import SkipJsonSchema

from gptcrawl.errors import ConfigValidationError

PushData = Callable[[Any], Any]

# Receives the Playwright page and the record-append function
PageVisitHook = Callable[[Any, PushData], Optional[Awaitable[None]]]

_JSON_SUFFIX = re.compile(r"\.json$")


class Cookie(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str


class CrawlConfig(BaseModel):
    """One crawl target: seeds, link filters, extraction and output limits."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    url: Union[str, List[str]] = Field(
        description="Seed URL or ordered list of seed URLs. URLs ending in sitemap.xml are expanded.",
        examples=["https://www.builder.io/c/docs/developers"],
    )
    match: Union[str, List[str]] = Field(
        default="**",
        description="Glob pattern(s) a discovered link must match to be crawled.",
        examples=["https://www.builder.io/c/docs/**"],
    )
    selector: Optional[str] = Field(
        default=None,
        description="CSS selector, or XPath when it starts with '/', whose text is extracted.",
        examples=[".docs-builder-container", "//main"],
    )
    wait_for_selector_timeout: int = Field(
        default=1000,
        ge=0,
        description="Milliseconds to wait for the selector before the page fails.",
    )
    cookie: Union[Cookie, List[Cookie], None] = None
    resource_exclusions: List[str] = Field(
        default_factory=list,
        description="File extensions whose requests are aborted before they reach the network.",
        examples=[["png", "jpg", "woff2", "css"]],
    )
    max_pages_to_crawl: int = Field(default=1, ge=1, description="Maximum pages visited per seed.")
    max_file_size: Optional[float] = Field(
        default=None, gt=0, description="Maximum size of one output file, in megabytes."
    )
    max_tokens: Optional[int] = Field(
        default=None, gt=0, description="Maximum estimated tokens in one output file."
    )
    output_file_name: str = Field(default="output.json", min_length=1)
    on_visit_page: SkipJsonSchema[Optional[PageVisitHook]] = Field(default=None, exclude=True)

    @field_validator("url", "match")
    @classmethod
    def _not_empty(cls, value: Union[str, List[str]]) -> Union[str, List[str]]:
        values = [value] if isinstance(value, str) else value
        if not values or any(not v.strip() for v in values):
            raise ValueError("must be a non-empty string or a non-empty list of non-empty strings")
        return value

    @property
    def seed_urls(self) -> List[str]:
        return [self.url] if isinstance(self.url, str) else list(self.url)

    @property
    def match_patterns(self) -> List[str]:
        return [self.match] if isinstance(self.match, str) else list(self.match)

    @property
    def cookies(self) -> List[Cookie]:
        if self.cookie is None:
            return []
        return [self.cookie] if isinstance(self.cookie, Cookie) else list(self.cookie)

    @property
    def max_bytes(self) -> float:
        return self.max_file_size * 1024 * 1024 if self.max_file_size else math.inf

    @property
    def token_limit(self) -> float:
        return self.max_tokens if self.max_tokens else math.inf

    @property
    def output_base(self) -> str:
        """File name without directory or ``.json`` suffix; the fallback group key."""
        return _JSON_SUFFIX.sub("", Path(self.output_file_name).name) or "output"

    @property
    def output_dir(self) -> Path:
        return Path(self.output_file_name).parent


class Single(BaseModel):
    kind: Literal["single"] = "single"
    config: CrawlConfig

    def entries(self) -> List[Tuple[str, CrawlConfig]]:
        return [("default", self.config)]


class Batch(BaseModel):
    kind: Literal["batch"] = "batch"
    configs: List[CrawlConfig] = Field(min_length=1)

    def entries(self) -> List[Tuple[str, CrawlConfig]]:
        # One dataset namespace per configuration so group keys never collide
        return [(f"config_{index}", config) for index, config in enumerate(self.configs)]


ConfigSpec = Union[Single, Batch]


def _as_config(raw: Any) -> CrawlConfig:
    return raw if isinstance(raw, CrawlConfig) else CrawlConfig.model_validate(raw)


def resolve_config(raw: Any) -> ConfigSpec:
    """Turn a config object or a list of them into a :data:`ConfigSpec`.

    Raises:
        ConfigValidationError: if any configuration is invalid.
    """
    if isinstance(raw, (Single, Batch)):
        return raw
    try:
        if isinstance(raw, (list, tuple)):
            return Batch(configs=[_as_config(item) for item in raw])
        return Single(config=_as_config(raw))
    except ValidationError as exc:
        raise ConfigValidationError(str(exc)) from exc
