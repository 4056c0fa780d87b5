"""Crawl-then-write orchestration for one configuration or a batch of them."""

import logging
from pathlib import Path
from typing import Any, List, Optional

from gptcrawl.config import Settings, get_settings
from gptcrawl.models.crawl_config import ConfigSpec, CrawlConfig, resolve_config
from gptcrawl.services.aggregator import aggregate
from gptcrawl.services.batcher import batch_group
from gptcrawl.services.frontier import Frontier
from gptcrawl.services.session import CrawlSession, FrontierFactory
from gptcrawl.services.store import RecordStore
from gptcrawl.services.tokens import TokenEstimator, make_estimator
from gptcrawl.services.writer import OutputWriter

logger = logging.getLogger(__name__)


class CrawlerCore:
    """Runs the crawl phase and the write phase for a :data:`ConfigSpec`.

    Configurations are processed strictly one after another.  Each gets its
    own record-store namespace, and each of its seed URLs gets its own crawl
    session and frontier.
    """

    def __init__(
        self,
        config: Any,
        settings: Optional[Settings] = None,
        *,
        estimate_tokens: Optional[TokenEstimator] = None,
        frontier_factory: FrontierFactory = Frontier,
    ) -> None:
        self.spec: ConfigSpec = resolve_config(config)
        self.settings = settings or get_settings()
        self.estimate_tokens = estimate_tokens or make_estimator(self.settings.token_encoding)
        self.frontier_factory = frontier_factory

    def store_for(self, namespace: str) -> RecordStore:
        return RecordStore(self.settings.datasets_dir, namespace)

    async def crawl(self) -> int:
        """Crawl every seed of every configuration; returns total pages visited."""
        total = 0
        for namespace, config in self.spec.entries():
            store = self.store_for(namespace)
            if not self.settings.no_crawl and self.settings.purge_on_start:
                store.purge()
            for seed_url in config.seed_urls:
                session = CrawlSession(
                    config,
                    seed_url,
                    store,
                    self.settings,
                    frontier_factory=self.frontier_factory,
                )
                total += await session.run()
        return total

    def artifact_prefix(self, namespace: str, config: CrawlConfig) -> str:
        """Name prefix keeping this configuration's artifacts apart from its neighbours'.

        Empty unless another configuration of the same run writes into the
        same directory; then it is the dataset namespace, e.g. ``config_1_``.
        """
        out_dir = config.output_dir.resolve()
        sharing = [ns for ns, other in self.spec.entries() if other.output_dir.resolve() == out_dir]
        return f"{namespace}_" if len(sharing) > 1 else ""

    def write_config(self, namespace: str, config: CrawlConfig) -> List[Path]:
        """Aggregate and batch one configuration's records; returns artifact paths."""
        groups = aggregate(self.store_for(namespace), fallback_key=config.output_base)
        writer = OutputWriter(config.output_dir, prefix=self.artifact_prefix(namespace, config))

        paths: List[Path] = []
        for group in groups:
            paths.extend(
                batch_group(
                    group,
                    writer,
                    max_bytes=config.max_bytes,
                    max_tokens=config.max_tokens,
                    estimate_tokens=self.estimate_tokens,
                )
            )
        return paths

    def write(self) -> List[List[Path]]:
        """Write output files; one list of paths per configuration, in order."""
        return [self.write_config(namespace, config) for namespace, config in self.spec.entries()]

    async def run(self) -> List[List[Path]]:
        pages = await self.crawl()
        logger.info("Crawl phase finished with %d pages", pages)
        return self.write()
