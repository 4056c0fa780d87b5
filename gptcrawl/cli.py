"""Command-line interface: run a crawl configuration file."""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import List, Optional

from gptcrawl.config import Settings
from gptcrawl.errors import ConfigValidationError, CrawlerError
from gptcrawl.models.crawl_config import resolve_config
from gptcrawl.services.pipeline import CrawlerCore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gptcrawl",
        description="Crawl sites and write the extracted text as size- and token-bounded JSON files.",
    )
    parser.add_argument(
        "config",
        help="Path to a JSON file holding one crawl configuration or a list of them",
    )
    parser.add_argument(
        "--no-crawl",
        action="store_true",
        help="Skip crawling and rebuild the output files from already stored records",
    )
    parser.add_argument(
        "--storage-dir",
        default=None,
        help="Directory holding the crawled record datasets (default: from .env STORAGE_DIR or ./storage)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    settings = Settings()
    overrides = {}
    if args.no_crawl:
        overrides["no_crawl"] = True
    if args.storage_dir:
        overrides["storage_dir"] = Path(args.storage_dir)
    if overrides:
        settings = settings.model_copy(update=overrides)

    try:
        raw = json.loads(Path(args.config).read_text(encoding="utf-8"))
        spec = resolve_config(raw)
    except (OSError, json.JSONDecodeError, ConfigValidationError) as exc:
        print(f"Invalid configuration {args.config}: {exc}", file=sys.stderr)
        return 2

    try:
        results = asyncio.run(CrawlerCore(spec, settings).run())
    except CrawlerError as exc:
        print(f"Crawl failed: {exc}", file=sys.stderr)
        return 1

    for paths in results:
        for path in paths:
            print(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
