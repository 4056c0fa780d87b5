"""Group stored page records by the page they came from.

The group key is derived from a record's ``sourceUrl`` (falling back to
``url``): hostname and path joined, with every ``/`` replaced by ``_`` and
leading or trailing ``_`` removed.  ``https://example.com/a/b`` becomes
``example.com_a_b``; ``https://example.com/`` and ``https://example.com`` both
become ``example.com``.  Records without a usable URL, and record files that
cannot be read back, go to the configuration's fallback group.
"""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from pydantic import ValidationError

from gptcrawl.errors import AggregationReadError
from gptcrawl.models.page_record import PageRecord
from gptcrawl.services.store import RecordStore

logger = logging.getLogger(__name__)

KEY_SEPARATOR = "_"


@dataclass
class DatasetGroup:
    key: str
    records: List[PageRecord] = field(default_factory=list)


def key_from_url(url: Optional[str]) -> Optional[str]:
    """Return the group key for *url*, or None when it has no hostname."""
    if not url or not isinstance(url, str):
        return None
    try:
        parsed = urlparse(url)
        hostname = parsed.hostname
    except ValueError:
        return None
    if not hostname:
        return None
    key = f"{hostname}{parsed.path}".replace("/", KEY_SEPARATOR)
    # A trailing slash names the same page as no slash
    return key.strip(KEY_SEPARATOR)


def group_key(record: PageRecord, fallback_key: str) -> str:
    return key_from_url(record.source_url or record.url) or fallback_key


def read_record(path: Path) -> PageRecord:
    """Load one stored record.

    Raises:
        AggregationReadError: if the file cannot be read, decoded or validated.
    """
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        return PageRecord.model_validate(data)
    except (OSError, ValueError, ValidationError) as exc:
        raise AggregationReadError(f"Cannot read record {path}: {exc}") from exc


def _salvage(path: Path) -> PageRecord:
    """Keep whatever text an unreadable record file holds."""
    try:
        text = path.read_bytes().decode("utf-8", errors="replace")
    except OSError:
        text = ""
    return PageRecord(html=text)


def aggregate(store: RecordStore, fallback_key: str) -> List[DatasetGroup]:
    """Group every record in *store*, preserving sequence order inside each group.

    Groups are returned in order of their first record.
    """
    entries = store.entries()
    logger.info("Found %d files to combine...", len(entries))

    groups: Dict[str, DatasetGroup] = {}
    for path in entries:
        try:
            record = read_record(path)
            key = group_key(record, fallback_key)
        except AggregationReadError as exc:
            logger.error("Error processing file %s: %s", path, exc)
            record = _salvage(path)
            key = fallback_key

        if key not in groups:
            groups[key] = DatasetGroup(key=key)
        groups[key].records.append(record)

    return list(groups.values())
