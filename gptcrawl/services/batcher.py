"""Split one group of records into output files under byte and token ceilings.

Records are taken in order and accumulated into a pending batch, tracking a
running byte total and a running token estimate:

* A record that would push the byte total past the ceiling flushes the
  pending batch first.  A record that is larger than the ceiling by itself
  is written on its own.
* A record whose tokens would push the estimate past the token ceiling
  also flushes first.  The new batch then starts at half the record's token
  count rather than zero, so records straddling the boundary do not cause
  the next file to fill up too eagerly.
* A record the estimator reports as exceeding the token ceiling on its own
  is still kept, but adds nothing to the running estimate.
"""

import logging
import math
from pathlib import Path
from typing import Iterable, List, Optional

from gptcrawl.models.page_record import PageRecord
from gptcrawl.services.aggregator import DatasetGroup
from gptcrawl.services.tokens import TokenEstimator, is_within_token_limit
from gptcrawl.services.writer import OutputWriter

logger = logging.getLogger(__name__)


class Batcher:
    def __init__(
        self,
        key: str,
        writer: OutputWriter,
        *,
        max_bytes: float = math.inf,
        max_tokens: Optional[float] = None,
        estimate_tokens: TokenEstimator = is_within_token_limit,
    ) -> None:
        self.key = key
        self.writer = writer
        self.max_bytes = max_bytes
        self.max_tokens = max_tokens if max_tokens else math.inf
        self.estimate_tokens = estimate_tokens

        self.paths: List[Path] = []
        self._batch: List[PageRecord] = []
        self._bytes = 0
        self._tokens = 0
        self._index = 1

    @property
    def pending(self) -> List[PageRecord]:
        return list(self._batch)

    @property
    def running_bytes(self) -> int:
        return self._bytes

    @property
    def running_tokens(self) -> int:
        return self._tokens

    def add(self, record: PageRecord) -> None:
        text = record.to_json_line()
        size = len(text.encode("utf-8"))

        if self._batch and self._bytes + size > self.max_bytes:
            self.flush()

        token_count = self.estimate_tokens(text, self.max_tokens)
        # bool is an int subclass; False means "exceeds the limit on its own"
        if token_count is not False:
            if self._tokens + token_count > self.max_tokens and self._batch:
                self.flush()
                self._tokens = math.floor(token_count / 2)
            else:
                self._tokens += token_count
        self._batch.append(record)

        self._bytes += size
        if self._bytes > self.max_bytes:
            self.flush()

    def flush(self) -> Optional[Path]:
        """Write the pending batch, if any, and reset the accumulators."""
        if not self._batch:
            return None
        path = self.writer.write(self.key, self._index, self._batch)
        self.paths.append(path)
        self._index += 1
        self._batch = []
        self._bytes = 0
        self._tokens = 0
        return path

    def close(self) -> List[Path]:
        self.flush()
        return self.paths


def batch_records(
    key: str,
    records: Iterable[PageRecord],
    writer: OutputWriter,
    *,
    max_bytes: float = math.inf,
    max_tokens: Optional[float] = None,
    estimate_tokens: TokenEstimator = is_within_token_limit,
) -> List[Path]:
    batcher = Batcher(
        key,
        writer,
        max_bytes=max_bytes,
        max_tokens=max_tokens,
        estimate_tokens=estimate_tokens,
    )
    for record in records:
        batcher.add(record)
    return batcher.close()


def batch_group(
    group: DatasetGroup,
    writer: OutputWriter,
    *,
    max_bytes: float = math.inf,
    max_tokens: Optional[float] = None,
    estimate_tokens: TokenEstimator = is_within_token_limit,
) -> List[Path]:
    """Write *group* to one or more artifacts and return their paths in order."""
    logger.info("Processing %d records for %s...", len(group.records), group.key)
    return batch_records(
        group.key,
        group.records,
        writer,
        max_bytes=max_bytes,
        max_tokens=max_tokens,
        estimate_tokens=estimate_tokens,
    )
