"""Append-only dataset of page records, one JSON file per record.

Files are named by a zero-padded sequence number assigned at append time, and
:meth:`RecordStore.entries` sorts on that number.  Read-back order is therefore
arrival order, whatever order concurrent page handlers finish in and however
the filesystem lists the directory.
"""

import json
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, List, Mapping, Union

from gptcrawl.models.page_record import PageRecord

logger = logging.getLogger(__name__)

_SEQ_WIDTH = 9


def _sequence(path: Path) -> int:
    return int(path.stem) if path.stem.isdigit() else -1


class RecordStore:
    def __init__(self, root: Path, name: str = "default") -> None:
        self.name = name
        self.path = Path(root) / name
        self.path.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._next_seq = max((_sequence(p) for p in self.path.glob("*.json")), default=0) + 1

    def append(self, data: Union[PageRecord, Mapping[str, Any]]) -> Path:
        """Persist one record under the next sequence number and return its path."""
        payload = data.to_json_dict() if isinstance(data, PageRecord) else dict(data)
        text = json.dumps(payload, ensure_ascii=False)

        with self._lock:
            seq = self._next_seq
            self._next_seq += 1
            target = self.path / f"{seq:0{_SEQ_WIDTH}d}.json"
            fd, tmp_name = tempfile.mkstemp(dir=self.path, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    fh.write(text)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise

        logger.debug("Stored record %s in dataset %s", target.name, self.name)
        return target

    def entries(self) -> List[Path]:
        """Record files in sequence order."""
        files = [p for p in self.path.glob("*.json") if p.is_file()]
        return sorted(files, key=lambda p: (_sequence(p) < 0, _sequence(p), p.name))

    def purge(self) -> int:
        """Delete every stored record; returns how many were removed."""
        with self._lock:
            removed = 0
            for file in self.path.iterdir():
                if file.is_file():
                    file.unlink()
                    removed += 1
            self._next_seq = 1
        if removed:
            logger.info("Purged %d records from dataset %s", removed, self.name)
        return removed

    def __len__(self) -> int:
        return len(self.entries())
