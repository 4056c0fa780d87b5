import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Sequence

from gptcrawl.errors import ArtifactWriteError
from gptcrawl.models.page_record import PageRecord

logger = logging.getLogger(__name__)


class OutputWriter:
    """Writes output artifacts as ``<prefix><key>-<index>.json`` inside *out_dir*.

    *prefix* is empty unless several configurations share *out_dir*, in which
    case it keeps their artifacts apart.
    """

    def __init__(self, out_dir: Path, prefix: str = "") -> None:
        self.out_dir = Path(out_dir)
        self.prefix = prefix

    def artifact_path(self, key: str, index: int) -> Path:
        return self.out_dir / f"{self.prefix}{key}-{index}.json"

    def write(self, key: str, index: int, records: Sequence[PageRecord]) -> Path:
        """Write *records* as a pretty-printed JSON array and return the path.

        The content goes to a temporary file first and is then renamed onto
        the final name, so a half-written artifact is never visible there.

        Raises:
            ArtifactWriteError: on any filesystem error.
        """
        path = self.artifact_path(key, index)
        content = json.dumps([r.to_json_dict() for r in records], indent=2, ensure_ascii=False)

        tmp_name = None
        try:
            self.out_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.out_dir, prefix=f".{key}-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            os.replace(tmp_name, path)
        except OSError as exc:
            if tmp_name:
                Path(tmp_name).unlink(missing_ok=True)
            raise ArtifactWriteError(f"Could not write {path}: {exc}") from exc

        logger.info("Wrote %d items to %s", len(records), path)
        return path
