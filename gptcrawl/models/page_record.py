import json
from typing import Any, Dict

from pydantic import BaseModel, ConfigDict, Field


class PageRecord(BaseModel):
    """One extracted page, as stored during the crawl and written to output files.

    Extra keys pushed by an ``onVisitPage`` hook are kept and written out as-is.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    title: str = ""
    url: str = ""
    html: str = ""  # visible text of the page or selector, not raw markup
    source_url: str = Field(default="", alias="sourceUrl")

    def to_json_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_json_line(self) -> str:
        """Compact serialisation used for byte and token measurement."""
        return json.dumps(self.to_json_dict(), ensure_ascii=False, separators=(",", ":"))
