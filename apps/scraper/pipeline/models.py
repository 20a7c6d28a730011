"""
Data shapes shared by the extraction pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from pydantic import BaseModel, ConfigDict, Field

NOT_SPECIFIED = "Not specified"

# Untyped, schema-variable job-like object produced by a strategy
RawJobCandidate = Dict[str, Any]


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class JobRecord(BaseModel):
    """Canonical output unit, serialized with camelCase keys."""

    model_config = ConfigDict(populate_by_name=True)

    title: str = ""
    company: str = ""
    location: str = ""
    salary: str = NOT_SPECIFIED
    job_type: str = Field(default=NOT_SPECIFIED, alias="jobType")
    posted_date: str = Field(default="", alias="postedDate")
    description_html: str = Field(default="", alias="descriptionHtml")
    description_text: str = Field(default="", alias="descriptionText")
    url: str = ""
    scraped_at: str = Field(default_factory=utc_timestamp, alias="scrapedAt")

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


@dataclass
class CapturedResponse:
    """A network response observed during browser navigation."""
    url: str
    status: int
    content_type: str
    body: str


@dataclass
class PageSource:
    """
    Everything a strategy may read for one listing page.

    `intercepted` is None when the page was fetched without a browser,
    i.e. no live traffic could be observed.
    """
    url: str
    html: str
    mode: str = "http"
    intercepted: Optional[List[CapturedResponse]] = None
    title: str = ""
    _soup: Optional[BeautifulSoup] = field(default=None, init=False, repr=False)

    @property
    def soup(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self.html or "", "lxml")
        return self._soup
