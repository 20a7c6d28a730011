"""
Run input and process settings.
"""
import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Literal, Optional, Tuple, Union
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

logger = logging.getLogger(__name__)

SEARCH_BASE_URL = "https://www.monster.com/jobs/search"

SORT_CODES = {
    "date": "m.h.s",
    "relevance": "m.h.sh",
}

MAX_JOBS_LIMIT = 10000
MAX_PAGES_LIMIT = 30
DEFAULT_INPUT_FILE = "INPUT.json"


class InvalidInputError(ValueError):
    """Run input is unusable; the run must not start."""


class ScraperInput(BaseModel):
    """Run input, accepted with the camelCase option names."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    search_url: Optional[str] = Field(default=None, alias="searchUrl")
    search_query: Optional[str] = Field(default=None, alias="searchQuery")
    location: Optional[str] = None
    max_jobs: int = Field(default=20, alias="maxJobs", ge=0, le=MAX_JOBS_LIMIT)
    max_pages: int = Field(default=3, alias="maxPages", ge=0, le=MAX_PAGES_LIMIT)
    http_only: bool = Field(default=False, alias="httpOnly")
    sort_by: Literal["date", "relevance"] = Field(default="relevance", alias="sortBy")
    proxy_configuration: Optional[Dict[str, Any]] = Field(default=None, alias="proxyConfiguration")
    enrich_details: bool = Field(default=True, alias="enrichDetails")
    max_concurrency: int = Field(default=1, alias="maxConcurrency", ge=1, le=5)
    detail_batch_size: int = Field(default=5, alias="detailBatchSize", ge=1, le=20)

    @field_validator("search_url", "search_query", "location", mode="before")
    @classmethod
    def _strip(cls, value):
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("sort_by", mode="before")
    @classmethod
    def _default_sort(cls, value):
        # Anything other than "date" means the site's relevance default
        if isinstance(value, str) and value.strip().lower() == "date":
            return "date"
        return "relevance"

    @field_validator("search_url")
    @classmethod
    def _absolute_url(cls, value):
        if value and not value.startswith(("http://", "https://")):
            raise ValueError("searchUrl must be an absolute http(s) URL")
        return value

    @model_validator(mode="after")
    def _require_search(self):
        if not self.search_url and not self.search_query:
            raise ValueError('Provide either "searchUrl" or "searchQuery"')
        return self


def parse_input(data: Dict[str, Any]) -> ScraperInput:
    """Validate raw input, converting validation errors into InvalidInputError."""
    try:
        return ScraperInput.model_validate(data or {})
    except ValidationError as e:
        raise InvalidInputError(str(e)) from e


def load_input(path: Optional[Union[str, Path]] = None, overrides: Optional[Dict[str, Any]] = None) -> ScraperInput:
    """
    Load input from a JSON file (SCRAPER_INPUT env var or INPUT.json), with
    optional overrides applied on top.
    """
    data: Dict[str, Any] = {}
    input_path = Path(path or os.getenv("SCRAPER_INPUT", DEFAULT_INPUT_FILE))
    if input_path.exists():
        try:
            data = json.loads(input_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"Input file {input_path} is not valid JSON: {e}") from e
        if not isinstance(data, dict):
            raise InvalidInputError(f"Input file {input_path} must contain a JSON object")
    elif path:
        raise InvalidInputError(f"Input file not found: {input_path}")

    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    return parse_input(data)


def build_search_url(scraper_input: ScraperInput) -> str:
    """Search URL from the input; an explicit searchUrl short-circuits the rest."""
    if scraper_input.search_url:
        return scraper_input.search_url

    params = []
    if scraper_input.search_query:
        params.append(("q", scraper_input.search_query))
    if scraper_input.location:
        params.append(("where", scraper_input.location))
    params.append(("page", "1"))
    params.append(("so", SORT_CODES["date"] if scraper_input.sort_by == "date" else SORT_CODES["relevance"]))

    return f"{SEARCH_BASE_URL}?{urlencode(params)}"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        logger.warning(f"Invalid integer for {name}, using {default}")
        return default


def _env_range(name: str, default: Tuple[int, int]) -> Tuple[int, int]:
    """Parse "min,max" milliseconds."""
    raw = os.getenv(name)
    if not raw:
        return default
    try:
        low, high = (int(part) for part in raw.split(","))
        return (min(low, high), max(low, high))
    except ValueError:
        logger.warning(f"Invalid range for {name}: {raw!r}, using {default}")
        return default


@dataclass
class Settings:
    """Process-level settings (environment, not run input)."""
    storage_dir: str = "storage"
    log_level: str = "INFO"
    headless: bool = True
    browser: str = "firefox"
    user_agent: Optional[str] = None
    navigation_timeout_ms: int = 60000
    pre_navigation_delay_ms: Tuple[int, int] = (2000, 5000)
    settle_delay_ms: Tuple[int, int] = (3000, 5000)
    bypass_rounds: int = 3
    bypass_wait_ms: Tuple[int, int] = (4000, 7000)
    detail_batch_pause_ms: int = 1000

    @classmethod
    def from_env(cls) -> "Settings":
        browser = os.getenv("SCRAPER_BROWSER", "firefox").lower()
        if browser not in ("firefox", "chromium", "webkit"):
            logger.warning(f"Unknown SCRAPER_BROWSER {browser!r}, using firefox")
            browser = "firefox"
        return cls(
            storage_dir=os.getenv("SCRAPER_STORAGE_DIR", "storage"),
            log_level=os.getenv("SCRAPER_LOG_LEVEL", "INFO").upper(),
            headless=_env_bool("SCRAPER_HEADLESS", True),
            browser=browser,
            user_agent=os.getenv("SCRAPER_USER_AGENT") or None,
            navigation_timeout_ms=_env_int("SCRAPER_NAVIGATION_TIMEOUT_MS", 60000),
            pre_navigation_delay_ms=_env_range("SCRAPER_PRE_NAVIGATION_DELAY_MS", (2000, 5000)),
            settle_delay_ms=_env_range("SCRAPER_SETTLE_DELAY_MS", (3000, 5000)),
            bypass_rounds=_env_int("SCRAPER_BYPASS_ROUNDS", 3),
            bypass_wait_ms=_env_range("SCRAPER_BYPASS_WAIT_MS", (4000, 7000)),
            detail_batch_pause_ms=_env_int("SCRAPER_DETAIL_BATCH_PAUSE_MS", 1000),
        )
