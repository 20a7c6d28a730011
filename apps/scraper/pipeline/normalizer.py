"""
Normalizer: maps job-like objects from any strategy into a JobRecord.

Field names differ by source, so every canonical field is resolved through an
ordered list of lookups over a two-level view:

    posting -- the object carrying schema.org-like fields (a nested
               `jobPosting` for API/hydration items, the object itself for
               JSON-LD, nothing for DOM cards)
    job     -- the outer candidate object
"""

import html as html_lib
import logging
import re
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

from .lookups import dig, first_present, is_empty
from .models import NOT_SPECIFIED, JobRecord, RawJobCandidate

logger = logging.getLogger(__name__)

JOB_DETAIL_BASE = "https://www.monster.com/job-openings/"

SOURCE_NETWORK = "network"
SOURCE_HYDRATION = "hydration"
SOURCE_JSONLD = "jsonld"
SOURCE_DOM = "dom"

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def strip_html(markup: Optional[str]) -> str:
    """Strip tags and collapse whitespace."""
    if not markup:
        return ""
    text = _TAG_RE.sub(" ", markup)
    text = html_lib.unescape(text)
    return _WS_RE.sub(" ", text).strip()


def _unescape_markup(markup: str) -> str:
    # Some feeds ship entity-escaped markup (&lt;p&gt;...)
    if "<" not in markup and "&lt;" in markup:
        return html_lib.unescape(markup)
    return markup


def text_key(path: str):
    """Lookup returning the value at `path` only when it is scalar text."""
    def lookup(view):
        value = dig(view, path)
        if isinstance(value, bool):
            return None
        if isinstance(value, (int, float)):
            return str(value)
        if isinstance(value, str):
            return value.strip()
        return None
    return lookup


def _build_view(raw: RawJobCandidate, source: str) -> Dict[str, Any]:
    if source == SOURCE_DOM:
        return {"posting": {}, "job": raw}
    if source == SOURCE_JSONLD:
        return {"posting": raw, "job": raw}
    posting = raw.get("jobPosting") or raw.get("normalizedJobPosting")
    if not isinstance(posting, dict):
        posting = raw
    return {"posting": posting, "job": raw}


def _address_text(address: Any) -> str:
    if isinstance(address, str):
        return address.strip()
    if not isinstance(address, dict):
        return ""
    locality = address.get("addressLocality") or address.get("city")
    region = address.get("addressRegion") or address.get("state")
    country = address.get("addressCountry") or address.get("country")
    if isinstance(country, dict):
        country = country.get("name")
    parts = [locality, region, country]
    return ", ".join(str(p).strip() for p in parts if p and isinstance(p, (str, int)) and str(p).strip())


def _structured_location(view: Dict[str, Any]) -> Optional[str]:
    locations = dig(view, "posting.jobLocation") or dig(view, "job.jobLocation")
    if isinstance(locations, list) and locations:
        first = locations[0]
        if isinstance(first, dict):
            return _address_text(first.get("address") or first)
        return _address_text(first)
    if isinstance(locations, dict):
        return _address_text(locations.get("address") or locations)
    if isinstance(locations, str):
        return locations.strip()
    return None


def _plain_location(view: Dict[str, Any]) -> Optional[str]:
    location = dig(view, "job.location")
    if isinstance(location, dict):
        return _address_text(location)
    if isinstance(location, str):
        return location.strip()
    return None


def _company_object_name(view: Dict[str, Any]) -> Optional[str]:
    for path in ("posting.hiringOrganization", "job.company", "job.hiringCompany"):
        value = dig(view, path)
        if isinstance(value, dict):
            name = value.get("name") or value.get("legalName") or value.get("displayName")
            if isinstance(name, str) and name.strip():
                return name.strip()
    return None


def _synthesized_url(view: Dict[str, Any]) -> Optional[str]:
    for path in ("job.mesco", "job.jobId", "posting.jobId"):
        value = dig(view, path)
        if isinstance(value, (str, int)) and str(value).strip():
            return f"{JOB_DETAIL_BASE}{value}"
    return None


TITLE_LOOKUPS = [
    text_key("posting.title"),
    text_key("job.jobTitle"),
    text_key("job.title"),
    text_key("job.name"),
]

COMPANY_LOOKUPS = [
    _company_object_name,
    text_key("posting.hiringOrganization"),
    text_key("posting.companyName"),
    text_key("job.company"),
    text_key("job.companyName"),
    text_key("job.hiringCompany"),
    text_key("job.companyDisplayName"),
]

LOCATION_LOOKUPS = [
    _structured_location,
    _plain_location,
    text_key("job.formattedLocation"),
    text_key("job.city"),
]

URL_LOOKUPS = [
    text_key("job.detailUrl"),
    text_key("job.jobViewUrl"),
    text_key("posting.url"),
    text_key("job.jobUrl"),
    text_key("job.url"),
    text_key("job.canonicalUrl"),
    _synthesized_url,
]

POSTED_DATE_LOOKUPS = [
    text_key("posting.datePosted"),
    text_key("job.postedDate"),
    text_key("job.datePosted"),
    text_key("job.formattedDate"),
]

DESCRIPTION_LOOKUPS = [
    text_key("posting.description"),
    text_key("job.description"),
    text_key("job.snippet"),
    text_key("job.descriptionHtml"),
    text_key("job.summary"),
]

EMPLOYMENT_TYPE_LOOKUPS = [
    lambda view: dig(view, "posting.employmentType"),
    lambda view: dig(view, "job.employmentType"),
    lambda view: dig(view, "job.jobType"),
]


def _format_amount(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def normalize_salary(salary: Any) -> str:
    """
    Render salary as free text.

    `{value: {minValue, maxValue}, currency}` becomes "<min> - <max> <currency>";
    plain strings pass through; anything else is "Not specified".
    """
    if is_empty(salary):
        return NOT_SPECIFIED
    if isinstance(salary, str):
        return salary.strip()
    if isinstance(salary, (int, float)) and not isinstance(salary, bool):
        return _format_amount(salary)
    if isinstance(salary, dict):
        value = salary.get("value")
        currency = salary.get("currency") or ""
        if isinstance(value, dict):
            min_value = value.get("minValue")
            max_value = value.get("maxValue")
            if min_value is None and max_value is None:
                min_value = value.get("value")
            if min_value is not None or max_value is not None:
                text = _format_amount(min_value) if min_value is not None else ""
                if max_value is not None:
                    text = f"{text} - {_format_amount(max_value)}" if text else _format_amount(max_value)
                return f"{text} {currency}".strip()
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            return f"{_format_amount(value)} {currency}".strip()
        elif isinstance(value, str) and value.strip():
            return f"{value.strip()} {currency}".strip()
    return NOT_SPECIFIED


def salary_key(path: str):
    """Lookup returning rendered salary text, skipping shapes with no amount."""
    def lookup(view):
        text = normalize_salary(dig(view, path))
        return None if text == NOT_SPECIFIED else text
    return lookup


SALARY_LOOKUPS = [
    salary_key("posting.baseSalary"),
    salary_key("job.baseSalary"),
    salary_key("job.salary"),
]


def normalize_job_type(employment_type: Any) -> str:
    if isinstance(employment_type, list):
        joined = ", ".join(str(t).strip() for t in employment_type if str(t).strip())
        return joined or NOT_SPECIFIED
    if isinstance(employment_type, str) and employment_type.strip():
        return employment_type.strip()
    return NOT_SPECIFIED


def normalize_job(raw: RawJobCandidate, source: str, base_url: Optional[str] = None) -> Optional[JobRecord]:
    """
    Normalize one candidate. Returns None when neither a title nor a URL
    can be derived.
    """
    if not isinstance(raw, dict) or not raw:
        return None

    view = _build_view(raw, source)

    title = first_present(view, TITLE_LOOKUPS) or ""
    url = first_present(view, URL_LOOKUPS) or ""
    if url and base_url:
        url = urljoin(base_url, url)

    if not title and not url:
        return None

    description_html = _unescape_markup(first_present(view, DESCRIPTION_LOOKUPS) or "")

    return JobRecord(
        title=title,
        company=first_present(view, COMPANY_LOOKUPS) or "",
        location=first_present(view, LOCATION_LOOKUPS) or "",
        salary=first_present(view, SALARY_LOOKUPS) or NOT_SPECIFIED,
        job_type=normalize_job_type(first_present(view, EMPLOYMENT_TYPE_LOOKUPS)),
        posted_date=first_present(view, POSTED_DATE_LOOKUPS) or "",
        description_html=description_html,
        description_text=strip_html(description_html),
        url=url,
    )


def normalize_all(candidates: List[RawJobCandidate], source: str, base_url: Optional[str] = None) -> List[JobRecord]:
    """Normalize in order, silently dropping candidates with no title and no URL."""
    records = []
    for raw in candidates:
        record = normalize_job(raw, source, base_url)
        if record is not None:
            records.append(record)
    dropped = len(candidates) - len(records)
    if dropped:
        logger.debug(f"[normalizer] Dropped {dropped} {source} candidate(s) without title or URL")
    return records
