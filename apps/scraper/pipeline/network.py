"""
Intercepted-traffic extractor.

Reads JSON bodies of search/query API calls observed while the browser
navigated the listing page. This mirrors the site's internal API and does not
depend on client-side rendering.
"""

import json
import logging
import re
from typing import Any, List, Optional

from .base import ExtractionStrategy
from .lookups import dig
from .models import CapturedResponse, PageSource, RawJobCandidate
from .normalizer import SOURCE_NETWORK

logger = logging.getLogger(__name__)

SEARCH_ENDPOINT_PATTERN = re.compile(r"search|query|graphql|/api/|jobs-svx", re.IGNORECASE)

# Ordered guesses for where a response envelope keeps its job array
ENVELOPE_KEYS = [
    "jobResults",
    "jobViewResultsData",
    "jobs",
    "results",
    "docs",
    "data.jobResults",
    "data.jobs",
    "data.results",
    "data.searchResults.docs",
    "searchResults.docs",
    "searchResults.jobs",
    "hits.hits",
    "items",
]


def is_search_response(url: str, content_type: str) -> bool:
    """True for JSON responses whose URL looks like a search/query endpoint."""
    if not content_type or "json" not in content_type.lower():
        return False
    return bool(SEARCH_ENDPOINT_PATTERN.search(url or ""))


def find_envelope_array(payload: Any) -> Optional[List[dict]]:
    """Return the first non-empty array of objects found at a known envelope key."""
    if isinstance(payload, list):
        items = [item for item in payload if isinstance(item, dict)]
        return items or None
    if not isinstance(payload, dict):
        return None
    for path in ENVELOPE_KEYS:
        value = dig(payload, path)
        if isinstance(value, list):
            items = [item for item in value if isinstance(item, dict)]
            if items:
                return items
    return None


class NetworkStrategy(ExtractionStrategy):
    """Extracts jobs from intercepted search API responses."""

    label = "NETWORK"
    source = SOURCE_NETWORK

    def _extract(self, page: PageSource) -> List[RawJobCandidate]:
        if not page.intercepted:
            return []

        candidates: List[RawJobCandidate] = []
        # Accumulate across every matching response of the page's lifetime
        for response in page.intercepted:
            candidates.extend(self._from_response(response))
        return candidates

    def _from_response(self, response: CapturedResponse) -> List[RawJobCandidate]:
        if not is_search_response(response.url, response.content_type):
            return []
        if response.status and response.status >= 400:
            return []
        try:
            payload = json.loads(response.body)
        except (json.JSONDecodeError, TypeError) as e:
            logger.debug(f"[network] Unparseable body from {response.url}: {e}")
            return []
        items = find_envelope_array(payload)
        if not items:
            return []
        logger.info(f"[network] {len(items)} job(s) in intercepted response {response.url[:120]}")
        return items
