"""
JSON-LD extractor.

Extracts job postings from structured JSON-LD data (Schema.org JobPosting).
"""

import json
import logging
from typing import Any, Dict, List

from .base import ExtractionStrategy
from .models import PageSource, RawJobCandidate
from .normalizer import SOURCE_JSONLD

logger = logging.getLogger(__name__)


def is_job_posting(item: Dict) -> bool:
    """Check if JSON-LD item is a JobPosting."""
    item_type = item.get('@type', '')
    if isinstance(item_type, str):
        return 'JobPosting' in item_type
    elif isinstance(item_type, list):
        return any('JobPosting' in str(t) for t in item_type)
    return False


def flatten_jsonld(data: Any) -> List[Dict]:
    """Flatten a JSON-LD block (object, array, @graph, ItemList) to a list of items."""
    items = []

    if isinstance(data, dict):
        if is_job_posting(data):
            items.append(data)
        elif '@graph' in data and isinstance(data['@graph'], list):
            for item in data['@graph']:
                items.extend(flatten_jsonld(item))
        elif 'itemListElement' in data and isinstance(data['itemListElement'], list):
            for element in data['itemListElement']:
                if not isinstance(element, dict):
                    continue
                # ListItem wrapper or a bare entry
                if isinstance(element.get('item'), dict):
                    items.extend(flatten_jsonld(element['item']))
                else:
                    items.extend(flatten_jsonld(element))
        else:
            items.append(data)
    elif isinstance(data, list):
        for item in data:
            items.extend(flatten_jsonld(item))

    return items


class JsonLdStrategy(ExtractionStrategy):
    """Extracts JobPosting items from every ld+json block on the page."""

    label = "JSON-LD"
    source = SOURCE_JSONLD

    def _extract(self, page: PageSource) -> List[RawJobCandidate]:
        postings: List[RawJobCandidate] = []

        for script in page.soup.find_all('script', type='application/ld+json'):
            content = script.string or script.get_text()
            if not content:
                continue
            try:
                data = json.loads(content)
            except json.JSONDecodeError as e:
                logger.debug(f"[jsonld] Failed to parse JSON-LD block: {e}")
                continue

            postings.extend(item for item in flatten_jsonld(data) if is_job_posting(item))

        if postings:
            logger.info(f"[jsonld] Found {len(postings)} JobPosting item(s)")
        return postings
