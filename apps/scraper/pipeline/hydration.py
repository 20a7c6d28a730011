"""
Embedded-hydration extractor.

Reads the server-rendered application state (`script#__NEXT_DATA__`), tries
the known key paths for the job array, then falls back to a bounded walk over
the parsed object graph collecting arrays that look like job lists.
"""

import json
import logging
from typing import Any, Dict, List, Optional, Set

from .base import ExtractionStrategy
from .lookups import dig
from .models import PageSource, RawJobCandidate
from .normalizer import SOURCE_HYDRATION

logger = logging.getLogger(__name__)

HYDRATION_SCRIPT_ID = "__NEXT_DATA__"

KEY_PATHS = [
    "props.pageProps.jobViewResultsData",
    "props.pageProps.jobViewResultsDataCompact",
    "props.pageProps.jobResults",
    "props.pageProps.jobs",
    "props.pageProps.searchResults.docs",
    "props.pageProps.initialState.jobs",
]

TITLE_KEYS = ("title", "jobTitle", "name")
IDENTITY_KEYS = ("jobId", "id", "mesco", "url", "detailUrl", "jobViewUrl", "jobUrl", "canonicalUrl")

MAX_WALK_DEPTH = 12


def looks_like_job(item: Any) -> bool:
    """A job has a title-like field and an id/URL-like field, possibly under `jobPosting`."""
    if not isinstance(item, dict):
        return False
    posting = item.get("jobPosting") if isinstance(item.get("jobPosting"), dict) else {}
    has_title = any(isinstance(item.get(k), str) and item.get(k).strip() for k in TITLE_KEYS) or \
        any(isinstance(posting.get(k), str) and posting.get(k).strip() for k in TITLE_KEYS)
    has_identity = any(item.get(k) not in (None, "") for k in IDENTITY_KEYS) or \
        any(posting.get(k) not in (None, "") for k in IDENTITY_KEYS)
    return has_title and has_identity


def looks_like_job_array(value: Any) -> bool:
    if not isinstance(value, list) or not value:
        return False
    matches = sum(1 for item in value if looks_like_job(item))
    return matches * 2 > len(value)


def find_job_arrays(root: Any, max_depth: int = MAX_WALK_DEPTH) -> List[List[Dict]]:
    """
    Collect every job-like array reachable from `root`.

    Uses an explicit visited-identity set and depth counter so repeated or
    cyclic references are visited once and the walk is bounded.
    """
    found: List[List[Dict]] = []
    visited: Set[int] = set()
    stack = [(root, 0)]

    while stack:
        node, depth = stack.pop()
        if not isinstance(node, (dict, list)):
            continue
        if id(node) in visited or depth > max_depth:
            continue
        visited.add(id(node))

        if looks_like_job_array(node):
            found.append([item for item in node if looks_like_job(item)])
            continue

        children = node.values() if isinstance(node, dict) else node
        # Reverse so traversal order follows document order
        for child in reversed(list(children)):
            if isinstance(child, (dict, list)):
                stack.append((child, depth + 1))

    return found


def load_hydration_state(page: PageSource) -> Optional[Any]:
    script = page.soup.find("script", id=HYDRATION_SCRIPT_ID)
    if script is None:
        return None
    content = script.string or script.get_text()
    if not content or not content.strip():
        return None
    return json.loads(content)


class HydrationStrategy(ExtractionStrategy):
    """Extracts jobs from the embedded hydration payload."""

    label = "NEXT_DATA"
    source = SOURCE_HYDRATION

    def _extract(self, page: PageSource) -> List[RawJobCandidate]:
        try:
            state = load_hydration_state(page)
        except json.JSONDecodeError as e:
            logger.warning(f"[hydration] Malformed {HYDRATION_SCRIPT_ID} on {page.url}: {e}")
            return []
        if state is None:
            logger.debug(f"[hydration] No {HYDRATION_SCRIPT_ID} on {page.url}")
            return []

        for path in KEY_PATHS:
            value = dig(state, path)
            if isinstance(value, list):
                items = [item for item in value if isinstance(item, dict)]
                if items:
                    logger.info(f"[hydration] {len(items)} job(s) at {path}")
                    return items

        candidates: List[RawJobCandidate] = []
        for array in find_job_arrays(state):
            candidates.extend(array)
        if candidates:
            logger.info(f"[hydration] {len(candidates)} job(s) found by structural search")
        return candidates
