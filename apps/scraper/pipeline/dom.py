"""
DOM/markup extractor.

Applies ordered card selectors (first selector with any match is used for the
whole page), then ordered per-field selectors inside each card. When no card
selector matches, anchors whose path looks like a job-detail URL are harvested.
"""

import logging
import re
from typing import Callable, List, Optional
from urllib.parse import urljoin, urlparse

from bs4 import Tag

from .base import ExtractionStrategy
from .lookups import first_present
from .models import PageSource, RawJobCandidate
from .normalizer import SOURCE_DOM

logger = logging.getLogger(__name__)

CARD_SELECTORS = [
    '[data-testid="svx-job-card"]',
    '[data-test-id="svx-job-card"]',
    'article[data-job-id]',
    '[class*="JobCard"]',
    '[class*="job-card"]',
    '.job-card',
]

TITLE_SELECTORS = [
    '[data-testid="jobTitle"]',
    '[data-test-id*="title"] a',
    'h2 a',
    'h3 a',
    'a[href*="job-openings"]',
    '[data-test-id*="title"]',
    'h2',
    'h3',
]

COMPANY_SELECTORS = [
    '[data-testid="company"]',
    '[data-test-id*="company"]',
    '[class*="company"]',
    '[class*="Company"]',
]

LOCATION_SELECTORS = [
    '[data-testid="jobDetailLocation"]',
    '[data-test-id*="location"]',
    '[class*="location"]',
    '[class*="Location"]',
]

SALARY_SELECTORS = [
    '[data-testid="jobDetailSalary"]',
    '[data-test-id*="salary"]',
    '[class*="salary"]',
    '[class*="Salary"]',
]

SNIPPET_SELECTORS = [
    '[data-testid="jobDescription"]',
    '[data-test-id*="description"]',
    '[class*="description"]',
    '[class*="snippet"]',
]

POSTED_DATE_SELECTORS = [
    '[data-testid="jobDetailDateRecency"]',
    '[data-test-id*="date"]',
    'time',
    '[class*="date"]',
    '[class*="Date"]',
]

URL_SELECTORS = [
    'a[href*="job-openings"]',
    'a[href*="job-detail"]',
    'h2 a[href]',
    'h3 a[href]',
    'a[href]',
]

JOB_LINK_PATTERN = re.compile(r'/job-openings/|/job-detail/|/jobs/[^/?#]+/[0-9a-f]{8}-', re.IGNORECASE)

HARVEST_LIMIT = 50


def select_text(selector: str) -> Callable[[Tag], Optional[str]]:
    def lookup(card: Tag) -> Optional[str]:
        element = card.select_one(selector)
        if element is None:
            return None
        return element.get_text(" ", strip=True)
    return lookup


def select_href(selector: str) -> Callable[[Tag], Optional[str]]:
    def lookup(card: Tag) -> Optional[str]:
        element = card.select_one(selector)
        if element is None:
            return None
        return element.get('href')
    return lookup


def select_inner_html(selector: str) -> Callable[[Tag], Optional[str]]:
    def lookup(card: Tag) -> Optional[str]:
        element = card.select_one(selector)
        if element is None:
            return None
        return element.decode_contents().strip()
    return lookup


def _self_href(card: Tag) -> Optional[str]:
    # Cards rendered as a single anchor
    return card.get('href') if card.name == 'a' else None


TITLE_LOOKUPS = [select_text(s) for s in TITLE_SELECTORS]
COMPANY_LOOKUPS = [select_text(s) for s in COMPANY_SELECTORS]
LOCATION_LOOKUPS = [select_text(s) for s in LOCATION_SELECTORS]
SALARY_LOOKUPS = [select_text(s) for s in SALARY_SELECTORS]
SNIPPET_LOOKUPS = [select_inner_html(s) for s in SNIPPET_SELECTORS]
POSTED_DATE_LOOKUPS = [select_text(s) for s in POSTED_DATE_SELECTORS]
URL_LOOKUPS = [_self_href] + [select_href(s) for s in URL_SELECTORS]


def is_job_link(href: str) -> bool:
    if not href or href.startswith(('mailto:', 'javascript:', '#')):
        return False
    return bool(JOB_LINK_PATTERN.search(urlparse(href).path + '/'))


class DomStrategy(ExtractionStrategy):
    """Extracts job cards from rendered markup."""

    label = "DOM"
    source = SOURCE_DOM

    def _extract(self, page: PageSource) -> List[RawJobCandidate]:
        soup = page.soup

        cards: List[Tag] = []
        for selector in CARD_SELECTORS:
            cards = soup.select(selector)
            if cards:
                logger.debug(f"[dom] {len(cards)} card(s) using selector: {selector}")
                break

        if not cards:
            return self._harvest_links(page)

        candidates = []
        for card in cards:
            url = first_present(card, URL_LOOKUPS)
            candidates.append({
                'title': first_present(card, TITLE_LOOKUPS) or '',
                'url': urljoin(page.url, url) if url else '',
                'company': first_present(card, COMPANY_LOOKUPS) or '',
                'location': first_present(card, LOCATION_LOOKUPS) or '',
                'salary': first_present(card, SALARY_LOOKUPS),
                'snippet': first_present(card, SNIPPET_LOOKUPS) or '',
                'postedDate': first_present(card, POSTED_DATE_LOOKUPS) or '',
            })
        return candidates

    def _harvest_links(self, page: PageSource) -> List[RawJobCandidate]:
        """Last resort: anchors whose target resembles a job-detail URL."""
        seen = set()
        candidates = []
        for link in page.soup.find_all('a', href=True):
            href = link['href'].strip()
            if not is_job_link(href):
                continue
            url = urljoin(page.url, href)
            if url in seen:
                continue
            seen.add(url)
            candidates.append({
                'title': link.get_text(" ", strip=True) or link.get('title', '') or link.get('aria-label', ''),
                'url': url,
            })
            if len(candidates) >= HARVEST_LIMIT:
                break

        if candidates:
            logger.info(f"[dom] Harvested {len(candidates)} job link(s)")
        return candidates
