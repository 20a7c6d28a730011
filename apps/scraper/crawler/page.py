"""
Page visit results and page-number pagination helpers.
"""
from dataclasses import dataclass
from typing import Optional
from urllib.parse import parse_qsl, urlencode, urljoin, urlparse, urlunparse

from pipeline.models import PageSource

PAGE_PARAM = "page"

STATUS_OK = "ok"
STATUS_BLOCKED = "blocked"
STATUS_FAILED = "failed"


@dataclass
class PageFetch:
    """Outcome of visiting one listing page in either retrieval mode."""
    url: str
    mode: str
    status: str = STATUS_OK
    source: Optional[PageSource] = None
    next_url: Optional[str] = None
    reason: str = ""

    @property
    def ok(self) -> bool:
        return self.status == STATUS_OK and self.source is not None


def page_number_of(url: str, param: str = PAGE_PARAM) -> Optional[int]:
    """Value of the page-number query parameter, or None when the URL has none."""
    for name, value in parse_qsl(urlparse(url).query, keep_blank_values=True):
        if name == param:
            try:
                return int(value)
            except ValueError:
                return None
    return None


def with_page_number(url: str, number: int, param: str = PAGE_PARAM) -> str:
    """Return `url` with its page-number parameter set (added when missing)."""
    parsed = urlparse(url)
    params = parse_qsl(parsed.query, keep_blank_values=True)
    replaced = False
    updated = []
    for name, value in params:
        if name == param:
            if not replaced:
                updated.append((name, str(number)))
                replaced = True
            continue
        updated.append((name, value))
    if not replaced:
        updated.append((param, str(number)))
    return urlunparse(parsed._replace(query=urlencode(updated)))


# Ordered "next page" controls; the first present one decides
NEXT_PAGE_SELECTORS = [
    'a[rel="next"]',
    'link[rel="next"]',
    '[data-testid="pagination-next"]',
    '[data-test-id="pagination-next"]',
    'a[aria-label="Next"]',
    'button[aria-label="Next"]',
    'a[aria-label*="next" i]',
    'a.pagination-next',
]


def is_disabled_control(attrs: dict) -> bool:
    if attrs.get('aria-disabled') == 'true':
        return True
    if 'disabled' in attrs:
        return True
    classes = attrs.get('class') or []
    if isinstance(classes, str):
        classes = classes.split()
    return any('disabled' in name.lower() for name in classes)


def find_next_link(soup, base_url: str) -> Optional[str]:
    """Absolute URL of an enabled next-page control in static markup, if any."""
    for selector in NEXT_PAGE_SELECTORS:
        element = soup.select_one(selector)
        if element is None:
            continue
        if is_disabled_control(element.attrs):
            return None
        href = element.get('href')
        if href and not href.startswith(('#', 'javascript:')):
            return urljoin(base_url, href)
        return None
    return None
