"""
Diagnostics recorder.

Persists raw markup, a structural summary and screenshots for pages that
could not be extracted or were blocked, for offline triage.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import Dict, Optional

from bs4 import BeautifulSoup

from core.storage import KeyValueStore

logger = logging.getLogger(__name__)

HYDRATION_MARKERS = {
    'next_data': 'id="__NEXT_DATA__"',
    'initial_state': '__INITIAL_STATE__',
    'apollo_state': '__APOLLO_STATE__',
    'nuxt': '__NUXT__',
}

SAMPLE_LIMIT = 15


def summarize_markup(html: str, url: str = "") -> Dict:
    """Structural summary of a page: element counts, markers, sample attributes."""
    soup = BeautifulSoup(html or "", 'lxml')

    test_ids = Counter()
    for element in soup.find_all(attrs={'data-testid': True}):
        test_ids[element['data-testid']] += 1
    for element in soup.find_all(attrs={'data-test-id': True}):
        test_ids[element['data-test-id']] += 1

    classes = Counter()
    for element in soup.find_all(class_=True):
        for name in element.get('class', []):
            classes[name] += 1

    title = soup.title.get_text(strip=True) if soup.title else ""

    return {
        'url': url,
        'title': title,
        'html_size': len(html or ""),
        'captured_at': datetime.now(timezone.utc).isoformat(),
        'element_counts': {
            'script': len(soup.find_all('script')),
            'ld_json': len(soup.find_all('script', type='application/ld+json')),
            'a': len(soup.find_all('a')),
            'article': len(soup.find_all('article')),
            'div': len(soup.find_all('div')),
            'li': len(soup.find_all('li')),
        },
        'hydration_markers': {name: marker in (html or "") for name, marker in HYDRATION_MARKERS.items()},
        'sample_test_ids': [name for name, _ in test_ids.most_common(SAMPLE_LIMIT)],
        'sample_classes': [name for name, _ in classes.most_common(SAMPLE_LIMIT)],
    }


class DiagnosticsRecorder:
    """Best-effort diagnostics sink; never raises."""

    def __init__(self, store: KeyValueStore):
        self.store = store

    def record_empty_page(self, url: str, html: str, page_number: int) -> Optional[Dict]:
        """Persist markup and structural summary for a page no strategy could extract."""
        try:
            summary = summarize_markup(html, url)
            self.store.set_value(f"DEBUG_HTML_{page_number}", html or "", content_type="text/html")
            self.store.set_value(f"DEBUG_SUMMARY_{page_number}", summary)
            logger.warning(
                f"[diagnostics] Saved DEBUG_HTML_{page_number} / DEBUG_SUMMARY_{page_number} "
                f"(title={summary['title']!r}, markers={summary['hydration_markers']})"
            )
            return summary
        except Exception as e:
            logger.error(f"[diagnostics] Failed to record empty page {url}: {e}")
            return None

    def record_block(self, url: str, html: Optional[str], screenshot: Optional[bytes]):
        """Persist what the challenge page looked like when retries ran out."""
        try:
            if screenshot:
                self.store.set_value("BLOCKED_SCREENSHOT", screenshot, content_type="image/png")
            if html:
                self.store.set_value("BLOCKED_HTML", html, content_type="text/html")
            logger.warning(f"[diagnostics] Saved block diagnostics for {url}")
        except Exception as e:
            logger.error(f"[diagnostics] Failed to record block for {url}: {e}")

    def record_error(self, url: str, screenshot: Optional[bytes]):
        try:
            if screenshot:
                self.store.set_value("ERROR_SCREENSHOT", screenshot, content_type="image/png")
        except Exception as e:
            logger.debug(f"[diagnostics] Failed to record error screenshot for {url}: {e}")
