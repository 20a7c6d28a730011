"""
Lightweight retrieval: plain HTTP GET of listing pages.

No scripts run here, so a challenge page is terminal for this mode; the
orchestrator escalates to the browser when it sees STATUS_BLOCKED.
"""
import logging

from core.antibot import detect_html_block
from core.net import FetchError, HTTPClient
from crawler.page import STATUS_BLOCKED, STATUS_FAILED, PageFetch, find_next_link
from pipeline.models import PageSource

logger = logging.getLogger(__name__)


class HttpCrawler:
    """Fetch listing pages with the shared HTTP client."""

    mode = "http"

    def __init__(self, client: HTTPClient):
        self.client = client

    async def fetch_page(self, url: str) -> PageFetch:
        try:
            response = await self.client.fetch(url)
        except FetchError as e:
            logger.warning(f"[http] Fetch failed for {url}: {e}")
            return PageFetch(url=url, mode=self.mode, status=STATUS_FAILED, reason=str(e))

        verdict = detect_html_block(response.text, response.status)
        if verdict:
            logger.warning(f"[http] Blocked on {url} ({verdict.reason})")
            return PageFetch(url=url, mode=self.mode, status=STATUS_BLOCKED, reason=verdict.reason)

        if response.status >= 400:
            logger.warning(f"[http] HTTP {response.status} for {url}")
            return PageFetch(
                url=url, mode=self.mode, status=STATUS_FAILED, reason=f"status:{response.status}"
            )

        source = PageSource(url=response.url, html=response.text, mode=self.mode)
        soup = source.soup
        if soup.title:
            source.title = soup.title.get_text(strip=True)

        return PageFetch(
            url=url,
            mode=self.mode,
            source=source,
            next_url=find_next_link(soup, response.url),
        )
