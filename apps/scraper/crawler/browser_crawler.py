"""
Browser-based retrieval using Playwright.

Every listing page is opened in a fresh tab of one long-lived browser context
so cookies earned while passing a challenge carry over to later pages. Search
API responses observed during navigation are captured for the network
extraction strategy.
"""
import asyncio
import logging
import random
from typing import Dict, List, Optional, Tuple
from urllib.parse import urljoin

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import async_playwright

from app.config import Settings
from core.antibot import BypassOutcome, ChallengeBypass
from core.proxy import playwright_proxy
from crawler.page import (
    NEXT_PAGE_SELECTORS,
    STATUS_BLOCKED,
    STATUS_FAILED,
    PageFetch,
)
from pipeline.models import CapturedResponse, PageSource
from pipeline.network import is_search_response
from pipeline.snapshot import DiagnosticsRecorder

logger = logging.getLogger(__name__)

VIEWPORT_WIDTH = (1280, 1920)
VIEWPORT_HEIGHT = (720, 1080)


class ResponseChannel:
    """
    Collects candidate search responses while a page navigates.

    The Playwright callback only enqueues; bodies are read in drain() once
    navigation is over, so the page handler never races the listener.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()

    def on_response(self, response):
        try:
            content_type = response.headers.get('content-type', '')
        except Exception as e:
            logger.debug(f"[browser] Unreadable response headers: {e}")
            return
        if is_search_response(response.url, content_type):
            self._queue.put_nowait(response)

    async def drain(self) -> List[CapturedResponse]:
        captured: List[CapturedResponse] = []
        while not self._queue.empty():
            response = self._queue.get_nowait()
            try:
                body = await response.text()
            except Exception as e:
                logger.debug(f"[browser] Could not read body of {response.url}: {e}")
                continue
            captured.append(CapturedResponse(
                url=response.url,
                status=response.status,
                content_type=response.headers.get('content-type', ''),
                body=body,
            ))
        if captured:
            logger.info(f"[browser] Captured {len(captured)} search response(s)")
        return captured


class BrowserCrawler:
    """Use a real browser for pages the HTTP client cannot get past."""

    mode = "browser"

    def __init__(
        self,
        settings: Settings,
        proxy_url: Optional[str] = None,
        diagnostics: Optional[DiagnosticsRecorder] = None,
        bypass: Optional[ChallengeBypass] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings
        self.proxy_url = proxy_url
        self.diagnostics = diagnostics
        self.rng = rng or random.Random()
        self.bypass = bypass or ChallengeBypass(
            max_rounds=settings.bypass_rounds,
            wait_range_ms=settings.bypass_wait_ms,
            rng=self.rng,
        )
        self._playwright = None
        self._browser = None
        self._context = None
        self._user_agent: Optional[str] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def start(self):
        self._playwright = await async_playwright().start()
        try:
            launcher = getattr(self._playwright, self.settings.browser)

            launch_options = {'headless': self.settings.headless}
            proxy = playwright_proxy(self.proxy_url)
            if proxy:
                launch_options['proxy'] = proxy
            self._browser = await launcher.launch(**launch_options)

            viewport = {
                'width': self.rng.randint(*VIEWPORT_WIDTH),
                'height': self.rng.randint(*VIEWPORT_HEIGHT),
            }
            context_options = {'viewport': viewport, 'locale': 'en-US'}
            if self.settings.user_agent:
                context_options['user_agent'] = self.settings.user_agent
            self._context = await self._browser.new_context(**context_options)
        except Exception:
            # __aexit__ does not run when __aenter__ raises
            await self.close()
            raise

        logger.info(
            f"[browser] Launched {self.settings.browser} "
            f"(headless={self.settings.headless}, viewport={viewport['width']}x{viewport['height']})"
        )

    async def close(self):
        for resource in (self._context, self._browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except PlaywrightError as e:
                logger.debug(f"[browser] Error during close: {e}")
        if self._playwright is not None:
            await self._playwright.stop()
        self._context = self._browser = self._playwright = None

    async def fetch_page(self, url: str) -> PageFetch:
        """
        Navigate to a listing page and hand back its final markup plus any
        search responses seen on the way.
        """
        page = await self._context.new_page()
        channel = ResponseChannel()
        page.on('response', channel.on_response)

        try:
            await page.wait_for_timeout(self.rng.randint(*self.settings.pre_navigation_delay_ms))
            logger.info(f"[browser] Navigating to {url}")
            await page.goto(url, wait_until='domcontentloaded', timeout=self.settings.navigation_timeout_ms)
            await page.wait_for_timeout(self.rng.randint(*self.settings.settle_delay_ms))

            outcome, verdict = await self.bypass.resolve(page)
            if outcome == BypassOutcome.BLOCKED:
                if self.diagnostics is not None:
                    self.diagnostics.record_block(url, await self._content(page), await self._screenshot(page))
                return PageFetch(url=url, mode=self.mode, status=STATUS_BLOCKED, reason=verdict.reason)

            if self._user_agent is None:
                self._user_agent = await page.evaluate('() => navigator.userAgent')

            html = await page.content()
            source = PageSource(
                url=page.url,
                html=html,
                mode=self.mode,
                intercepted=await channel.drain(),
                title=await page.title(),
            )
            return PageFetch(
                url=url,
                mode=self.mode,
                source=source,
                next_url=await self._find_next(page),
            )

        except PlaywrightError as e:
            logger.error(f"[browser] Browser fetch failed for {url}: {e}")
            if self.diagnostics is not None:
                self.diagnostics.record_error(url, await self._screenshot(page))
            return PageFetch(url=url, mode=self.mode, status=STATUS_FAILED, reason=str(e))

        finally:
            try:
                await page.close()
            except PlaywrightError as e:
                logger.debug(f"[browser] Error closing page: {e}")

    async def session_state(self) -> Tuple[List[Dict], Optional[str]]:
        """Cookies and user agent of the browser session, for the HTTP client."""
        if self._context is None:
            return [], self._user_agent
        return await self._context.cookies(), self._user_agent

    async def _find_next(self, page) -> Optional[str]:
        for selector in NEXT_PAGE_SELECTORS:
            try:
                element = await page.query_selector(selector)
                if element is None:
                    continue
                if await element.get_attribute('aria-disabled') == 'true':
                    return None
                if await element.get_attribute('disabled') is not None:
                    return None
                href = await element.get_attribute('href')
                if href and not href.startswith(('#', 'javascript:')):
                    return urljoin(page.url, href)
                return None
            except PlaywrightError as e:
                logger.debug(f"[browser] Next-page lookup failed for {selector}: {e}")
        return None

    async def _content(self, page) -> Optional[str]:
        try:
            return await page.content()
        except PlaywrightError as e:
            logger.debug(f"[browser] Could not read page content: {e}")
            return None

    async def _screenshot(self, page) -> Optional[bytes]:
        try:
            return await page.screenshot(full_page=True)
        except PlaywrightError as e:
            logger.debug(f"[browser] Failed to capture screenshot: {e}")
            return None
