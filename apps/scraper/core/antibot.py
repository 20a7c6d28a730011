"""
Anti-bot detection and bounded challenge bypass.

A fetched page is either Clean or Challenged. Lightweight (HTTP) fetches treat
a challenge as terminal; browser fetches get a bounded number of bypass rounds
(wait, pointer movement, challenge-widget click) before giving up.
"""
import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

# Matched case-insensitively against visible body text
BLOCK_PHRASES = [
    'just a moment',
    'access blocked',
    'access denied',
    'enable javascript and cookies to continue',
    'enable javascript',
    'verify you are human',
    'checking your browser',
    'attention required',
    'press & hold',
    'please verify you are a human',
]

# Matched case-insensitively against the page title. Bare vendor names are
# avoided: a search for "Cloudflare" titles its results page with it.
BLOCK_TITLE_MARKERS = [
    'just a moment',
    'attention required',
    '| cloudflare',
    'access to this page has been denied',
]

# Challenge pages whose whole title is the marker
BLOCK_TITLES = {
    'access denied',
    'forbidden',
}

# Only meaningful for lightweight fetches
BLOCK_STATUS_CODES = {403, 503}

CHALLENGE_SELECTORS = [
    'iframe[src*="challenges.cloudflare.com"]',
    '.cf-turnstile',
    '#challenge-stage input[type="checkbox"]',
    '#px-captcha',
    'iframe[src*="hcaptcha.com"]',
]

DEFAULT_BYPASS_ROUNDS = 3


@dataclass
class BlockVerdict:
    blocked: bool
    reason: str = ""

    def __bool__(self):
        return self.blocked


CLEAN = BlockVerdict(False)


def detect_block(title: str = "", text: str = "", status: Optional[int] = None) -> BlockVerdict:
    """Inspect title, visible text and (for HTTP fetches) status for a block signature."""
    if status is not None and status in BLOCK_STATUS_CODES:
        return BlockVerdict(True, f"status:{status}")

    lowered_title = (title or "").strip().lower()
    if lowered_title in BLOCK_TITLES:
        return BlockVerdict(True, f"title:{lowered_title}")
    for marker in BLOCK_TITLE_MARKERS:
        if marker in lowered_title:
            return BlockVerdict(True, f"title:{marker}")

    lowered_text = (text or "").lower()
    for phrase in BLOCK_PHRASES:
        if phrase in lowered_text:
            return BlockVerdict(True, f"body:{phrase}")

    return CLEAN


def visible_text(html: str) -> Tuple[str, str]:
    """Return (title, visible body text) of an HTML document."""
    soup = BeautifulSoup(html or "", 'lxml')
    title = soup.title.get_text(strip=True) if soup.title else ""
    for element in soup(['script', 'style', 'noscript', 'template']):
        element.decompose()
    body = soup.body or soup
    return title, body.get_text(" ", strip=True)


def detect_html_block(html: str, status: Optional[int] = None) -> BlockVerdict:
    title, text = visible_text(html)
    return detect_block(title, text, status)


class BypassOutcome(str, Enum):
    CLEAN = "clean"
    BYPASSED = "bypassed"
    BLOCKED = "blocked"


class ChallengeBypass:
    """Drives bypass rounds against a live Playwright page."""

    def __init__(
        self,
        max_rounds: int = DEFAULT_BYPASS_ROUNDS,
        wait_range_ms: Tuple[int, int] = (4000, 7000),
        simulate_pointer: bool = True,
        rng: Optional[random.Random] = None,
    ):
        self.max_rounds = max(0, max_rounds)
        self.wait_range_ms = wait_range_ms
        self.simulate_pointer = simulate_pointer
        self.rng = rng or random.Random()

    async def check(self, page) -> BlockVerdict:
        try:
            title = await page.title()
        except Exception as e:
            logger.debug(f"[antibot] Could not read title: {e}")
            title = ""
        try:
            text = await page.inner_text('body')
        except Exception as e:
            logger.debug(f"[antibot] Could not read body text: {e}")
            text = ""
        return detect_block(title, text)

    async def resolve(self, page) -> Tuple[BypassOutcome, BlockVerdict]:
        """
        Check the page and, when challenged, run bypass rounds until it is
        clean or the round budget is spent.
        """
        verdict = await self.check(page)
        if not verdict:
            return BypassOutcome.CLEAN, verdict

        logger.warning(f"[antibot] Challenge detected ({verdict.reason}), attempting bypass")
        for attempt in range(1, self.max_rounds + 1):
            await page.wait_for_timeout(self.rng.randint(*self.wait_range_ms))
            if self.simulate_pointer:
                await self._move_pointer(page)
            await self._click_widget(page)

            verdict = await self.check(page)
            if not verdict:
                logger.info(f"[antibot] Challenge bypassed after {attempt} round(s)")
                return BypassOutcome.BYPASSED, verdict
            logger.info(f"[antibot] Still challenged after round {attempt}/{self.max_rounds} ({verdict.reason})")

        logger.error(f"[antibot] Failed to bypass challenge ({verdict.reason})")
        return BypassOutcome.BLOCKED, verdict

    async def _move_pointer(self, page):
        try:
            for _ in range(self.rng.randint(2, 4)):
                await page.mouse.move(
                    self.rng.randint(100, 700),
                    self.rng.randint(100, 500),
                    steps=self.rng.randint(5, 15),
                )
                await page.wait_for_timeout(self.rng.randint(150, 600))
        except Exception as e:
            logger.debug(f"[antibot] Pointer simulation failed: {e}")

    async def _click_widget(self, page) -> bool:
        for selector in CHALLENGE_SELECTORS:
            try:
                element = await page.query_selector(selector)
                if element is None:
                    continue
                box = await element.bounding_box()
                if box:
                    # Checkbox sits near the left edge of the widget
                    await page.mouse.click(
                        box['x'] + min(30, box['width'] / 2),
                        box['y'] + box['height'] / 2,
                    )
                else:
                    await element.click()
                logger.info(f"[antibot] Clicked challenge widget: {selector}")
                return True
            except Exception as e:
                logger.debug(f"[antibot] Widget interaction failed for {selector}: {e}")
        return False
