"""
HTTP client with retries, session reuse and optional outbound proxy.

One client is kept for the whole run so cookies set by the site (or copied in
from the browser session) are sent with every later request.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

DEFAULT_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:128.0) Gecko/20100101 Firefox/128.0"
)
DEFAULT_TIMEOUT = 30.0
MAX_RETRIES = 2


class FetchError(Exception):
    """Transport-level failure after retries were exhausted."""


@dataclass
class FetchResponse:
    status: int
    url: str
    text: str
    headers: Dict[str, str] = field(default_factory=dict)
    elapsed_ms: int = 0

    @property
    def content_type(self) -> str:
        return self.headers.get("content-type", "")


class HTTPClient:
    """Async HTTP client with browser-like headers and retries."""

    def __init__(
        self,
        user_agent: Optional[str] = None,
        proxy_url: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.user_agent = user_agent or DEFAULT_UA
        self.proxy_url = proxy_url
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout),
            follow_redirects=True,
            proxy=proxy_url if transport is None else None,
            transport=transport,
            headers=self._default_headers(),
        )

    def _default_headers(self) -> Dict[str, str]:
        return {
            "User-Agent": self.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
            "Accept-Encoding": "gzip, deflate",
            "Connection": "keep-alive",
            "Upgrade-Insecure-Requests": "1",
            "Sec-Fetch-Dest": "document",
            "Sec-Fetch-Mode": "navigate",
            "Sec-Fetch-Site": "none",
        }

    def adopt_browser_session(self, cookies: Iterable[Dict], user_agent: Optional[str] = None):
        """
        Copy cookies (Playwright `context.cookies()` shape) and the browser's
        user agent so later requests carry the same trust the browser earned.
        """
        count = 0
        for cookie in cookies:
            name = cookie.get("name")
            if not name:
                continue
            self._client.cookies.set(
                name,
                cookie.get("value", ""),
                domain=cookie.get("domain", ""),
                path=cookie.get("path", "/"),
            )
            count += 1
        if user_agent:
            self.user_agent = user_agent
            self._client.headers["User-Agent"] = user_agent
        logger.debug(f"[net] Adopted {count} browser cookie(s)")

    @retry(
        stop=stop_after_attempt(MAX_RETRIES + 1),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception_type((httpx.TimeoutException, httpx.ConnectError)),
        reraise=True
    )
    async def _get(self, url: str, headers: Optional[Dict[str, str]]) -> httpx.Response:
        return await self._client.get(url, headers=headers)

    async def fetch(self, url: str, headers: Optional[Dict[str, str]] = None) -> FetchResponse:
        """
        GET a URL.

        Raises:
            FetchError: on timeouts/connection errors after retries, or any
                other transport error
        """
        start_time = time.time()
        try:
            response = await self._get(url, headers)
        except httpx.HTTPError as e:
            logger.error(f"[net] Error fetching {url}: {e}")
            raise FetchError(f"{type(e).__name__}: {e}") from e

        elapsed_ms = int((time.time() - start_time) * 1000)
        logger.info(f"[net] GET {response.status_code} {url} ({len(response.content)} bytes, {elapsed_ms}ms)")

        return FetchResponse(
            status=response.status_code,
            url=str(response.url),
            text=response.text,
            headers={k.lower(): v for k, v in response.headers.items()},
            elapsed_ms=elapsed_ms,
        )

    async def aclose(self):
        await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
