"""
Outbound proxy selection.

The run input's `proxyConfiguration` is passed through untouched; this module
only knows how to hand out URLs from an explicit `proxyUrls` list.
"""
import itertools
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import unquote, urlparse

logger = logging.getLogger(__name__)


class ProxyConfiguration:
    """Round-robin over configured proxy URLs."""

    def __init__(self, proxy_urls: Optional[List[str]] = None):
        self.proxy_urls = [u.strip() for u in (proxy_urls or []) if u and u.strip()]
        self._cycle = itertools.cycle(self.proxy_urls) if self.proxy_urls else None

    @classmethod
    def from_input(cls, config: Optional[Dict[str, Any]]) -> "ProxyConfiguration":
        if not config:
            return cls()
        urls = config.get("proxyUrls") or []
        if not urls and config.get("useApifyProxy"):
            logger.warning("[proxy] Managed proxy groups are not available here; running without proxy")
        return cls(urls)

    def new_url(self) -> Optional[str]:
        if self._cycle is None:
            return None
        return next(self._cycle)


def mask_proxy(url: Optional[str]) -> str:
    """Hide credentials when logging a proxy URL."""
    if not url:
        return "none"
    return url.split("@", 1)[1] if "@" in url else url


def playwright_proxy(url: Optional[str]) -> Optional[Dict[str, str]]:
    """
    Proxy settings for a Playwright launch.

    Playwright ignores credentials embedded in `server`; they go in
    separate `username`/`password` fields.
    """
    if not url:
        return None
    parsed = urlparse(url if "://" in url else f"http://{url}")
    server = f"{parsed.scheme}://{parsed.hostname}"
    if parsed.port:
        server = f"{server}:{parsed.port}"
    proxy = {'server': server}
    if parsed.username:
        proxy['username'] = unquote(parsed.username)
        proxy['password'] = unquote(parsed.password or "")
    return proxy
