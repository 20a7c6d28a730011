"""
Tests for the HTTP client and the lightweight listing crawler.
"""

import httpx
import pytest
from tenacity import wait_none

from core.net import FetchError, HTTPClient
from crawler.http_crawler import HttpCrawler
from crawler.page import STATUS_BLOCKED, STATUS_FAILED, STATUS_OK

SEARCH_URL = "https://www.monster.com/jobs/search?q=nurse&page=1"

LISTING_HTML = """
<html><head><title>Nurse Jobs</title><link rel="next" href="/jobs/search?q=nurse&amp;page=2"></head>
<body><div data-testid="svx-job-card"><h2><a href="/job-openings/nurse--1">Nurse</a></h2></div></body></html>
"""

CHALLENGE_HTML = "<html><head><title>Just a moment...</title></head><body>Checking your browser</body></html>"


def client_for(handler):
    return HTTPClient(transport=httpx.MockTransport(handler))


class TestHTTPClient:

    @pytest.mark.asyncio
    async def test_fetch(self):
        seen = {}

        def handler(request):
            seen["ua"] = request.headers["user-agent"]
            return httpx.Response(200, text="ok", headers={"Content-Type": "text/html"})

        async with client_for(handler) as client:
            response = await client.fetch(SEARCH_URL)

        assert response.status == 200
        assert response.text == "ok"
        assert response.content_type == "text/html"
        assert "Firefox" in seen["ua"]

    @pytest.mark.asyncio
    async def test_transport_error_becomes_fetch_error(self):
        def handler(request):
            raise httpx.RemoteProtocolError("server hung up", request=request)

        async with client_for(handler) as client:
            with pytest.raises(FetchError):
                await client.fetch(SEARCH_URL)

    @pytest.mark.asyncio
    async def test_connect_errors_are_retried(self, monkeypatch):
        monkeypatch.setattr(HTTPClient._get.retry, "wait", wait_none())
        calls = []

        def handler(request):
            calls.append(request)
            if len(calls) < 3:
                raise httpx.ConnectError("refused", request=request)
            return httpx.Response(200, text="finally")

        async with client_for(handler) as client:
            response = await client.fetch(SEARCH_URL)

        assert response.text == "finally"
        assert len(calls) == 3

    @pytest.mark.asyncio
    async def test_adopts_browser_session(self):
        seen = {}

        def handler(request):
            seen["cookie"] = request.headers.get("cookie", "")
            seen["ua"] = request.headers["user-agent"]
            return httpx.Response(200, text="ok")

        async with client_for(handler) as client:
            client.adopt_browser_session(
                [{"name": "cf_clearance", "value": "token", "domain": "www.monster.com", "path": "/"}],
                user_agent="BrowserUA/1.0",
            )
            await client.fetch("https://www.monster.com/job-openings/nurse--1")

        assert "cf_clearance=token" in seen["cookie"]
        assert seen["ua"] == "BrowserUA/1.0"


class TestHttpCrawler:

    @pytest.mark.asyncio
    async def test_listing_page(self):
        async with client_for(lambda request: httpx.Response(200, text=LISTING_HTML)) as client:
            fetch = await HttpCrawler(client).fetch_page(SEARCH_URL)

        assert fetch.status == STATUS_OK
        assert fetch.source.mode == "http"
        assert fetch.source.intercepted is None
        assert fetch.source.title == "Nurse Jobs"
        assert fetch.next_url == "https://www.monster.com/jobs/search?q=nurse&page=2"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status,body", [
        (403, "Forbidden"),
        (503, "Service Unavailable"),
        (200, CHALLENGE_HTML),
    ])
    async def test_block_is_terminal(self, status, body):
        async with client_for(lambda request: httpx.Response(status, text=body)) as client:
            fetch = await HttpCrawler(client).fetch_page(SEARCH_URL)

        assert fetch.status == STATUS_BLOCKED
        assert fetch.source is None

    @pytest.mark.asyncio
    async def test_server_error(self):
        async with client_for(lambda request: httpx.Response(500, text="oops")) as client:
            fetch = await HttpCrawler(client).fetch_page(SEARCH_URL)

        assert fetch.status == STATUS_FAILED
        assert fetch.reason == "status:500"

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ReadError("reset", request=request)

        async with client_for(handler) as client:
            fetch = await HttpCrawler(client).fetch_page(SEARCH_URL)

        assert fetch.status == STATUS_FAILED
        assert not fetch.ok
