"""
Tests for strategy priority in the extraction chain.
"""

import json

from pipeline.extractor import StrategyChain, build_strategy_chain
from pipeline.base import ExtractionStrategy
from pipeline.models import CapturedResponse, PageSource

SEARCH_URL = "https://www.monster.com/jobs/search?q=cook&page=1"

HYDRATION = {"props": {"pageProps": {"jobViewResultsData": [
    {"jobId": "h1", "jobPosting": {"title": "Hydrated Cook"}},
]}}}

JSONLD = {"@type": "JobPosting", "title": "Structured Cook", "url": "https://example.com/ld"}

DOM = '<div data-testid="svx-job-card"><h2><a href="/job-openings/dom--1">Card Cook</a></h2></div>'


def full_page(intercepted=None):
    html = (
        "<html><head>"
        f'<script type="application/ld+json">{json.dumps(JSONLD)}</script>'
        "</head><body>"
        f'<script id="__NEXT_DATA__" type="application/json">{json.dumps(HYDRATION)}</script>'
        f"{DOM}</body></html>"
    )
    return PageSource(url=SEARCH_URL, html=html, mode="browser", intercepted=intercepted)


def api_response(payload):
    return CapturedResponse(
        url="https://appsapi.monster.io/jobs-svx-service/v2/monster/search-jobs/samsearch/en-US",
        status=200,
        content_type="application/json",
        body=json.dumps(payload),
    )


class ExplodingStrategy(ExtractionStrategy):
    label = "BOOM"
    source = "boom"

    def _extract(self, page):
        raise RuntimeError("selector exploded")


class TestPriority:

    def test_intercepted_traffic_wins_over_everything(self):
        page = full_page([api_response({"jobResults": [
            {"jobId": "n1", "jobPosting": {"title": "Network Cook"}},
            {"jobId": "n2", "jobPosting": {"title": "Network Chef"}},
        ]})])

        result = build_strategy_chain().run(page)

        assert result.method == "NETWORK"
        assert [r.title for r in result.records] == ["Network Cook", "Network Chef"]
        assert result.attempted == ["NETWORK"]

    def test_hydration_wins_without_traffic(self):
        result = build_strategy_chain().run(full_page(intercepted=[]))

        assert result.method == "NEXT_DATA"
        assert [r.title for r in result.records] == ["Hydrated Cook"]

    def test_http_chain_skips_network(self):
        chain = build_strategy_chain(include_network=False)
        assert chain.labels() == ["NEXT_DATA", "JSON-LD", "DOM"]

    def test_jsonld_then_dom(self):
        html = f'<script type="application/ld+json">{json.dumps(JSONLD)}</script>{DOM}'
        result = build_strategy_chain().run(PageSource(url=SEARCH_URL, html=html))
        assert result.method == "JSON-LD"

        result = build_strategy_chain().run(PageSource(url=SEARCH_URL, html=DOM))
        assert result.method == "DOM"
        assert result.records[0].url == "https://www.monster.com/job-openings/dom--1"

    def test_candidates_that_normalize_to_nothing_fall_through(self):
        # An API array whose items have neither title nor URL
        page = full_page([api_response({"jobResults": [{"score": 1.0}, {"score": 0.5}]})])

        result = build_strategy_chain().run(page)

        assert result.method == "NEXT_DATA"
        assert result.attempted == ["NETWORK", "NEXT_DATA"]

    def test_failing_strategy_does_not_stop_the_chain(self):
        chain = StrategyChain([ExplodingStrategy()] + build_strategy_chain(include_network=False).strategies)

        result = chain.run(full_page())

        assert result.method == "NEXT_DATA"

    def test_empty_page(self):
        result = build_strategy_chain().run(PageSource(url=SEARCH_URL, html="<html><body>Nothing</body></html>"))

        assert result.is_empty
        assert result.method == "None"
        assert result.attempted == ["NETWORK", "NEXT_DATA", "JSON-LD", "DOM"]
