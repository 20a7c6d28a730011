"""
Unit tests for the individual extraction strategies.
"""

import json

from pipeline.dom import DomStrategy, is_job_link
from pipeline.hydration import HydrationStrategy, find_job_arrays
from pipeline.jsonld import JsonLdStrategy, flatten_jsonld
from pipeline.models import CapturedResponse, PageSource
from pipeline.network import NetworkStrategy, find_envelope_array, is_search_response

SEARCH_URL = "https://www.monster.com/jobs/search?q=nurse&page=1"


def page_with(html, intercepted=None):
    return PageSource(url=SEARCH_URL, html=html, mode="browser", intercepted=intercepted)


def next_data(state):
    return f'<html><body><script id="__NEXT_DATA__" type="application/json">{json.dumps(state)}</script></body></html>'


def json_response(payload, url="https://appsapi.monster.io/jobs-svx-service/v2/monster/search-jobs", status=200):
    return CapturedResponse(url=url, status=status, content_type="application/json; charset=utf-8", body=json.dumps(payload))


class TestJsonLd:

    def test_graph_with_two_postings_and_unrelated_type(self):
        data = {
            "@context": "https://schema.org",
            "@graph": [
                {"@type": "JobPosting", "title": "Nurse", "url": "https://example.com/1"},
                {"@type": "Organization", "name": "Monster"},
                {"@type": "JobPosting", "title": "Medic", "url": "https://example.com/2"},
            ],
        }
        html = f'<script type="application/ld+json">{json.dumps(data)}</script>'

        candidates = JsonLdStrategy().extract(page_with(html))

        assert [c["title"] for c in candidates] == ["Nurse", "Medic"]

    def test_item_list(self):
        data = {
            "@type": "ItemList",
            "itemListElement": [
                {"@type": "ListItem", "position": 1, "item": {"@type": "JobPosting", "title": "A"}},
                {"@type": "JobPosting", "title": "B"},
            ],
        }
        assert [i["title"] for i in flatten_jsonld(data) if i.get("@type") == "JobPosting"] == ["A", "B"]

    def test_malformed_block_is_skipped(self):
        html = (
            '<script type="application/ld+json">{not json</script>'
            '<script type="application/ld+json">{"@type": "JobPosting", "title": "Ok"}</script>'
        )
        candidates = JsonLdStrategy().extract(page_with(html))
        assert [c["title"] for c in candidates] == ["Ok"]


class TestHydration:

    def test_known_key_path(self):
        state = {"props": {"pageProps": {"jobViewResultsData": [
            {"jobId": "1", "jobPosting": {"title": "Welder"}},
            {"jobId": "2", "jobPosting": {"title": "Fitter"}},
        ]}}}

        candidates = HydrationStrategy().extract(page_with(next_data(state)))

        assert [c["jobId"] for c in candidates] == ["1", "2"]

    def test_structural_search_when_paths_miss(self):
        state = {"props": {"pageProps": {"deeply": {"nested": {"listing": [
            {"title": "Cook", "jobId": "c1"},
            {"title": "Chef", "jobId": "c2"},
        ]}}}}}

        candidates = HydrationStrategy().extract(page_with(next_data(state)))

        assert [c["title"] for c in candidates] == ["Cook", "Chef"]

    def test_cycle_guard(self):
        root = {"a": {}}
        root["a"]["back"] = root
        root["a"]["jobs"] = [{"title": "Loop", "id": 1}]

        arrays = find_job_arrays(root)

        assert arrays == [[{"title": "Loop", "id": 1}]]

    def test_depth_bound(self):
        root = current = {}
        for _ in range(20):
            current["next"] = {}
            current = current["next"]
        current["jobs"] = [{"title": "Too deep", "id": 1}]

        assert find_job_arrays(root, max_depth=5) == []

    def test_malformed_state_returns_nothing(self):
        html = '<script id="__NEXT_DATA__" type="application/json">{"props":</script>'
        assert HydrationStrategy().extract(page_with(html)) == []


class TestNetwork:

    def test_search_response_filter(self):
        assert is_search_response("https://appsapi.monster.io/jobs-svx-service/v2/search", "application/json")
        assert not is_search_response("https://www.monster.com/static/app.js", "application/javascript")
        assert not is_search_response("https://www.monster.com/search", "text/html")

    def test_envelope_keys(self):
        assert find_envelope_array({"jobResults": [{"a": 1}]}) == [{"a": 1}]
        assert find_envelope_array({"data": {"results": [{"b": 2}]}}) == [{"b": 2}]
        assert find_envelope_array({"jobResults": []}) is None

    def test_accumulates_all_matching_responses(self):
        intercepted = [
            json_response({"jobResults": [{"jobId": "1", "jobPosting": {"title": "One"}}]}),
            CapturedResponse(url="https://www.monster.com/tracking/search", status=200, content_type="application/json", body="oops"),
            json_response({"jobResults": [{"jobId": "2", "jobPosting": {"title": "Two"}}]}),
            json_response({"jobResults": [{"jobId": "3"}]}, status=500),
        ]

        candidates = NetworkStrategy().extract(page_with("<html></html>", intercepted))

        assert [c["jobId"] for c in candidates] == ["1", "2"]

    def test_nothing_without_intercepted_traffic(self):
        page = PageSource(url=SEARCH_URL, html="<html></html>")
        assert NetworkStrategy().extract(page) == []


class TestDom:

    def test_cards(self):
        html = """
        <div data-testid="svx-job-card">
            <h2><a href="/job-openings/welder--1">Welder</a></h2>
            <span data-testid="company">Iron Works</span>
            <span data-testid="jobDetailLocation">Gary, IN</span>
        </div>
        <div data-testid="svx-job-card">
            <h2><a href="/job-openings/fitter--2">Fitter</a></h2>
            <span data-testid="company">Pipe Co</span>
        </div>
        """

        candidates = DomStrategy().extract(page_with(html))

        assert [c["title"] for c in candidates] == ["Welder", "Fitter"]
        assert candidates[0]["url"] == "https://www.monster.com/job-openings/welder--1"
        assert candidates[0]["company"] == "Iron Works"
        assert candidates[0]["location"] == "Gary, IN"

    def test_link_harvest_fallback(self):
        html = """
        <a href="/about">About</a>
        <a href="/job-openings/driver--9">Driver</a>
        <a href="/job-openings/driver--9">Driver again</a>
        <a href="https://www.monster.com/job-openings/cook--3">Cook</a>
        """

        candidates = DomStrategy().extract(page_with(html))

        assert [c["url"] for c in candidates] == [
            "https://www.monster.com/job-openings/driver--9",
            "https://www.monster.com/job-openings/cook--3",
        ]

    def test_is_job_link(self):
        assert is_job_link("/job-openings/anything--1")
        assert not is_job_link("mailto:jobs@example.com")
        assert not is_job_link("/career-advice/resume")
