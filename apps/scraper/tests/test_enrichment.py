"""
Tests for detail-page enrichment.
"""

import json

import httpx
import pytest

from core.net import HTTPClient
from core.run_state import RunStatistics
from crawler.enrichment import DetailEnricher, parse_detail_page
from pipeline.models import NOT_SPECIFIED, JobRecord

DETAIL_BASE = "https://www.monster.com/job-openings/"

JSONLD_DETAIL = """
<html><head><script type="application/ld+json">{}</script></head><body></body></html>
""".format(json.dumps({
    "@type": "JobPosting",
    "title": "Nurse",
    "description": "<p>Full <b>description</b></p>",
    "employmentType": "FULL_TIME",
}))

DOM_DETAIL = """
<html><body><div data-testid="svx-description-container-inner"><p>From markup</p></div></body></html>
"""

HYDRATION_DETAIL = '<html><body><script id="__NEXT_DATA__" type="application/json">{}</script></body></html>'.format(
    json.dumps({"props": {"pageProps": {"jobPosting": {"description": "From state", "employmentType": ["PART_TIME"]}}}})
)

CHALLENGE = "<html><head><title>Just a moment...</title></head><body>Verify you are human</body></html>"


def snippet_record(slug, job_type=NOT_SPECIFIED):
    return JobRecord(
        title=slug,
        url=f"{DETAIL_BASE}{slug}",
        description_html="short snippet",
        description_text="short snippet",
        job_type=job_type,
    )


def routed_client(pages):
    def handler(request):
        slug = request.url.path.rsplit("/", 1)[-1]
        status, body = pages[slug]
        return httpx.Response(status, text=body)
    return HTTPClient(transport=httpx.MockTransport(handler))


class TestParseDetailPage:

    def test_jsonld_first(self):
        result = parse_detail_page(JSONLD_DETAIL, DETAIL_BASE + "a")
        assert result.description_html == "<p>Full <b>description</b></p>"
        assert result.description_text == "Full description"
        assert result.job_type == "FULL_TIME"

    def test_hydration(self):
        result = parse_detail_page(HYDRATION_DETAIL, DETAIL_BASE + "a")
        assert result.description_text == "From state"
        assert result.job_type == "PART_TIME"

    def test_markup(self):
        result = parse_detail_page(DOM_DETAIL, DETAIL_BASE + "a")
        assert result.description_html == "<p>From markup</p>"
        assert result.job_type == NOT_SPECIFIED

    def test_nothing(self):
        assert parse_detail_page("<html><body>hi</body></html>", DETAIL_BASE + "a") is None


class TestDetailEnricher:

    @pytest.mark.asyncio
    async def test_block_keeps_snippet_and_counts(self):
        stats = RunStatistics()
        record = snippet_record("blocked")

        async with routed_client({"blocked": (200, CHALLENGE)}) as client:
            enriched = await DetailEnricher(client, stats, pause_ms=0).enrich([record])

        assert enriched[0].description_text == "short snippet"
        assert enriched[0].description_html == "short snippet"
        assert stats.enrichment_blocked == 1
        assert stats.enrichment_enriched == 0

    @pytest.mark.asyncio
    async def test_success_merges_fields(self):
        stats = RunStatistics()

        async with routed_client({"ok": (200, JSONLD_DETAIL)}) as client:
            enriched = await DetailEnricher(client, stats, pause_ms=0).enrich([snippet_record("ok")])

        assert enriched[0].description_text == "Full description"
        assert enriched[0].job_type == "FULL_TIME"
        assert stats.enrichment_enriched == 1

    @pytest.mark.asyncio
    async def test_known_job_type_is_kept(self):
        async with routed_client({"ok": (200, JSONLD_DETAIL)}) as client:
            enriched = await DetailEnricher(client, RunStatistics(), pause_ms=0).enrich(
                [snippet_record("ok", job_type="Contract")]
            )

        assert enriched[0].job_type == "Contract"

    @pytest.mark.asyncio
    async def test_order_preserved_across_batches(self):
        pages = {
            "a": (200, JSONLD_DETAIL),
            "b": (200, CHALLENGE),
            "c": (500, "oops"),
            "d": (200, DOM_DETAIL),
            "e": (403, "denied"),
        }
        stats = RunStatistics()
        records = [snippet_record(slug) for slug in "abcde"]

        async with routed_client(pages) as client:
            enriched = await DetailEnricher(client, stats, batch_size=2, pause_ms=0).enrich(records)

        assert [r.title for r in enriched] == list("abcde")
        assert [r.description_text for r in enriched] == [
            "Full description", "short snippet", "short snippet", "From markup", "short snippet",
        ]
        assert stats.enrichment_enriched == 2
        assert stats.enrichment_blocked == 2
        assert stats.enrichment_failed == 1

    @pytest.mark.asyncio
    async def test_transport_failure_keeps_record(self):
        def handler(request):
            raise httpx.ReadError("reset", request=request)

        stats = RunStatistics()
        record = snippet_record("x")
        async with HTTPClient(transport=httpx.MockTransport(handler)) as client:
            enriched = await DetailEnricher(client, stats, pause_ms=0).enrich([record])

        assert enriched == [record]
        assert stats.enrichment_failed == 1

    @pytest.mark.asyncio
    async def test_records_without_url_are_skipped(self):
        stats = RunStatistics()
        record = JobRecord(title="No link")

        async with routed_client({}) as client:
            enriched = await DetailEnricher(client, stats, pause_ms=0).enrich([record])

        assert enriched == [record]
        assert stats.enrichment_failed == 0
