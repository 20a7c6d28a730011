"""
Detail-page enrichment.

Listing pages often carry only a snippet; each record's detail page is fetched
over the shared HTTP session to fill in the full description (and the job
type when the listing left it unspecified). Enrichment never drops a record:
on a block or any failure the original record is kept as is.
"""
import asyncio
import json
import logging
from dataclasses import dataclass
from typing import List, Optional

from core.antibot import detect_html_block
from core.net import HTTPClient
from core.run_state import RunStatistics
from pipeline.hydration import load_hydration_state
from pipeline.jsonld import JsonLdStrategy
from pipeline.lookups import dig
from pipeline.models import NOT_SPECIFIED, JobRecord, PageSource
from pipeline.normalizer import normalize_job_type, strip_html

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_PAUSE_MS = 1000

# Where the detail page keeps its posting inside the hydration payload
DETAIL_STATE_PATHS = [
    'props.pageProps.jobViewResultsData.jobPosting',
    'props.pageProps.jobPosting',
    'props.pageProps.job.jobPosting',
    'props.pageProps.job',
]

DESCRIPTION_SELECTORS = [
    '[data-testid="svx-description-container-inner"]',
    '[data-testid="jobDescription"]',
    '#jobDescription',
    '[class*="DescriptionContainer"]',
    '[class*="descriptionstyles"]',
    '.job-description',
]


@dataclass
class EnrichmentResult:
    description_html: str = ""
    description_text: str = ""
    job_type: str = NOT_SPECIFIED
    blocked: bool = False


def _from_posting(posting) -> Optional[EnrichmentResult]:
    if not isinstance(posting, dict):
        return None
    description = posting.get('description')
    if not isinstance(description, str) or not description.strip():
        return None
    return EnrichmentResult(
        description_html=description,
        description_text=strip_html(description),
        job_type=normalize_job_type(posting.get('employmentType')),
    )


def _from_jsonld(page: PageSource) -> Optional[EnrichmentResult]:
    for posting in JsonLdStrategy().extract(page):
        result = _from_posting(posting)
        if result:
            return result
    return None


def _from_hydration(page: PageSource) -> Optional[EnrichmentResult]:
    try:
        state = load_hydration_state(page)
    except json.JSONDecodeError as e:
        logger.debug(f"[enrich] Malformed hydration payload on {page.url}: {e}")
        return None
    if state is None:
        return None
    for path in DETAIL_STATE_PATHS:
        result = _from_posting(dig(state, path))
        if result:
            return result
    return None


def _from_dom(page: PageSource) -> Optional[EnrichmentResult]:
    for selector in DESCRIPTION_SELECTORS:
        element = page.soup.select_one(selector)
        if element is None:
            continue
        text = element.get_text(" ", strip=True)
        if text:
            return EnrichmentResult(description_html=element.decode_contents().strip(), description_text=text)
    return None


DETAIL_PARSERS = [_from_jsonld, _from_hydration, _from_dom]


def parse_detail_page(html: str, url: str) -> Optional[EnrichmentResult]:
    """First description found by structured data, hydration state, then markup."""
    page = PageSource(url=url, html=html)
    for parser in DETAIL_PARSERS:
        result = parser(page)
        if result:
            return result
    return None


def merge_enrichment(record: JobRecord, result: EnrichmentResult) -> JobRecord:
    update = {}
    if result.description_html:
        update['description_html'] = result.description_html
        update['description_text'] = result.description_text or strip_html(result.description_html)
    if record.job_type == NOT_SPECIFIED and result.job_type != NOT_SPECIFIED:
        update['job_type'] = result.job_type
    return record.model_copy(update=update) if update else record


class DetailEnricher:
    """Fetches detail pages in fixed-size concurrent batches."""

    def __init__(
        self,
        client: HTTPClient,
        stats: RunStatistics,
        batch_size: int = DEFAULT_BATCH_SIZE,
        pause_ms: int = DEFAULT_BATCH_PAUSE_MS,
    ):
        self.client = client
        self.stats = stats
        self.batch_size = max(1, batch_size)
        self.pause_ms = max(0, pause_ms)

    async def enrich(self, records: List[JobRecord]) -> List[JobRecord]:
        """Return the records in the same order, enriched where possible."""
        enriched = list(records)
        for start in range(0, len(enriched), self.batch_size):
            batch = enriched[start:start + self.batch_size]
            enriched[start:start + len(batch)] = await asyncio.gather(
                *(self.enrich_one(record) for record in batch)
            )
            if self.pause_ms and start + self.batch_size < len(enriched):
                await asyncio.sleep(self.pause_ms / 1000)
        return enriched

    async def fetch_detail(self, url: str) -> Optional[EnrichmentResult]:
        response = await self.client.fetch(url)
        verdict = detect_html_block(response.text, response.status)
        if verdict:
            logger.warning(f"[enrich] Detail page blocked: {url} ({verdict.reason})")
            return EnrichmentResult(blocked=True)
        if response.status >= 400:
            logger.warning(f"[enrich] Failed to fetch detail page: {url} (HTTP {response.status})")
            return None
        return parse_detail_page(response.text, response.url)

    async def enrich_one(self, record: JobRecord) -> JobRecord:
        if not record.url.startswith(('http://', 'https://')):
            return record

        try:
            result = await self.fetch_detail(record.url)
        except Exception as e:
            self.stats.enrichment_failed += 1
            logger.warning(f"[enrich] Error enriching {record.url}: {e}")
            return record

        if result is None:
            self.stats.enrichment_failed += 1
            return record
        if result.blocked:
            self.stats.enrichment_blocked += 1
            return record

        self.stats.enrichment_enriched += 1
        return merge_enrichment(record, result)
