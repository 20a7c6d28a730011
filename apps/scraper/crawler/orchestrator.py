"""
Retrieval orchestrator.

Drives the whole search: HTTP-first pagination, escalation to the browser when
the lightweight path is blocked or finds nothing, per-page extraction,
deduplication, enrichment and the final run summary.

Flow per listing page:
    fetch (HTTP or browser) -> block gate -> strategy chain -> dedupe/budget
    -> detail enrichment -> dataset
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from app.config import build_search_url
from core.net import HTTPClient
from core.run_state import RunContext, RunStatistics
from crawler.enrichment import DetailEnricher
from crawler.page import STATUS_BLOCKED, STATUS_FAILED, PageFetch, page_number_of, with_page_number
from pipeline.extractor import StrategyChain, build_strategy_chain

logger = logging.getLogger(__name__)

MAX_CONSECUTIVE_FAILURES = 3

# Per-page verdicts
PAGE_OK = "ok"
PAGE_EMPTY = "empty"
PAGE_NO_NEW = "no_new"
PAGE_BLOCKED = "blocked"
PAGE_FAILED = "failed"

# Why a pagination phase ended
STOP_MAX_JOBS = "max_jobs_reached"
STOP_MAX_PAGES = "max_pages_reached"
STOP_EMPTY = "empty_page"
STOP_NO_NEW = "no_new_records"
STOP_NO_NEXT = "no_next_page"
STOP_BLOCKED = "blocked"
STOP_FAILURES = "consecutive_failures"


@dataclass
class PhaseOutcome:
    stop_reason: str
    resume_url: Optional[str] = None
    resume_position: int = 1


class RetrievalOrchestrator:
    """
    Runs one search to completion.

    `browser_factory` returns an async context manager yielding a browser
    crawler; it is only called if the HTTP phase has to be escalated.
    """

    def __init__(
        self,
        ctx: RunContext,
        http_crawler,
        browser_factory: Optional[Callable] = None,
        enricher: Optional[DetailEnricher] = None,
        http_client: Optional[HTTPClient] = None,
        http_chain: Optional[StrategyChain] = None,
        browser_chain: Optional[StrategyChain] = None,
    ):
        self.ctx = ctx
        self.http_crawler = http_crawler
        self.browser_factory = browser_factory
        self.enricher = enricher
        self.http_client = http_client
        # No live traffic to intercept without a browser
        self.http_chain = http_chain or build_strategy_chain(include_network=False)
        self.browser_chain = browser_chain or build_strategy_chain(include_network=True)

    @property
    def stats(self) -> RunStatistics:
        return self.ctx.stats

    async def run(self) -> RunStatistics:
        start_url = build_search_url(self.ctx.input)
        logger.info(
            f"[orchestrator] Starting search: {start_url} "
            f"(maxJobs={self.ctx.input.max_jobs}, maxPages={self.ctx.input.max_pages})"
        )

        outcome = await self._paginate(self.http_crawler, self.http_chain, start_url, 1, escalate_on_block=True)
        logger.info(f"[orchestrator] HTTP phase ended: {outcome.stop_reason}")

        fallback = self._fallback_point(start_url, outcome)
        if fallback is not None:
            if self.ctx.input.http_only:
                logger.warning("[orchestrator] Browser fallback disabled (httpOnly); ending with HTTP results")
            elif self.browser_factory is None:
                logger.warning("[orchestrator] No browser available; ending with HTTP results")
            else:
                await self._run_browser_phase(*fallback)

        return self._finish()

    def _fallback_point(self, start_url: str, outcome: PhaseOutcome) -> Optional[Tuple[str, int]]:
        """Where the browser should pick up, or None when HTTP results stand."""
        if self.ctx.state.total_emitted == 0:
            return start_url, 1
        if outcome.stop_reason == STOP_BLOCKED:
            return outcome.resume_url, outcome.resume_position
        return None

    async def _run_browser_phase(self, url: str, position: int) -> PhaseOutcome:
        self.stats.escalated_to_browser = True
        logger.info(f"[orchestrator] Escalating to browser at page {position}: {url}")
        try:
            async with self.browser_factory() as browser:
                outcome = await self._paginate(browser, self.browser_chain, url, position, escalate_on_block=False)
        except Exception as e:
            logger.error(f"[orchestrator] Browser phase aborted: {e}", exc_info=True)
            return PhaseOutcome(STOP_FAILURES)
        logger.info(f"[orchestrator] Browser phase ended: {outcome.stop_reason}")
        return outcome

    def _budget_stop(self, position: int) -> Optional[str]:
        if self.ctx.state.budget_reached(self.ctx.input.max_jobs):
            return STOP_MAX_JOBS
        max_pages = self.ctx.input.max_pages
        if max_pages > 0 and position > max_pages:
            return STOP_MAX_PAGES
        return None

    def _plan_batch(self, crawler, url: str, position: int, page_param: Optional[int], origin: Tuple[str, int]) -> List[Tuple[int, str]]:
        """(position, url) pairs to visit next."""
        if page_param is None:
            return [(position, url)]

        size = self.ctx.input.max_concurrency if crawler.mode == "browser" else 1
        max_pages = self.ctx.input.max_pages
        if max_pages > 0:
            size = min(size, max_pages - position + 1)

        origin_url, origin_position = origin
        return [
            (pos, with_page_number(origin_url, page_param + pos - origin_position))
            for pos in range(position, position + size)
        ]

    async def _paginate(
        self,
        crawler,
        chain: StrategyChain,
        url: str,
        position: int,
        escalate_on_block: bool,
    ) -> PhaseOutcome:
        """
        Visit listing pages starting at `url` (page `position` of the run)
        until a termination condition holds.

        URLs carrying a page-number parameter are paginated by incrementing
        it; otherwise the next-page control found on each page is followed.
        """
        page_param = page_number_of(url)
        origin = (url, position)
        consecutive_failures = 0

        while True:
            stop = self._budget_stop(position)
            if stop:
                return PhaseOutcome(stop)

            batch = self._plan_batch(crawler, url, position, page_param, origin)
            fetches = await asyncio.gather(*(self._visit(crawler, page_url) for _, page_url in batch))

            # Pages are handled in page order regardless of completion order
            for (pos, page_url), fetch in zip(batch, fetches):
                stop = self._budget_stop(pos)
                if stop:
                    return PhaseOutcome(stop)

                verdict = await self._handle_page(crawler, chain, fetch, pos)

                if verdict == PAGE_BLOCKED and escalate_on_block:
                    return PhaseOutcome(STOP_BLOCKED, resume_url=page_url, resume_position=pos)
                if verdict in (PAGE_BLOCKED, PAGE_FAILED):
                    consecutive_failures += 1
                    if consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
                        logger.error(f"[orchestrator] {consecutive_failures} consecutive failed pages, stopping")
                        return PhaseOutcome(STOP_FAILURES)
                    continue

                consecutive_failures = 0
                if verdict == PAGE_EMPTY:
                    return PhaseOutcome(STOP_EMPTY)
                if verdict == PAGE_NO_NEW:
                    return PhaseOutcome(STOP_NO_NEW)

            position = batch[-1][0] + 1
            if page_param is None:
                url = fetches[-1].next_url
                if not url:
                    logger.info("[orchestrator] No next page control found")
                    return PhaseOutcome(STOP_NO_NEXT)

    async def _visit(self, crawler, url: str) -> PageFetch:
        try:
            return await crawler.fetch_page(url)
        except Exception as e:
            logger.error(f"[orchestrator] Unexpected error visiting {url}: {e}", exc_info=True)
            return PageFetch(url=url, mode=crawler.mode, status=STATUS_FAILED, reason=str(e))

    async def _handle_page(self, crawler, chain: StrategyChain, fetch: PageFetch, position: int) -> str:
        self.ctx.state.mark_page(position)
        self.stats.record_mode(fetch.mode)

        if fetch.status == STATUS_BLOCKED:
            self.stats.pages_blocked += 1
            logger.warning(f"[orchestrator] Page {position} blocked ({fetch.reason})")
            return PAGE_BLOCKED
        if not fetch.ok:
            self.stats.pages_failed += 1
            logger.warning(f"[orchestrator] Page {position} failed ({fetch.reason})")
            return PAGE_FAILED

        try:
            return await self._process_listing(crawler, chain, fetch, position)
        except Exception as e:
            self.stats.pages_failed += 1
            logger.error(f"[orchestrator] Error processing page {position} ({fetch.url}): {e}", exc_info=True)
            return PAGE_FAILED

    async def _process_listing(self, crawler, chain: StrategyChain, fetch: PageFetch, position: int) -> str:
        source = fetch.source
        result = chain.run(source)

        if result.is_empty:
            self.stats.pages_empty += 1
            logger.warning(f"[orchestrator] Page {position}: no jobs found by {', '.join(result.attempted)}")
            self.ctx.diagnostics.record_empty_page(source.url, source.html, position)
            return PAGE_EMPTY

        self.stats.record_method(result.method)
        self.ctx.state.method = result.method

        admitted, duplicates = await self.ctx.state.admit(result.records, self.ctx.input.max_jobs)
        self.stats.duplicates_dropped += duplicates
        if not admitted:
            logger.info(f"[orchestrator] Page {position}: all {len(result.records)} job(s) already seen")
            return PAGE_NO_NEW

        records = admitted
        if self.enricher is not None:
            if crawler.mode == "browser":
                await self._share_session(crawler)
            records = await self.enricher.enrich(admitted)

        try:
            self.ctx.dataset.push_data(record.to_dict() for record in records)
        except OSError:
            # Unwritten records must not count toward the budget or block a retry
            await self.ctx.state.release(admitted)
            raise
        self.stats.records_emitted += len(records)
        logger.info(
            f"[orchestrator] Page {position}: {len(records)} new job(s) via {result.method} "
            f"({duplicates} duplicate(s), total {self.ctx.state.total_emitted})"
        )
        return PAGE_OK

    async def _share_session(self, browser):
        if self.http_client is None:
            return
        try:
            cookies, user_agent = await browser.session_state()
        except Exception as e:
            logger.warning(f"[orchestrator] Could not read browser session: {e}")
            return
        self.http_client.adopt_browser_session(cookies, user_agent)

    def _finish(self) -> RunStatistics:
        stats = self.stats
        stats.pages_processed = self.ctx.state.pages_processed
        stats.extraction_method = self.ctx.state.method
        stats.finish()

        summary = stats.to_summary()
        self.ctx.store.set_value("RUN_SUMMARY", summary)

        logger.info(
            f"[orchestrator] Run complete: {summary['totalJobsScraped']} job(s) from "
            f"{summary['pagesProcessed']} page(s) in {summary['durationSeconds']}s "
            f"(method={summary['extractionMethod']}, modes={summary['retrievalModes']}, "
            f"duplicates={summary['duplicatesDropped']}, blocked={summary['pagesBlocked']})"
        )
        if stats.records_emitted == 0:
            logger.warning(
                "[orchestrator] No jobs were scraped. Inspect DEBUG_HTML_*, DEBUG_SUMMARY_* "
                "and BLOCKED_SCREENSHOT in the key-value store."
            )
        return stats
