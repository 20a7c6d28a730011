"""
Command-line entry point for the job search scraper.

Input is read from INPUT.json (or the file named by SCRAPER_INPUT / --input);
command-line options override individual fields. Records are written to
<storage>/datasets/default.jsonl, diagnostics and the run summary to
<storage>/key_value_stores/default/.
"""
import argparse
import asyncio
import logging
import sys

from dotenv import load_dotenv

from app.config import InvalidInputError, ScraperInput, Settings, load_input
from core.net import HTTPClient
from core.proxy import ProxyConfiguration, mask_proxy
from core.run_state import RunContext, RunStatistics
from core.storage import Dataset, KeyValueStore
from crawler import BrowserCrawler, DetailEnricher, HttpCrawler, RetrievalOrchestrator
from pipeline.snapshot import DiagnosticsRecorder

load_dotenv()

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID_INPUT = 2


async def run_scraper(scraper_input: ScraperInput, settings: Settings) -> RunStatistics:
    """Wire the run's collaborators together and run one search."""
    store = KeyValueStore(settings.storage_dir)
    ctx = RunContext(
        input=scraper_input,
        settings=settings,
        dataset=Dataset(settings.storage_dir),
        store=store,
        diagnostics=DiagnosticsRecorder(store),
    )

    # One proxy URL for the whole run so browser and detail fetches share an exit IP
    proxy_url = ProxyConfiguration.from_input(scraper_input.proxy_configuration).new_url()
    logger.info(f"[main] Proxy: {mask_proxy(proxy_url)}")

    async with HTTPClient(user_agent=settings.user_agent, proxy_url=proxy_url) as client:
        enricher = None
        if scraper_input.enrich_details:
            enricher = DetailEnricher(
                client,
                ctx.stats,
                batch_size=scraper_input.detail_batch_size,
                pause_ms=settings.detail_batch_pause_ms,
            )

        orchestrator = RetrievalOrchestrator(
            ctx,
            HttpCrawler(client),
            browser_factory=lambda: BrowserCrawler(settings, proxy_url=proxy_url, diagnostics=ctx.diagnostics),
            enricher=enricher,
            http_client=client,
        )
        return await orchestrator.run()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Scrape job postings from a Monster search")
    parser.add_argument("--input", help="Path to the JSON input file (default: INPUT.json)")
    parser.add_argument("--search-url", help="Full search URL; overrides query/location/sort")
    parser.add_argument("--search-query", help="Job title or keywords")
    parser.add_argument("--location", help="City, state or ZIP")
    parser.add_argument("--max-jobs", type=int, help="Maximum records to emit (0 = unlimited)")
    parser.add_argument("--max-pages", type=int, help="Maximum listing pages (0 = unlimited)")
    parser.add_argument("--sort-by", choices=["relevance", "date"])
    parser.add_argument("--http-only", action="store_true", default=None, help="Never fall back to the browser")
    parser.add_argument("--no-enrich", action="store_true", help="Skip detail-page enrichment")
    parser.add_argument("--storage-dir", help="Output directory (default: storage)")
    return parser


def input_overrides(args: argparse.Namespace) -> dict:
    overrides = {
        "searchUrl": args.search_url,
        "searchQuery": args.search_query,
        "location": args.location,
        "maxJobs": args.max_jobs,
        "maxPages": args.max_pages,
        "sortBy": args.sort_by,
        "httpOnly": args.http_only,
    }
    if args.no_enrich:
        overrides["enrichDetails"] = False
    return overrides


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    settings = Settings.from_env()
    if args.storage_dir:
        settings.storage_dir = args.storage_dir

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        scraper_input = load_input(args.input, input_overrides(args))
    except InvalidInputError as e:
        logger.error(f"[main] Invalid input: {e}")
        return EXIT_INVALID_INPUT

    stats = asyncio.run(run_scraper(scraper_input, settings))
    logger.info(f"[main] Finished with {stats.records_emitted} job(s)")
    return EXIT_OK


def cli():
    sys.exit(main())


if __name__ == "__main__":
    cli()
