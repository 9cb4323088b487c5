"""Main entry point with CLI."""
import argparse
import asyncio
import logging
import sys
from datetime import date

from enforcement_scraper.config import Config, config
from enforcement_scraper.fetch.client import HttpFetcher
from enforcement_scraper.fetch.endpoints import EA_ACTION_TYPES
from enforcement_scraper.fetch.rate_limit import RateLimiterRegistry
from enforcement_scraper.jobs.progress import ProgressBroadcaster
from enforcement_scraper.jobs.run_control import RunControl
from enforcement_scraper.jobs.runner import ScrapeCoordinator
from enforcement_scraper.jobs.session import RunConfig, ScrapeSession, SessionStatus
from enforcement_scraper.jobs.sources import HSE_COUNTRIES, build_source
from enforcement_scraper.logging_conf import setup_logging
from enforcement_scraper.parse.models import Agency, DataType
from enforcement_scraper.store.backends import create_store

logger = logging.getLogger(__name__)


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="UK enforcement records scraper")

    # Source
    parser.add_argument(
        "--agency",
        choices=[a.value for a in Agency],
        default=Agency.HSE.value,
        help="Agency to scrape (default: hse)",
    )
    parser.add_argument(
        "--data-type",
        choices=[d.value for d in DataType],
        default=DataType.CASE.value,
        help="Record type (default: case)",
    )
    parser.add_argument("--start-page", type=int, default=None, help="First listing page (default: 1)")
    parser.add_argument(
        "--pages",
        type=int,
        default=None,
        help=f"Number of pages to scrape (default: {config.MAX_PAGES})",
    )
    parser.add_argument("--date-from", type=date.fromisoformat, default=None, help="EA search start (YYYY-MM-DD)")
    parser.add_argument("--date-to", type=date.fromisoformat, default=None, help="EA search end (YYYY-MM-DD)")
    parser.add_argument(
        "--action-type",
        choices=sorted(EA_ACTION_TYPES),
        action="append",
        default=None,
        help="EA action type, repeatable (default: court_case)",
    )
    parser.add_argument("--country", choices=HSE_COUNTRIES, default=None, help="HSE notices country")

    # Performance / run control
    parser.add_argument(
        "--requests-per-minute",
        type=float,
        default=None,
        help=f"Requests per minute per host (default: {config.REQUESTS_PER_MINUTE})",
    )
    parser.add_argument("--max-retries", type=int, default=None, help=f"Attempts per request (default: {config.MAX_RETRIES})")
    parser.add_argument("--batch-size", type=int, default=None, help=f"Records per batch (default: {config.BATCH_SIZE})")
    parser.add_argument(
        "--max-page-errors",
        type=int,
        default=None,
        help=f"Fail the session after N page errors (default: {config.MAX_PAGE_ERRORS})",
    )
    parser.add_argument(
        "--no-stop-on-existing",
        action="store_true",
        help="Keep going when pages contain only records already stored",
    )
    parser.add_argument("--no-details", action="store_true", help="Skip detail page enrichment")

    # Mode
    parser.add_argument(
        "--dev",
        action="store_true",
        help="Development mode (verbose logs, page dumps under data/dev/)",
    )

    return parser.parse_args(argv)


def build_run_config(args: argparse.Namespace) -> RunConfig:
    return RunConfig.from_config(
        agency=Agency(args.agency),
        data_type=DataType(args.data_type),
        start_page=args.start_page,
        max_pages=args.pages,
        date_from=args.date_from,
        date_to=args.date_to,
        action_types=args.action_type,
        country=args.country,
        requests_per_minute=args.requests_per_minute,
        max_retries=args.max_retries,
        batch_size=args.batch_size,
        max_page_errors=args.max_page_errors,
        stop_on_existing=False if args.no_stop_on_existing else None,
        fetch_details=False if args.no_details else None,
        dev_mode=args.dev or None,
    )


async def run_session(run_config: RunConfig) -> ScrapeSession:
    store = create_store()
    await store.initialize()

    session = ScrapeSession.for_config(run_config)
    await store.save_session(session)

    limiters = RateLimiterRegistry(run_config.requests_per_minute)
    control = RunControl.from_config(run_config)
    async with HttpFetcher(
        limiters=limiters,
        max_retries=run_config.max_retries,
        retry_delay=run_config.retry_delay,
        timeout=run_config.timeout,
    ) as fetcher:
        coordinator = ScrapeCoordinator(store, fetcher, control=control, broadcaster=ProgressBroadcaster())
        try:
            return await coordinator.run(session)
        except asyncio.CancelledError:
            if not session.is_terminal:
                session.cancel("interrupted")
                await store.save_session(session)
            raise


def main(argv=None) -> None:
    """Main entry point."""
    args = parse_args(argv)
    setup_logging("DEBUG" if args.dev else None)

    try:
        Config.validate()
        run_config = build_run_config(args)
        build_source(run_config)
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    logger.info("=" * 60)
    logger.info("Enforcement Scraper Starting")
    logger.info(f"Mode: {'DEV' if args.dev else 'PROD'}")
    logger.info(f"Source: {run_config.agency.value} {run_config.data_type.value}")
    logger.info(f"Pages: {run_config.start_page} - {run_config.end_page}")
    logger.info(f"Requests per minute: {run_config.requests_per_minute}")
    logger.info(f"Batch size: {run_config.batch_size}")
    logger.info(f"Store: {config.STORE_BACKEND}")
    logger.info("=" * 60)

    try:
        session = asyncio.run(run_session(run_config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)

    if session.status == SessionStatus.FAILED:
        sys.exit(1)


if __name__ == "__main__":
    main()
