"""Command-line interface for the scraper."""

import argparse
import functools
import logging
import sys
from typing import List, Optional

__all__ = ["main", "parse_args", "print_summary"]

from partscrape.config import (
    ALL_CATEGORIES,
    BASE_URL,
    JOB_TIMEOUT_S,
    MAX_CONCURRENCY,
    STAGING_DIRECTORY,
)
from partscrape.exceptions import ConfigurationError
from partscrape.logging_config import get_logger, setup_logging
from partscrape.mapping import get_serialization_map, load_serialization_map
from partscrape.models import JobStatus, RunSummary
from partscrape.pool import playwright_page, run
from partscrape.progress import make_progress_factory
from partscrape.shutdown import get_shutdown_handler
from partscrape.url_validation import URLValidationError, validate_category

logger = get_logger("cli")

EXIT_OK = 0
EXIT_PREFLIGHT_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid count: '{value}'")
    if number < 0:
        raise argparse.ArgumentTypeError(f"count must be >= 0, got {number}")
    return number


def _positive_int(value: str) -> int:
    number = _non_negative_int(value)
    if number == 0:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="partscrape",
        description="Concurrent catalog scraper writing one JSON file per category",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=f"""
Examples:
  # Scrape every category with 5 parallel browsers
  partscrape

  # Scrape CPUs and memory only, at most 100 products each
  partscrape cpu memory -n 100

  # Watch the browsers while debugging a failing pre-flight check
  partscrape cpu --workers 1 --headful

Output goes to {STAGING_DIRECTORY}/json/<category>.json, or
<category>.incomplete.json when a category aborted part way.
        """,
    )

    parser.add_argument(
        "categories",
        nargs="*",
        metavar="CATEGORY",
        help="Categories to scrape (default: all). See --list-categories",
    )
    parser.add_argument(
        "-n",
        dest="limit",
        type=_non_negative_int,
        default=None,
        metavar="COUNT",
        help="Maximum products per category (default: unbounded)",
    )
    parser.add_argument(
        "-w", "--workers",
        type=_positive_int,
        default=MAX_CONCURRENCY,
        help=f"Number of parallel browser pages (default: {MAX_CONCURRENCY})",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=JOB_TIMEOUT_S / 60,
        metavar="MINUTES",
        help=f"Time budget per category (default: {JOB_TIMEOUT_S / 60:g} minutes)",
    )
    parser.add_argument(
        "--staging-dir",
        default=STAGING_DIRECTORY,
        help=f"Output directory (default: {STAGING_DIRECTORY})",
    )
    parser.add_argument(
        "--serialization-map",
        default=None,
        metavar="PATH",
        help="Serialization map JSON to use instead of the bundled one",
    )
    parser.add_argument(
        "--headful",
        action="store_true",
        help="Show the browser windows",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Don't draw progress bars",
    )
    parser.add_argument(
        "--no-log-file",
        action="store_true",
        help="Don't write the JSONL log under logs/",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log debug messages to the console",
    )
    parser.add_argument(
        "--list-categories",
        action="store_true",
        help="List available categories and exit",
    )

    args = parser.parse_args(argv)
    try:
        args.categories = [validate_category(c) for c in args.categories]
    except URLValidationError as e:
        parser.error(str(e))
    return args


def print_summary(summary: RunSummary) -> None:
    """Display per-category outcomes."""
    print(f"\n{'='*60}")
    print("SCRAPE SUMMARY")
    print(f"{'='*60}")

    for result in summary.results:
        status = result.status.value if result.status != JobStatus.QUEUED else "not started"
        line = (
            f"  {result.category:<24} {status:<12} {result.records_written:>6} records"
            f"  {result.pages_scraped:>4} pages  {result.elapsed_s:>7.1f}s"
        )
        if result.error:
            line += f"  ({result.error.splitlines()[0]})"
        print(line)

    print(
        f"\nCompleted: {summary.count(JobStatus.COMPLETED)}"
        f"  Incomplete: {summary.count(JobStatus.INCOMPLETE)}"
        f"  Failed: {summary.count(JobStatus.FAILED)}"
    )
    print(f"Total records written: {summary.total_records}")
    if summary.interrupted:
        print("Run was interrupted; re-run the missing categories to complete them.")
    print()


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for CLI. Returns the process exit code."""
    args = parse_args(argv)

    if args.list_categories:
        print("Available categories:")
        for category in ALL_CATEGORIES:
            print(f"  {category}: {BASE_URL}/{category}/")
        return EXIT_OK

    setup_logging(
        level=logging.DEBUG if args.verbose else logging.INFO,
        log_to_file=not args.no_log_file,
    )

    try:
        if args.serialization_map:
            table = load_serialization_map(args.serialization_map)
        else:
            table = get_serialization_map()
    except ConfigurationError as e:
        logger.error(str(e))
        return EXIT_CONFIG_ERROR

    shutdown = get_shutdown_handler().install()

    # de-duplicate while preserving order
    categories = list(dict.fromkeys(args.categories)) or list(ALL_CATEGORIES)

    try:
        summary = run(
            categories,
            max_concurrency=args.workers,
            job_timeout=args.timeout * 60 if args.timeout > 0 else None,
            limit=args.limit,
            staging_dir=args.staging_dir,
            progress_factory=make_progress_factory(not args.no_progress),
            worker_factory=functools.partial(playwright_page, headless=not args.headful),
            table=table,
        )
    finally:
        shutdown.uninstall()

    if not summary.preflight_ok:
        return EXIT_PREFLIGHT_FAILED

    print_summary(summary)
    if summary.interrupted and not any(r.status != JobStatus.QUEUED for r in summary.results):
        return EXIT_INTERRUPTED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
