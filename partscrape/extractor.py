"""Page-by-page extraction of catalog records for one category."""

import logging
from typing import Callable, Dict, Iterator, Optional, Tuple

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, Route
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from partscrape.config import (
    BLOCKED_RESOURCE_TYPES,
    ELEMENT_TIMEOUT_MS,
    NAVIGATION_TIMEOUT_MS,
    NETWORK_IDLE_TIMEOUT_MS,
    SELECTORS,
)
from partscrape.deadline import Deadline
from partscrape.exceptions import PaginationError
from partscrape.html_utils import extract_item, extract_product_rows, extract_total_pages
from partscrape.logging_config import get_logger, log_scrape_event
from partscrape.mapping import SerializationMap, get_serialization_map
from partscrape.models import PageBatch
from partscrape.serializers import CustomSerializer, build_record
from partscrape.url_validation import category_url

__all__ = [
    "block_noise_requests",
    "unblock_noise_requests",
    "get_num_pages",
    "scrape",
]

logger = get_logger("extractor")

ROUTE_PATTERN = "**/*"
RouteHandler = Callable[[Route], None]


def block_noise_requests(page: Page, blocked=BLOCKED_RESOURCE_TYPES) -> RouteHandler:
    """Abort requests for fonts, images and stylesheets before they are sent.

    Returns the installed handler so it can be removed again with
    unblock_noise_requests().
    """

    def handle_route(route: Route) -> None:
        if route.request.resource_type in blocked:
            route.abort()
        else:
            route.continue_()

    page.route(ROUTE_PATTERN, handle_route)
    return handle_route


def unblock_noise_requests(page: Page, handler: RouteHandler) -> None:
    """Remove a handler installed by block_noise_requests()."""
    try:
        page.unroute(ROUTE_PATTERN, handler)
    except PlaywrightError as e:
        # page already closed or crashed
        logger.warning(f"Could not remove request filter: {e}")


def get_num_pages(category: str, page: Page, deadline: Optional[Deadline] = None) -> int:
    """Open the first page of a category and read its page count.

    Raises:
        PaginationError: If the pagination control does not show up in time
            or does not end in a page number
        JobTimeoutError: If the job deadline ran out while waiting
    """
    deadline = deadline or Deadline(None)
    url = category_url(category)

    deadline.check(f"loading {url}")
    page.goto(url, timeout=deadline.timeout_ms(NAVIGATION_TIMEOUT_MS))

    timeout = deadline.timeout_ms(ELEMENT_TIMEOUT_MS)
    try:
        page.wait_for_selector(SELECTORS["pagination"], timeout=timeout)
    except PlaywrightTimeoutError as e:
        deadline.check("waiting for pagination")
        raise PaginationError(
            category, f"pagination control not found within {timeout / 1000:.1f}s"
        ) from e

    num_pages = extract_total_pages(page.content())
    if num_pages is None:
        raise PaginationError(category, "pagination control has no page count")
    return num_pages


def _goto_page(category: str, page: Page, page_number: int, deadline: Deadline) -> None:
    url = category_url(category, page_number)
    deadline.check(f"loading page {page_number}")
    page.goto(url, timeout=deadline.timeout_ms(NAVIGATION_TIMEOUT_MS))
    try:
        page.wait_for_load_state(
            "networkidle", timeout=deadline.timeout_ms(NETWORK_IDLE_TIMEOUT_MS)
        )
    except PlaywrightTimeoutError:
        deadline.check(f"waiting for page {page_number} to settle")
        raise


def scrape(
    category: str,
    page: Page,
    limit: Optional[int] = None,
    deadline: Optional[Deadline] = None,
    on_total: Optional[Callable[[int], None]] = None,
    table: Optional[SerializationMap] = None,
    registry: Optional[Dict[Tuple[str, str], CustomSerializer]] = None,
) -> Iterator[PageBatch]:
    """Yield one batch of records per catalog page, in page order.

    Args:
        category: Category to extract
        page: Browser page owned by the calling worker
        limit: Maximum records for the whole category (None = unbounded)
        deadline: Job deadline checked before every navigation
        on_total: Called once with the page count before the first batch
        table: Serialization map override
        registry: Custom serializer registry override

    A failing item is logged and dropped; failures reaching pages or
    navigation propagate and end the sequence.
    """
    deadline = deadline or Deadline(None)
    # Fails the whole job, not each item, when the map cannot be loaded
    table = table if table is not None else get_serialization_map()
    logger.info(f"Starting to scrape category: {category}")

    handler = block_noise_requests(page)
    try:
        num_pages = get_num_pages(category, page, deadline)
        logger.info(f"Found {num_pages} pages for category: {category}")
        if on_total is not None:
            on_total(num_pages)

        scraped = 0
        for page_number in range(1, num_pages + 1):
            if page_number > 1:
                _goto_page(category, page, page_number, deadline)

            rows = extract_product_rows(page.content())
            logger.debug(f"[{category}] Processing page {page_number} of {num_pages} ({len(rows)} rows)")

            batch: PageBatch = []
            for index, row in enumerate(rows):
                if limit is not None and scraped >= limit:
                    break
                try:
                    raw = extract_item(row)
                    record = build_record(
                        category,
                        raw.name,
                        raw.price_text,
                        raw.specs,
                        item_index=index,
                        table=table,
                        registry=registry,
                    )
                except Exception as e:
                    log_scrape_event(
                        "item_error",
                        {
                            "message": f"[{category}] Error processing item {index} on page {page_number}: {e}",
                            "category": category,
                            "page": page_number,
                            "item_index": index,
                            "error": str(e),
                        },
                        level=logging.WARNING,
                        logger_name="extractor",
                    )
                    continue
                batch.append(record)
                scraped += 1

            log_scrape_event(
                "page_complete",
                {
                    "category": category,
                    "page": page_number,
                    "total_pages": num_pages,
                    "records": len(batch),
                },
                level=logging.DEBUG,
                logger_name="extractor",
            )
            yield batch

            if limit is not None and scraped >= limit:
                logger.info(f"Reached limit of {limit} products for category: {category}")
                break
    finally:
        # Worker pages are reused across jobs
        unblock_noise_requests(page, handler)

    logger.info(f"Finished scraping category: {category}")
