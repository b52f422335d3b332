"""Bounded pool of browser workers running category jobs.

Each worker is a long-lived thread owning one browser page (Playwright
objects may only be used from the thread that created them). Jobs are
taken from a FIFO queue one at a time; a job that fails or runs out of
time only ends that job, and the worker moves on to the next one.
"""

import queue
import threading
from concurrent.futures import Future
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, ContextManager, Dict, Iterator, List, Optional, Union

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, sync_playwright

from partscrape.config import (
    HEADLESS,
    JOB_TIMEOUT_S,
    MAX_CONCURRENCY,
    NAVIGATION_TIMEOUT_MS,
    PREFLIGHT_TIMEOUT_MS,
    SELECTORS,
    SITE_ROOT,
    STAGING_DIRECTORY,
    VIEWPORT,
)
from partscrape.deadline import Deadline
from partscrape.exceptions import PreflightError
from partscrape.logging_config import get_logger, log_scrape_event
from partscrape.mapping import SerializationMap, get_serialization_map
from partscrape.models import JobResult, JobStatus, RunSummary
from partscrape.progress import ProgressFactory
from partscrape.shutdown import shutdown_requested
from partscrape.sink import run_category_job
from partscrape.url_validation import validate_url

__all__ = [
    "WorkerFactory",
    "playwright_page",
    "check_reachability",
    "WorkerPool",
    "run",
]

logger = get_logger("pool")

WorkerFactory = Callable[[], ContextManager[Page]]
JobFunction = Callable[[Optional[Page], Deadline], object]


@contextmanager
def playwright_page(headless: bool = HEADLESS) -> Iterator[Page]:
    """Launch a browser for the calling thread and yield a single page."""
    with sync_playwright() as pw:
        browser = pw.chromium.launch(headless=headless)
        try:
            yield browser.new_page(viewport=VIEWPORT)
        finally:
            browser.close()


def check_reachability(
    page: Page,
    url: str = SITE_ROOT,
    timeout_ms: float = PREFLIGHT_TIMEOUT_MS,
    deadline: Optional[Deadline] = None,
) -> None:
    """Load the site root and wait for its navigation bar.

    Raises:
        PreflightError: If the page does not load or the nav never appears
    """
    deadline = deadline or Deadline(None)
    url = validate_url(url)
    response = None
    try:
        response = page.goto(url, timeout=deadline.timeout_ms(NAVIGATION_TIMEOUT_MS))
        page.wait_for_selector(SELECTORS["preflight"], timeout=deadline.timeout_ms(timeout_ms))
    except PlaywrightError as e:
        status = response.status if response is not None else "?"
        raise PreflightError(
            f"Initial fetch test failed (HTTP {status}). "
            "Try running with --headful to see what the problem is."
        ) from e


@dataclass
class _Job:
    fn: JobFunction
    future: Future
    timeout: Optional[float]
    name: str


_STOP = object()


class WorkerPool:
    """Fixed-size pool of page workers fed from a FIFO job queue.

    Usage:
        with WorkerPool(max_concurrency=5) as pool:
            if pool.preflight():
                futures = [pool.queue(c) for c in categories]
        # leaving the block waits for idle() and then close()
    """

    def __init__(
        self,
        max_concurrency: int = MAX_CONCURRENCY,
        job_timeout: Optional[float] = JOB_TIMEOUT_S,
        worker_factory: Optional[WorkerFactory] = None,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self.max_concurrency = max_concurrency
        self.job_timeout = job_timeout
        self._worker_factory = worker_factory or playwright_page
        self._jobs: "queue.Queue" = queue.Queue()
        self._threads: List[threading.Thread] = []
        self._lock = threading.Lock()
        self._closed = False
        self._statuses: Dict[str, JobStatus] = {}

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def size(self) -> int:
        return len(self._threads)

    def start(self, count: Optional[int] = None) -> "WorkerPool":
        """Spawn workers until `count` (default: max_concurrency) are running."""
        target = min(count or self.max_concurrency, self.max_concurrency)
        with self._lock:
            if self._closed:
                raise RuntimeError("WorkerPool is closed")
            while len(self._threads) < target:
                thread = threading.Thread(
                    target=self._worker_loop,
                    name=f"worker-{len(self._threads) + 1}",
                    daemon=True,
                )
                self._threads.append(thread)
                thread.start()
        return self

    def idle(self) -> None:
        """Block until the queue is empty and every worker is idle."""
        self._jobs.join()

    def close(self) -> None:
        """Stop the workers and release their pages.

        Stop markers queue behind pending jobs, so close() after idle()
        returns as soon as the browsers are shut down.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            threads = list(self._threads)

        for _ in threads:
            self._jobs.put(_STOP)
        for thread in threads:
            thread.join()
        logger.debug(f"Closed pool of {len(threads)} workers")

    def __enter__(self) -> "WorkerPool":
        return self.start()

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if exc_type is None:
                self.idle()
        finally:
            self.close()

    # -------------------------------------------------------------------------
    # Workers
    # -------------------------------------------------------------------------

    def _worker_loop(self) -> None:
        name = threading.current_thread().name
        stopped = False
        try:
            with self._worker_factory() as page:
                logger.debug(f"{name} ready")
                self._serve(page)
                stopped = True
        except Exception as e:
            if stopped:
                logger.warning(f"{name} failed to release its page: {e}")
                return
            logger.error(f"{name} could not open a browser page: {e}")
            # Keep draining so idle() cannot hang on a dead worker
            self._serve(None, startup_error=e)

    def _serve(self, page: Optional[Page], startup_error: Optional[Exception] = None) -> None:
        while True:
            job = self._jobs.get()
            try:
                if job is _STOP:
                    return
                self._run_job(job, page, startup_error)
            finally:
                self._jobs.task_done()

    def _run_job(self, job: _Job, page: Optional[Page], startup_error: Optional[Exception]) -> None:
        if not job.future.set_running_or_notify_cancel():
            return
        if startup_error is not None:
            job.future.set_exception(startup_error)
            return

        deadline = Deadline(job.timeout)
        try:
            job.future.set_result(job.fn(page, deadline))
        except Exception as e:
            logger.error(f"Job {job.name} raised {type(e).__name__}: {e}")
            job.future.set_exception(e)

    # -------------------------------------------------------------------------
    # Jobs
    # -------------------------------------------------------------------------

    def submit(self, fn: JobFunction, timeout: Optional[float] = None, name: str = "job") -> Future:
        """Queue a function to run on the next idle worker as fn(page, deadline)."""
        if self._closed:
            raise RuntimeError("WorkerPool is closed")
        if not self._threads:
            self.start()
        future: Future = Future()
        self._jobs.put(_Job(fn=fn, future=future, timeout=timeout, name=name))
        return future

    def preflight(self, url: str = SITE_ROOT, timeout_ms: float = PREFLIGHT_TIMEOUT_MS) -> bool:
        """Check on one worker that the site root is reachable."""
        future = self.submit(
            lambda page, deadline: check_reachability(page, url, timeout_ms, deadline),
            timeout=(NAVIGATION_TIMEOUT_MS + timeout_ms) / 1000,
            name="preflight",
        )
        try:
            future.result()
        except Exception as e:
            logger.error(str(e))
            log_scrape_event("preflight_failed", {"url": url, "error": str(e)}, logger_name="pool")
            return False
        logger.info(f"Pre-flight check passed: {url}")
        return True

    def queue(
        self,
        category: str,
        limit: Optional[int] = None,
        staging_dir: Union[str, Path] = STAGING_DIRECTORY,
        progress_factory: Optional[ProgressFactory] = None,
        table: Optional[SerializationMap] = None,
    ) -> Future:
        """Queue one category job. The future resolves to its JobResult."""

        def job(page: Optional[Page], deadline: Deadline) -> JobResult:
            if shutdown_requested():
                return JobResult(category=category, error="not started: shutdown requested")
            self._set_status(category, JobStatus.RUNNING)
            try:
                result = run_category_job(
                    category,
                    page,
                    deadline=deadline,
                    limit=limit,
                    staging_dir=staging_dir,
                    progress_factory=progress_factory,
                    table=table,
                )
            except Exception as e:
                logger.error(f"[{category}] Could not save results: {e}")
                result = JobResult(category=category, status=JobStatus.FAILED, error=str(e))
            self._set_status(category, result.status)
            return result

        self._set_status(category, JobStatus.QUEUED)
        future = self.submit(job, timeout=self.job_timeout, name=category)
        future.add_done_callback(lambda f: self._settle_status(category, f))
        return future

    def _set_status(self, category: str, status: JobStatus) -> None:
        with self._lock:
            self._statuses[category] = status

    def _settle_status(self, category: str, future: Future) -> None:
        # jobs that never ran (worker startup failure) end as failed
        if future.exception() is not None:
            self._set_status(category, JobStatus.FAILED)

    def status(self, category: str) -> Optional[JobStatus]:
        """Lifecycle state of a queued category: queued, running or its outcome."""
        with self._lock:
            return self._statuses.get(category)


def _result_of(category: str, future: Future) -> JobResult:
    try:
        return future.result()
    except Exception as e:
        return JobResult(category=category, status=JobStatus.FAILED, error=str(e))


def run(
    categories: List[str],
    max_concurrency: int = MAX_CONCURRENCY,
    job_timeout: Optional[float] = JOB_TIMEOUT_S,
    limit: Optional[int] = None,
    staging_dir: Union[str, Path] = STAGING_DIRECTORY,
    progress_factory: Optional[ProgressFactory] = None,
    worker_factory: Optional[WorkerFactory] = None,
    site_root: str = SITE_ROOT,
    table: Optional[SerializationMap] = None,
) -> RunSummary:
    """Extract every category with bounded parallelism.

    Only one worker is started for the pre-flight check; the rest of the
    pool is brought up once the site has answered. If the check fails no
    category is queued. The serialization map is loaded before any worker
    starts.

    Raises:
        ConfigurationError: If the serialization map cannot be loaded
    """
    table = table if table is not None else get_serialization_map()
    pool = WorkerPool(max_concurrency, job_timeout, worker_factory)
    try:
        pool.start(1)
        if not pool.preflight(site_root):
            return RunSummary(preflight_ok=False)

        pool.start()
        logger.info(
            f"Queueing {len(categories)} categories on {pool.size} workers "
            f"(limit: {limit if limit is not None else 'none'})"
        )
        futures = [
            pool.queue(
                category,
                limit=limit,
                staging_dir=staging_dir,
                progress_factory=progress_factory,
                table=table,
            )
            for category in categories
        ]
        pool.idle()
    finally:
        pool.close()

    summary = RunSummary(
        preflight_ok=True,
        results=[_result_of(category, future) for category, future in zip(categories, futures)],
        interrupted=shutdown_requested(),
    )
    log_scrape_event("run_complete", {
        "categories": len(summary.results),
        "completed": summary.count(JobStatus.COMPLETED),
        "incomplete": summary.count(JobStatus.INCOMPLETE),
        "failed": summary.count(JobStatus.FAILED),
        "records_written": summary.total_records,
        "interrupted": summary.interrupted,
    }, logger_name="pool")
    return summary
