"""Accumulation and flushing of a category's records.

Every job writes at most one artifact:

* ``<category>.json`` when extraction ran to the end,
* ``<category>.incomplete.json`` when it aborted after extracting something,
* nothing when it aborted before the first record.
"""

import json
import os
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from playwright.sync_api import Page

from partscrape.config import STAGING_DIRECTORY
from partscrape.deadline import Deadline
from partscrape.extractor import scrape
from partscrape.logging_config import get_logger, log_scrape_event
from partscrape.mapping import SerializationMap
from partscrape.models import JobResult, JobStatus, PageBatch, Record
from partscrape.progress import ProgressFactory, make_progress_factory
from partscrape.serializers import CustomSerializer

__all__ = ["ResultSink", "run_category_job"]

logger = get_logger("sink")


class ResultSink:
    """Collects the records of one category in batch order."""

    def __init__(self, category: str, staging_dir: Union[str, Path] = STAGING_DIRECTORY):
        self.category = category
        self.output_dir = Path(staging_dir) / "json"
        self.records: List[Record] = []
        self.pages = 0

    @property
    def complete_path(self) -> Path:
        return self.output_dir / f"{self.category}.json"

    @property
    def incomplete_path(self) -> Path:
        return self.output_dir / f"{self.category}.incomplete.json"

    def extend(self, batch: PageBatch) -> None:
        self.records.extend(batch)
        self.pages += 1

    def _write(self, path: Path) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_name(path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.records, f, ensure_ascii=False)
        os.replace(tmp_path, path)

    def _discard(self, path: Path) -> None:
        if path.exists():
            path.unlink()

    def finalize(self, error: Optional[BaseException] = None) -> JobResult:
        """Write the artifact the outcome calls for and describe the result."""
        result = JobResult(
            category=self.category,
            pages_scraped=self.pages,
            error=str(error) if error is not None else None,
        )

        if error is None:
            self._write(self.complete_path)
            self._discard(self.incomplete_path)
            result.status = JobStatus.COMPLETED
            result.output_path = str(self.complete_path)
        elif self.records:
            self._write(self.incomplete_path)
            result.status = JobStatus.INCOMPLETE
            result.output_path = str(self.incomplete_path)
        else:
            result.status = JobStatus.FAILED
            return result

        result.records_written = len(self.records)
        return result


def run_category_job(
    category: str,
    page: Page,
    deadline: Optional[Deadline] = None,
    limit: Optional[int] = None,
    staging_dir: Union[str, Path] = STAGING_DIRECTORY,
    progress_factory: Optional[ProgressFactory] = None,
    table: Optional[SerializationMap] = None,
    registry: Optional[Dict[Tuple[str, str], CustomSerializer]] = None,
) -> JobResult:
    """Extract one category into its artifact.

    Extraction errors never escape: they are logged and reflected in the
    returned result, and the sink salvages whatever was extracted first.
    """
    started = time.monotonic()
    sink = ResultSink(category, staging_dir)
    progress = (progress_factory or make_progress_factory(False))(category)
    error: Optional[BaseException] = None

    log_scrape_event("category_start", {
        "category": category,
        "limit": limit,
        "timeout_s": deadline.seconds if deadline else None,
    }, logger_name="sink")

    try:
        for batch in scrape(
            category,
            page,
            limit=limit,
            deadline=deadline,
            on_total=progress.start,
            table=table,
            registry=registry,
        ):
            sink.extend(batch)
            progress.increment()
    except (Exception, KeyboardInterrupt) as e:
        error = e
        logger.warning(f"[{category}] Aborted unexpectedly: {type(e).__name__}: {e}")
    finally:
        progress.stop()
        result = sink.finalize(error)
        result.elapsed_s = time.monotonic() - started

    log_scrape_event("category_complete", {
        "message": (
            f"[{category}] {result.status.value}: {result.records_written} records "
            f"from {result.pages_scraped} pages"
        ),
        "category": category,
        "status": result.status.value,
        "records_written": result.records_written,
        "pages_scraped": result.pages_scraped,
        "output_path": result.output_path,
        "error": result.error,
        "elapsed_s": round(result.elapsed_s, 2),
    }, logger_name="sink")
    return result
