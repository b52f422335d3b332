"""Concurrent catalog scraper for PC part listings."""

__version__ = "0.1.0"

# Re-export main components for convenient imports
from partscrape.config import ALL_CATEGORIES, BASE_URL, STAGING_DIRECTORY
from partscrape.mapping import get_serialization_map, load_serialization_map, resolve
from partscrape.models import (
    AttributeMapping,
    JobResult,
    JobStatus,
    Record,
    RunSummary,
    SerializationKind,
)
from partscrape.extractor import scrape
from partscrape.pool import WorkerPool, run
from partscrape.serializers import build_record, custom_serialize, generic_serialize, serialize_number
from partscrape.sink import ResultSink, run_category_job

__all__ = [
    # Version
    "__version__",
    # Config
    "ALL_CATEGORIES",
    "BASE_URL",
    "STAGING_DIRECTORY",
    # Models
    "AttributeMapping",
    "JobResult",
    "JobStatus",
    "Record",
    "RunSummary",
    "SerializationKind",
    # Mapping and serializers
    "get_serialization_map",
    "load_serialization_map",
    "resolve",
    "build_record",
    "custom_serialize",
    "generic_serialize",
    "serialize_number",
    # Pipeline
    "scrape",
    "ResultSink",
    "run_category_job",
    "WorkerPool",
    "run",
]
