"""Data models for catalog records and extraction jobs."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Union

__all__ = [
    "Value",
    "Record",
    "PageBatch",
    "SerializationKind",
    "AttributeMapping",
    "JobStatus",
    "JobResult",
    "RunSummary",
]

Value = Union[str, int, float, bool, None]

# One catalog item. Always holds 'name' and 'price'; the rest depends on
# which mapped attributes the item's row carried.
Record = Dict[str, Value]

PageBatch = List[Record]


class SerializationKind(str, Enum):
    """How the raw text of an attribute is turned into a value."""

    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"
    CUSTOM = "custom"


@dataclass(frozen=True)
class AttributeMapping:
    """One row of the serialization map for a category."""

    raw_label: str
    field_name: str
    kind: SerializationKind


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    COMPLETED = "completed"
    INCOMPLETE = "incomplete"
    FAILED = "failed"


@dataclass
class JobResult:
    """Outcome of one category's extraction run."""

    category: str
    status: JobStatus = JobStatus.QUEUED
    records_written: int = 0
    pages_scraped: int = 0
    output_path: Optional[str] = None
    error: Optional[str] = None
    elapsed_s: float = 0.0


@dataclass
class RunSummary:
    """Result of a whole run across categories."""

    preflight_ok: bool
    results: List[JobResult] = field(default_factory=list)
    interrupted: bool = False

    @property
    def total_records(self) -> int:
        return sum(r.records_written for r in self.results)

    def count(self, status: JobStatus) -> int:
        return sum(1 for r in self.results if r.status == status)
