"""Exceptions raised by the scraper.

Errors fall into three tiers. ``PreflightError`` aborts the whole run,
``PaginationError`` and ``JobTimeoutError`` abort a single category, and
``ItemExtractionError`` drops a single catalog item.
"""

__all__ = [
    "ScrapeError",
    "ConfigurationError",
    "PreflightError",
    "PaginationError",
    "JobTimeoutError",
    "ItemExtractionError",
]


class ScrapeError(Exception):
    """Base class for scraper errors."""
    pass


class ConfigurationError(ScrapeError):
    """Raised when the serialization map is malformed."""
    pass


class PreflightError(ScrapeError):
    """Raised when the site root is not reachable before any job starts."""
    pass


class PaginationError(ScrapeError):
    """Raised when the page count of a category cannot be determined."""

    def __init__(self, category: str, message: str):
        super().__init__(f"[{category}] {message}")
        self.category = category


class JobTimeoutError(ScrapeError):
    """Raised at a suspension point once a job's deadline has passed."""
    pass


class ItemExtractionError(ScrapeError):
    """Raised when one catalog item is missing required elements."""
    pass
