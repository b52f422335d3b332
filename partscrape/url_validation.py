"""URL building and validation for catalog pages."""

import re
from typing import FrozenSet, Optional
from urllib.parse import urlparse

from partscrape.config import ALL_CATEGORIES, BASE_URL, SITE_ROOT

__all__ = [
    "URLValidationError",
    "ALLOWED_DOMAINS",
    "sanitize_url",
    "validate_url",
    "validate_category",
    "category_url",
]


class URLValidationError(ValueError):
    """Raised when URL validation fails."""
    pass


def _host(url: str) -> str:
    return urlparse(url).netloc.lower().split(":")[0]


# Domains the browser is pointed at
ALLOWED_DOMAINS: FrozenSet[str] = frozenset(
    {_host(SITE_ROOT), _host(BASE_URL)} - {""}
)

DANGEROUS_SCHEMES = {"javascript", "data", "vbscript", "file"}

CATEGORY_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


def sanitize_url(url: str) -> str:
    """Strip whitespace and control characters from a URL."""
    if not url:
        return ""
    url = url.strip()
    return re.sub(r"[\x00-\x1f\x7f-\x9f]", "", url)


def validate_url(url: str, allowed_domains: Optional[FrozenSet[str]] = None) -> str:
    """Validate a URL before navigating to it.

    Returns:
        The sanitized URL

    Raises:
        URLValidationError: If the URL is malformed or points outside the catalog site
    """
    url = sanitize_url(url)
    if not url:
        raise URLValidationError("URL is empty")

    parsed = urlparse(url)
    scheme = parsed.scheme.lower()
    if scheme in DANGEROUS_SCHEMES:
        raise URLValidationError(f"Dangerous URL scheme: {scheme}")
    if scheme not in ("http", "https"):
        raise URLValidationError(f"Invalid URL scheme: {scheme}")

    domain = _host(url)
    if not domain:
        raise URLValidationError("URL has no domain")

    domains = allowed_domains if allowed_domains is not None else ALLOWED_DOMAINS
    if domains and domain not in domains:
        raise URLValidationError(
            f"URL domain '{domain}' not in allowed domains: {sorted(domains)}"
        )

    return url


def validate_category(category: str, strict: bool = True) -> str:
    """Check that a category token is well formed (and known, when strict)."""
    category = category.strip().lower()
    if not CATEGORY_RE.match(category):
        raise URLValidationError(f"Malformed category: '{category}'")
    if strict and category not in ALL_CATEGORIES:
        raise URLValidationError(
            f"Unknown category '{category}'. Available: {', '.join(ALL_CATEGORIES)}"
        )
    return category


def category_url(category: str, page_number: int = 1, base_url: str = BASE_URL) -> str:
    """Build the listing URL for one page of a category.

    Page 1 is the bare category URL; later pages use the '#page=N' fragment
    the site's client-side pagination reads.
    """
    category = validate_category(category, strict=False)
    if page_number < 1:
        raise URLValidationError(f"Page numbers start at 1, got {page_number}")
    url = f"{base_url.rstrip('/')}/{category}/"
    if page_number > 1:
        url += f"#page={page_number}"
    return url
