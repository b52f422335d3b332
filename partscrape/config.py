"""Configuration and constants for the scraper."""

import os
from pathlib import Path
from typing import Dict, List

from dotenv import load_dotenv

__all__ = [
    "BASE_URL",
    "SITE_ROOT",
    "ALL_CATEGORIES",
    "SELECTORS",
    "BLOCKED_RESOURCE_TYPES",
    "VIEWPORT",
    "HEADLESS",
    "MAX_CONCURRENCY",
    "JOB_TIMEOUT_S",
    "ELEMENT_TIMEOUT_MS",
    "NAVIGATION_TIMEOUT_MS",
    "NETWORK_IDLE_TIMEOUT_MS",
    "PREFLIGHT_TIMEOUT_MS",
    "STAGING_DIRECTORY",
    "SERIALIZATION_MAP_PATH",
]

load_dotenv()

SITE_ROOT = os.getenv("PARTSCRAPE_SITE_ROOT", "https://pcpartpicker.com")
BASE_URL = os.getenv("PARTSCRAPE_BASE_URL", f"{SITE_ROOT}/products")

# Catalog endpoints, in the order they are queued when none are given
ALL_CATEGORIES: List[str] = [
    "cpu",
    "cpu-cooler",
    "motherboard",
    "memory",
    "internal-hard-drive",
    "video-card",
    "case",
    "power-supply",
    "os",
    "monitor",
    "sound-card",
    "wired-network-card",
    "wireless-network-card",
    "headphones",
    "keyboard",
    "mouse",
    "speakers",
    "webcam",
    "case-accessory",
    "case-fan",
    "fan-controller",
    "thermal-paste",
    "external-hard-drive",
    "optical-drive",
    "ups",
]

# CSS selectors for the product listing pages
SELECTORS: Dict[str, str] = {
    "preflight": "nav",
    "pagination": ".pagination",
    "pagination_last": "li:last-child",
    "product_row": ".tr__product",
    "product_name": ".td__name .td__nameWrapper > p",
    "product_price": ".td__price",
    "spec_cell": "td.td__spec",
    "spec_label": ".specLabel",
}

# Requests for these resource types are aborted before they leave the browser
BLOCKED_RESOURCE_TYPES = frozenset({"font", "image", "stylesheet", "media"})

VIEWPORT = {"width": 1920, "height": 1080}
HEADLESS = os.getenv("PARTSCRAPE_HEADLESS", "True").lower() == "true"

# Worker pool
MAX_CONCURRENCY = int(os.getenv("PARTSCRAPE_MAX_CONCURRENCY", "5"))

# Timeouts
JOB_TIMEOUT_S = float(os.getenv("PARTSCRAPE_JOB_TIMEOUT_S", str(20 * 60)))  # 20 minutes
ELEMENT_TIMEOUT_MS = 5_000
NAVIGATION_TIMEOUT_MS = 30_000
NETWORK_IDLE_TIMEOUT_MS = 15_000
PREFLIGHT_TIMEOUT_MS = 5_000

# Output paths
STAGING_DIRECTORY = os.getenv("PARTSCRAPE_STAGING_DIR", "data-staging")
SERIALIZATION_MAP_PATH = Path(
    os.getenv(
        "PARTSCRAPE_SERIALIZATION_MAP",
        str(Path(__file__).parent / "data" / "serialization_map.json"),
    )
)
