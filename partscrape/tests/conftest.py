"""Shared test fixtures and fake browser pages for the scraper test suite."""

import re
from contextlib import contextmanager
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple
from urllib.parse import urlparse

import pytest
from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from partscrape import mapping
from partscrape.mapping import parse_serialization_map
from partscrape.shutdown import get_shutdown_handler


# =============================================================================
# HTML builders
# =============================================================================

def product_row(
    name: Optional[str],
    price: str = "$10.00",
    specs: Iterable[Tuple[str, str]] = (),
) -> str:
    """Build one listing row the way the catalog renders it."""
    cells = "".join(
        f'<td class="td__spec td__spec--{i}"><h6 class="specLabel">{label}</h6>{value}</td>'
        for i, (label, value) in enumerate(specs, start=1)
    )
    name_cell = (
        f'<td class="td__name"><a href="#"><div class="td__nameWrapper"><p>{name}</p></div></a></td>'
        if name is not None
        else '<td class="td__name"></td>'
    )
    return (
        f'<tr class="tr__product">{name_cell}{cells}'
        f'<td class="td__price">{price}<button>Add</button></td></tr>'
    )


def listing_page(rows: Sequence[str], total_pages: Optional[int] = 1) -> str:
    """Build a listing page; total_pages=None leaves out the pagination control."""
    pagination = ""
    if total_pages is not None:
        items = "".join(f"<li><a href='#page={n}'>{n}</a></li>" for n in range(1, total_pages + 1))
        pagination = f'<ul class="pagination">{items}</ul>'
    return (
        "<html><body><nav>menu</nav>"
        f"<table><tbody>{''.join(rows)}</tbody></table>"
        f"{pagination}</body></html>"
    )


def category_pages(rows_per_page: Sequence[Sequence[str]]) -> Dict[int, str]:
    """Map page numbers to listing HTML for a multi-page category."""
    total = len(rows_per_page)
    return {n: listing_page(rows, total) for n, rows in enumerate(rows_per_page, start=1)}


def numbered_rows(page_number: int, count: int) -> List[str]:
    return [
        product_row(f"Part {page_number}-{i}", f"${page_number}{i}.99", [("Core Count", str(i + 1))])
        for i in range(count)
    ]


# =============================================================================
# Fake browser objects
# =============================================================================

class FakeResponse:
    def __init__(self, status: int = 200):
        self.status = status


class FakeRequest:
    def __init__(self, resource_type: str):
        self.resource_type = resource_type


class FakeRoute:
    def __init__(self, resource_type: str):
        self.request = FakeRequest(resource_type)
        self.outcome: Optional[str] = None

    def abort(self) -> None:
        self.outcome = "aborted"

    def continue_(self) -> None:
        self.outcome = "continued"


class FakePage:
    """Stands in for a Playwright page serving canned HTML.

    Args:
        catalog: category -> {page number: html}
        root_html: HTML served for the site root
        fail_on: (category, page) pairs whose navigation raises
        root_status: HTTP status reported for the site root
    """

    def __init__(
        self,
        catalog: Optional[Dict[str, Dict[int, str]]] = None,
        root_html: str = "<html><body><nav>menu</nav></body></html>",
        fail_on: Optional[Set[Tuple[str, int]]] = None,
        root_status: int = 200,
    ):
        self.catalog = catalog or {}
        self.root_html = root_html
        self.fail_on = fail_on or set()
        self.root_status = root_status
        self.visited: List[Tuple[str, int]] = []
        self.routes: List[Tuple[str, object]] = []
        self.closed = False
        self._html = ""

    def route(self, pattern, handler) -> None:
        self.routes.append((pattern, handler))

    def unroute(self, pattern, handler=None) -> None:
        self.routes = [
            (p, h) for p, h in self.routes if not (p == pattern and handler in (None, h))
        ]

    def goto(self, url: str, timeout: Optional[float] = None):
        parsed = urlparse(url)
        path = parsed.path.strip("/")
        if not path:
            self.visited.append(("root", 1))
            self._html = self.root_html
            return FakeResponse(self.root_status)

        category = path.split("/")[-1]
        match = re.match(r"page=(\d+)", parsed.fragment)
        page_number = int(match.group(1)) if match else 1
        self.visited.append((category, page_number))

        if (category, page_number) in self.fail_on:
            raise PlaywrightError(f"net::ERR_CONNECTION_RESET at {url}")

        self._html = self.catalog.get(category, {}).get(page_number, "<html><body></body></html>")
        return FakeResponse(200)

    def wait_for_selector(self, selector: str, timeout: Optional[float] = None):
        element = BeautifulSoup(self._html, "html.parser").select_one(selector)
        if element is None:
            raise PlaywrightTimeoutError(f"Timeout {timeout}ms exceeded waiting for '{selector}'")
        return element

    def wait_for_load_state(self, state: str = "load", timeout: Optional[float] = None) -> None:
        pass

    def content(self) -> str:
        return self._html

    def pages_visited(self, category: str) -> List[int]:
        return [n for c, n in self.visited if c == category]


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def reset_shutdown():
    """Each test starts without a pending shutdown request."""
    handler = get_shutdown_handler()
    handler.reset()
    yield
    handler.reset()


@pytest.fixture
def cpu_table():
    return parse_serialization_map({
        "cpu": {
            "Core Count": ["core_count", "number"],
            "Microarchitecture": ["microarchitecture", "string"],
            "Integrated Graphics": ["integrated_graphics", "custom"],
            "SMT": ["smt", "boolean"],
        },
    })


@pytest.fixture
def staging_dir(tmp_path):
    return tmp_path / "staging"


@pytest.fixture
def page_factory():
    """Build a worker factory whose pages all serve the same canned site."""

    def build(**page_kwargs):
        opened: List[FakePage] = []

        @contextmanager
        def factory():
            page = FakePage(**page_kwargs)
            opened.append(page)
            try:
                yield page
            finally:
                page.closed = True

        factory.opened = opened
        return factory

    return build


@pytest.fixture
def broken_map(tmp_path, monkeypatch):
    """Point the process-wide serialization map at an unreadable file."""
    path = tmp_path / "serialization_map.json"
    path.write_text("{not json", encoding="utf-8")
    monkeypatch.setattr(mapping, "SERIALIZATION_MAP_PATH", path)
    monkeypatch.setattr(mapping, "_cached_map", None)
    return path
