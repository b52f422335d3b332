"""Tests for page-by-page extraction."""

import logging

import pytest
from playwright.sync_api import Error as PlaywrightError

from conftest import FakePage, FakeRoute, category_pages, listing_page, numbered_rows, product_row
from partscrape.deadline import Deadline
from partscrape.exceptions import ConfigurationError, JobTimeoutError, PaginationError
from partscrape.extractor import (
    block_noise_requests,
    get_num_pages,
    scrape,
    unblock_noise_requests,
)
from partscrape.html_utils import extract_item, extract_product_rows, extract_total_pages


class TestHtmlParsing:
    """Parsing rendered listing HTML."""

    def test_total_pages_from_last_pagination_entry(self):
        assert extract_total_pages(listing_page([], total_pages=12)) == 12

    def test_total_pages_without_control(self):
        assert extract_total_pages(listing_page([], total_pages=None)) is None

    def test_extract_item_texts(self):
        html = listing_page([
            product_row("AMD\nRyzen 7 7800X3D", "$449.00", [("Core Count", "8"), ("TDP", "120 W")]),
        ])
        row = extract_product_rows(html)[0]
        item = extract_item(row)
        assert item.name == "AMD Ryzen 7 7800X3D"
        assert item.price_text.startswith("$449.00")
        assert item.specs == [("Core Count", "8"), ("TDP", "120 W")]

    def test_spec_cell_without_value(self):
        row = extract_product_rows(listing_page([product_row("X", "$1", [("TDP", "")])]))[0]
        assert extract_item(row).specs == [("TDP", None)]


class TestBlockNoiseRequests:

    @pytest.mark.parametrize("resource_type", ["font", "image", "stylesheet"])
    def test_noise_is_aborted(self, resource_type):
        page = FakePage()
        block_noise_requests(page)
        _, handler = page.routes[0]
        route = FakeRoute(resource_type)
        handler(route)
        assert route.outcome == "aborted"

    @pytest.mark.parametrize("resource_type", ["document", "script", "xhr", "fetch"])
    def test_other_requests_continue(self, resource_type):
        page = FakePage()
        block_noise_requests(page)
        _, handler = page.routes[0]
        route = FakeRoute(resource_type)
        handler(route)
        assert route.outcome == "continued"

    def test_unblock_removes_handler(self):
        page = FakePage()
        handler = block_noise_requests(page)
        unblock_noise_requests(page, handler)
        assert page.routes == []

    def test_filter_is_removed_when_scrape_ends(self, cpu_table):
        page = FakePage({"cpu": category_pages([numbered_rows(n, 1) for n in (1, 2)])})
        batches = scrape("cpu", page, table=cpu_table)
        next(batches)
        assert len(page.routes) == 1
        list(batches)
        assert page.routes == []

    def test_filters_do_not_pile_up_on_a_reused_page(self, cpu_table):
        page = FakePage({
            "cpu": category_pages([numbered_rows(1, 1)]),
            "memory": {1: listing_page(numbered_rows(1, 1), total_pages=None)},
        })
        list(scrape("cpu", page, table=cpu_table))
        with pytest.raises(PaginationError):
            list(scrape("memory", page, table=cpu_table))
        list(scrape("cpu", page, table=cpu_table))
        assert page.routes == []


class TestGetNumPages:

    def test_reads_count_from_first_page(self):
        page = FakePage({"cpu": category_pages([numbered_rows(1, 1)] * 4)})
        assert get_num_pages("cpu", page) == 4
        assert page.visited == [("cpu", 1)]

    def test_missing_pagination_is_job_failure(self):
        page = FakePage({"cpu": {1: listing_page(numbered_rows(1, 2), total_pages=None)}})
        with pytest.raises(PaginationError, match="cpu"):
            get_num_pages("cpu", page)

    def test_empty_category_still_fetches_first_page(self):
        page = FakePage({"ups": {1: listing_page([], total_pages=1)}})
        batches = list(scrape("ups", page))
        assert batches == [[]]
        assert page.pages_visited("ups") == [1]


class TestScrape:
    """The lazy per-page batch sequence."""

    def test_one_batch_per_page_in_order(self, cpu_table):
        page = FakePage({"cpu": category_pages([numbered_rows(n, 2) for n in (1, 2, 3)])})

        batches = list(scrape("cpu", page, table=cpu_table))

        assert len(batches) == 3
        assert [[r["name"] for r in b] for b in batches] == [
            ["Part 1-0", "Part 1-1"],
            ["Part 2-0", "Part 2-1"],
            ["Part 3-0", "Part 3-1"],
        ]
        assert page.pages_visited("cpu") == [1, 2, 3]

    def test_records_are_typed(self, cpu_table):
        page = FakePage({"cpu": category_pages([numbered_rows(1, 2)])})
        records = list(scrape("cpu", page, table=cpu_table))[0]
        assert records[1] == {"name": "Part 1-1", "price": 11.99, "core_count": 2}

    def test_is_lazy(self, cpu_table):
        page = FakePage({"cpu": category_pages([numbered_rows(n, 1) for n in (1, 2, 3)])})
        batches = scrape("cpu", page, table=cpu_table)
        assert page.visited == []
        next(batches)
        assert page.pages_visited("cpu") == [1]

    def test_reports_total_once(self, cpu_table):
        page = FakePage({"cpu": category_pages([numbered_rows(n, 1) for n in (1, 2)])})
        totals = []
        list(scrape("cpu", page, on_total=totals.append, table=cpu_table))
        assert totals == [2]

    def test_bad_item_is_dropped(self, cpu_table, caplog):
        rows = [product_row("Good 1"), product_row(None), product_row("Good 2")]
        page = FakePage({"cpu": category_pages([rows])})

        with caplog.at_level(logging.WARNING, logger="partscrape"):
            batches = list(scrape("cpu", page, table=cpu_table))

        assert [r["name"] for r in batches[0]] == ["Good 1", "Good 2"]
        assert "Error processing item 1 on page 1" in caplog.text

    def test_throwing_serializer_drops_only_that_item(self, cpu_table):
        rows = [
            product_row("A", specs=[("Integrated Graphics", "Radeon")]),
            product_row("B", specs=[("Integrated Graphics", "boom")]),
        ]
        page = FakePage({"cpu": category_pages([rows])})

        def explode(text):
            if text == "boom":
                raise ValueError("cannot parse")
            return text

        batches = list(scrape(
            "cpu", page, table=cpu_table, registry={("cpu", "integrated_graphics"): explode}
        ))
        assert [r["name"] for r in batches[0]] == ["A"]

    def test_navigation_error_propagates_after_earlier_batches(self, cpu_table):
        page = FakePage(
            {"cpu": category_pages([numbered_rows(n, 2) for n in (1, 2, 3)])},
            fail_on={("cpu", 3)},
        )
        batches = scrape("cpu", page, table=cpu_table)
        assert len(next(batches)) == 2
        assert len(next(batches)) == 2
        with pytest.raises(PlaywrightError):
            next(batches)

    def test_unloadable_map_fails_before_any_item(self, broken_map):
        page = FakePage({"cpu": category_pages([numbered_rows(n, 3) for n in (1, 2)])})
        with pytest.raises(ConfigurationError):
            list(scrape("cpu", page))
        assert page.visited == []

    def test_same_pages_give_equal_records(self, cpu_table):
        catalog = {"cpu": category_pages([numbered_rows(n, 3) for n in (1, 2)])}
        first = list(scrape("cpu", FakePage(catalog), table=cpu_table))
        second = list(scrape("cpu", FakePage(catalog), table=cpu_table))
        assert first == second


class TestLimit:
    """The -n cap applies to the whole category."""

    def test_stops_mid_page_without_fetching_more(self, cpu_table):
        page = FakePage({"cpu": category_pages([numbered_rows(n, 2) for n in (1, 2, 3)])})

        batches = list(scrape("cpu", page, limit=3, table=cpu_table))

        assert [len(b) for b in batches] == [2, 1]
        assert page.pages_visited("cpu") == [1, 2]

    def test_limit_reached_at_page_end(self, cpu_table):
        page = FakePage({"cpu": category_pages([numbered_rows(n, 2) for n in (1, 2, 3)])})

        batches = list(scrape("cpu", page, limit=2, table=cpu_table))

        assert [len(b) for b in batches] == [2]
        assert page.pages_visited("cpu") == [1]

    def test_limit_larger_than_catalog(self, cpu_table):
        page = FakePage({"cpu": category_pages([numbered_rows(n, 2) for n in (1, 2)])})
        batches = list(scrape("cpu", page, limit=100, table=cpu_table))
        assert sum(len(b) for b in batches) == 4

    def test_dropped_items_do_not_count(self, cpu_table):
        rows = [product_row(None), product_row("A"), product_row("B")]
        page = FakePage({"cpu": category_pages([rows, numbered_rows(2, 2)])})
        batches = list(scrape("cpu", page, limit=2, table=cpu_table))
        assert [r["name"] for r in batches[0]] == ["A", "B"]
        assert len(batches) == 1


class TestDeadline:

    def test_expired_deadline_stops_before_navigation(self, cpu_table):
        now = [0.0]
        deadline = Deadline(60, clock=lambda: now[0])
        page = FakePage({"cpu": category_pages([numbered_rows(n, 1) for n in (1, 2, 3)])})

        batches = scrape("cpu", page, deadline=deadline, table=cpu_table)
        next(batches)
        now[0] = 61.0
        with pytest.raises(JobTimeoutError):
            next(batches)
        assert page.pages_visited("cpu") == [1]
