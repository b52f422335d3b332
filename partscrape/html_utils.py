"""HTML parsing helpers for rendered catalog listing pages."""

import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from bs4 import BeautifulSoup, NavigableString, Tag

from partscrape.config import SELECTORS
from partscrape.exceptions import ItemExtractionError

__all__ = [
    "RawItem",
    "make_soup",
    "extract_total_pages",
    "extract_product_rows",
    "extract_item",
]


@dataclass
class RawItem:
    """Unserialized texts of one catalog row."""

    name: str
    price_text: Optional[str]
    specs: List[Tuple[str, Optional[str]]] = field(default_factory=list)


def make_soup(html: Union[str, BeautifulSoup]) -> BeautifulSoup:
    if isinstance(html, BeautifulSoup):
        return html
    return BeautifulSoup(html, "html.parser")


def extract_total_pages(html: Union[str, BeautifulSoup]) -> Optional[int]:
    """Read the page count from the last entry of the pagination control.

    Returns None if the control is missing or its last entry is not a number.
    """
    soup = make_soup(html)
    pagination = soup.select_one(SELECTORS["pagination"])
    if not pagination:
        return None

    last = pagination.select_one(SELECTORS["pagination_last"])
    if not last:
        return None

    match = re.search(r"\d+", last.get_text(" ", strip=True))
    if not match:
        return None
    return int(match.group(0))


def extract_product_rows(html: Union[str, BeautifulSoup]) -> List[Tag]:
    """Return the product row elements of a listing page in display order."""
    return make_soup(html).select(SELECTORS["product_row"])


def _cell_value(cell: Tag, label: Tag) -> Optional[str]:
    """Text of the node following the label inside a spec cell."""
    children = [c for c in cell.children if not (isinstance(c, NavigableString) and not c.strip())]
    try:
        index = children.index(label)
    except ValueError:
        return None
    if index + 1 >= len(children):
        return None
    node = children[index + 1]
    if isinstance(node, Tag):
        return node.get_text(" ")
    return str(node)


def extract_item(row: Tag) -> RawItem:
    """Pull name, price text and labeled spec cells out of a product row.

    Raises:
        ItemExtractionError: If the row has no name or a spec cell has no label
    """
    name_el = row.select_one(SELECTORS["product_name"])
    if name_el is None:
        raise ItemExtractionError("product row has no name element")
    name = name_el.get_text("\n", strip=True).replace("\n", " ")

    price_el = row.select_one(SELECTORS["product_price"])
    price_text = price_el.get_text(" ", strip=True) if price_el is not None else None

    specs: List[Tuple[str, Optional[str]]] = []
    for cell in row.select(SELECTORS["spec_cell"]):
        label = cell.select_one(SELECTORS["spec_label"])
        if label is None:
            raise ItemExtractionError(f"spec cell without label in '{name}'")
        specs.append((label.get_text(strip=True), _cell_value(cell, label)))

    return RawItem(name=name, price_text=price_text, specs=specs)
