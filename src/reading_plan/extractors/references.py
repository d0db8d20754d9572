"""Scripture reference extraction from a day page.

Plan pages are not consistent, so extraction is an ordered chain of
strategies. Each strategy is a pure function taking the parsed page and
returning a list of normalized references, or None. The first strategy that
returns something wins:

1. scripture_anchors - links under the "Scripture" heading
2. reading_selectors - dedicated reading containers, then code/pre blocks
3. scripture_window - regex over the text right after the word "scripture"
4. page_scan - regex over the whole page, then a line heuristic
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple
from urllib.parse import urlparse

from bs4 import BeautifulSoup, Tag

from reading_plan.core.scraping.parser import flatten_text, load_soup, text_lines
from reading_plan.extractors.books import (
    find_reading_line,
    normalize_readings,
    normalize_reference,
    scan_references,
    split_readings,
    unique_references,
)

logger = logging.getLogger(__name__)

SCRIPTURE_LINK_PREFIX = "/bible/"
MAX_ANCESTOR_LEVELS = 5

READING_SELECTORS = (
    "[data-test=readings]",
    ".readings",
    ".reading-list",
    ".plan-readings",
    "#readings",
    "main .readings",
    "article .readings",
    # plan pages often ship the list in a predictable code block
    "pre code",
    "code",
    "pre",
)

WINDOW_BOUNDARIES = ("start this plan", "about this plan", "day ")
WINDOW_FALLBACK_CHARS = 600


@dataclass(frozen=True)
class ReferenceStrategy:
    name: str
    run: Callable[[BeautifulSoup], Optional[List[str]]]


def _is_scripture_link(a: Tag) -> bool:
    href = a.get("href")
    if not isinstance(href, str):
        return False
    return urlparse(href.strip()).path.startswith(SCRIPTURE_LINK_PREFIX)


def _scripture_links(node: Tag) -> List[Tag]:
    return [a for a in node.find_all("a", href=True) if _is_scripture_link(a)]


def from_scripture_anchors(soup: BeautifulSoup) -> Optional[List[str]]:
    headings = [
        h
        for h in soup.find_all(["h1", "h2", "h3", "h4"])
        if "scripture" in h.get_text().lower()
    ]
    for heading in headings:
        container = None
        node = heading
        for _ in range(MAX_ANCESTOR_LEVELS):
            node = node.parent
            if node is None or not isinstance(node, Tag):
                break
            if _scripture_links(node):
                container = node
                break
        if container is None:
            continue
        refs = unique_references(
            normalize_reference(a.get_text()) for a in _scripture_links(container)
        )
        if refs:
            return refs
    return None


def from_reading_selectors(soup: BeautifulSoup) -> Optional[List[str]]:
    for selector in READING_SELECTORS:
        el = soup.select_one(selector)
        if el is None:
            continue
        text = el.get_text(" ").strip()
        if not text:
            continue
        readings = normalize_readings(text)
        if readings:
            refs = split_readings(readings)
            if refs:
                return refs
    return None


def scripture_window(text: str) -> Optional[str]:
    """Slice of `text` from "scripture" up to the nearest boundary phrase."""
    lower = text.lower()
    start = lower.find("scripture")
    if start < 0:
        return None
    ends = [
        j
        for j in (lower.find(b, start + len("scripture")) for b in WINDOW_BOUNDARIES)
        if j != -1
    ]
    end = min(ends) if ends else min(start + WINDOW_FALLBACK_CHARS, len(text))
    return text[start:end]


def from_scripture_window(soup: BeautifulSoup) -> Optional[List[str]]:
    window = scripture_window(flatten_text(soup))
    if window is None:
        return None
    return scan_references(window) or None


def from_page_scan(soup: BeautifulSoup) -> Optional[List[str]]:
    refs = scan_references(flatten_text(soup))
    if refs:
        return refs
    line = find_reading_line("\n".join(text_lines(soup)))
    if line:
        return split_readings(line) or None
    return None


STRATEGIES: Tuple[ReferenceStrategy, ...] = (
    ReferenceStrategy("scripture_anchors", from_scripture_anchors),
    ReferenceStrategy("reading_selectors", from_reading_selectors),
    ReferenceStrategy("scripture_window", from_scripture_window),
    ReferenceStrategy("page_scan", from_page_scan),
)


def extract_references_with_strategy(
    html: str, strategies: Tuple[ReferenceStrategy, ...] = STRATEGIES
) -> Optional[Tuple[str, List[str]]]:
    """Run the chain and return (strategy name, references) of the first hit."""
    soup = load_soup(html)
    for strategy in strategies:
        refs = strategy.run(soup)
        if refs:
            logger.debug("References found by %s: %s", strategy.name, refs)
            return strategy.name, refs
    return None


def extract_references(html: str) -> Optional[List[str]]:
    hit = extract_references_with_strategy(html)
    return hit[1] if hit else None
