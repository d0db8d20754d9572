"""HTML parsing helpers shared by the extractors.
"""

from __future__ import annotations

from typing import List

from bs4 import BeautifulSoup
from bs4.element import PreformattedString

_INVISIBLE = ("script", "style", "noscript", "template")


def load_soup(html: str) -> BeautifulSoup:
    return BeautifulSoup(html or "", "html.parser")


def _strings(soup: BeautifulSoup) -> List[str]:
    root = soup.body or soup
    return [
        str(s)
        for s in root.find_all(string=True)
        if not isinstance(s, PreformattedString)
        and (s.parent is None or s.parent.name not in _INVISIBLE)
    ]


def flatten_text(soup: BeautifulSoup) -> str:
    """Page text (script and style left out) with whitespace collapsed."""
    return " ".join(" ".join(_strings(soup)).split())


def text_lines(soup: BeautifulSoup) -> List[str]:
    """Non-empty stripped text lines, one per text node or embedded newline."""
    lines: List[str] = []
    for s in _strings(soup):
        lines.extend(" ".join(p.split()) for p in s.splitlines() if p.strip())
    return lines


def attr_values(soup: BeautifulSoup, selector: str, attr: str) -> List[str]:
    """Stripped, non-empty values of `attr` for every element matching `selector`."""
    values: List[str] = []
    for el in soup.select(selector):
        raw = el.get(attr)
        if isinstance(raw, list):
            raw = " ".join(raw)
        value = (raw or "").strip()
        if value:
            values.append(value)
    return values
