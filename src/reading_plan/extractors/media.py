"""Video link extraction (YouTube embeds, links and JSON blobs).

Sources, merged in this order and deduplicated globally:
- iframe embeds on a video host
- anchors pointing at a video host
- URLs nested anywhere inside ld+json / json script blocks
- a raw regex scan of the whole document

Only real video shapes survive the final filter (watch, embed, shorts and
youtu.be short links); channel and home links are dropped.
"""

from __future__ import annotations

import html as html_lib
import json
import re
from typing import Any, Iterable, Iterator, List, Optional
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup

from reading_plan.core.scraping.normalizer import normalize_url
from reading_plan.core.scraping.parser import attr_values, load_soup

CANONICAL_HOST = "https://www.youtube.com"

VIDEO_URL_RE = re.compile(
    r"https?://(?:www\.|m\.)?(?:youtube\.com|youtu\.be)/[\w\-?=&%/#.]+",
    re.IGNORECASE,
)
_HOST_RE = re.compile(r"(youtube\.com|youtu\.be)", re.IGNORECASE)
# characters VIDEO_URL_RE accepts that cannot end a link in running text
TRAILING_PUNCTUATION = ".#?&"

JSON_SCRIPT_SELECTOR = 'script[type="application/ld+json"], script[type="application/json"]'


def to_absolute(raw: Optional[str]) -> Optional[str]:
    """Resolve protocol-relative and /embed/ paths; drop other relative paths."""
    url = (raw or "").strip()
    if not url:
        return None
    if url.startswith("//"):
        return "https:" + url
    if url.startswith("/"):
        if url.lower().startswith("/embed/"):
            return CANONICAL_HOST + url
        return None
    if not re.match(r"https?://", url, re.IGNORECASE):
        return None
    return url


def is_video_url(url: str) -> bool:
    p = urlparse(url)
    host = p.netloc.lower().split(":")[0]
    path = p.path
    if host == "youtu.be" or host.endswith(".youtu.be"):
        return len(path.strip("/")) > 0
    if host == "youtube.com" or host.endswith(".youtube.com"):
        if path.startswith("/embed/") or path.startswith("/shorts/"):
            return len(path.split("/", 2)[2]) > 0
        if path == "/watch":
            return bool(parse_qs(p.query).get("v"))
    return False


def _host_links(soup: BeautifulSoup, selector: str, attr: str) -> List[str]:
    found: List[str] = []
    for value in attr_values(soup, selector, attr):
        url = to_absolute(value)
        if url and _HOST_RE.search(url):
            found.append(url)
    return found


def from_iframes(soup: BeautifulSoup) -> List[str]:
    return _host_links(soup, "iframe[src]", "src")


def from_anchors(soup: BeautifulSoup) -> List[str]:
    return _host_links(soup, "a[href]", "href")


def walk_json_strings(value: Any) -> Iterator[str]:
    """Yield every string inside arbitrarily nested dicts and lists."""
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for v in value.values():
            yield from walk_json_strings(v)
    elif isinstance(value, list):
        for v in value:
            yield from walk_json_strings(v)


def from_structured_data(soup: BeautifulSoup) -> List[str]:
    found: List[str] = []
    for script in soup.select(JSON_SCRIPT_SELECTOR):
        txt = script.string or script.get_text()
        if not txt or not txt.strip():
            continue
        try:
            parsed = json.loads(txt)
        except ValueError:
            continue
        for s in walk_json_strings(parsed):
            found.extend(_scan(s))
    return found


def _scan(text: str) -> List[str]:
    return [m.rstrip(TRAILING_PUNCTUATION) for m in VIDEO_URL_RE.findall(text)]


def from_raw_text(html: str) -> List[str]:
    return _scan(html_lib.unescape(html or ""))


def _unique(urls: Iterable[Optional[str]]) -> List[str]:
    return [u for u in dict.fromkeys(urls) if u]


def _clean(url: str) -> Optional[str]:
    try:
        return normalize_url(url)
    except ValueError:
        # urlparse rejects things like an unbalanced "[" in the host
        return None


def extract_media_links(html: str) -> List[str]:
    """Deduplicated, ordered list of embeddable video URLs. Never raises."""
    if not html:
        return []
    soup = load_soup(html)
    candidates = (
        from_iframes(soup)
        + from_anchors(soup)
        + from_structured_data(soup)
        + from_raw_text(html)
    )
    return [u for u in _unique(_clean(c) for c in candidates) if is_video_url(u)]
