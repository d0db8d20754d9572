"""Core scraping primitives exported for reuse across scrapers and flows.

This package contains small, well-tested building blocks: Fetcher, the
bounded scheduler, parser helpers and URL normalizers. The Prefect task
wrappers live in `prefect_tasks` and are imported from there directly.
"""

from .fetcher import Fetcher
from .normalizer import normalize_url, to_embed_url
from .parser import flatten_text, load_soup
from .scheduler import Outcome, run_bounded

__all__ = [
    "Fetcher",
    "run_bounded",
    "Outcome",
    "load_soup",
    "flatten_text",
    "normalize_url",
    "to_embed_url",
]
