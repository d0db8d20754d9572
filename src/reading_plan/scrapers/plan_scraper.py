"""Scrape a day range of a reading plan.

One task per day: resolve the URL, fetch it with retries, extract the
references and the video links. Tasks run through the bounded scheduler, a
failing day never stops its siblings, and the successful days come back
sorted.
"""

from __future__ import annotations

import asyncio
import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from reading_plan.core.config import DEFAULT_CONCURRENCY, FetchOptions
from reading_plan.core.errors import ExtractionFailure, ValidationError
from reading_plan.core.models import DayFailure, DayRecord, ScrapeResult
from reading_plan.core.scraping.fetcher import Fetcher
from reading_plan.core.scraping.scheduler import run_bounded
from reading_plan.extractors.media import extract_media_links
from reading_plan.extractors.references import extract_references

logger = logging.getLogger(__name__)

URL_TEMPLATE_ENV = "PLAN_URL_TEMPLATE"

UrlForDay = Callable[[int], str]


def url_for_day(
    day: int,
    url_fn: Optional[UrlForDay] = None,
    template: Optional[str] = None,
) -> str:
    """URL of one day page.

    Priority: `url_fn(day)`, then `template`, then the PLAN_URL_TEMPLATE
    environment variable. Templates use a `{day}` placeholder.
    """
    if url_fn is not None:
        return url_fn(day)
    tpl = template or os.environ.get(URL_TEMPLATE_ENV)
    if tpl and "{day}" in tpl:
        return tpl.replace("{day}", str(day))
    raise ValidationError(
        "No URL template provided. Set PLAN_URL_TEMPLATE with a '{day}' "
        "placeholder or pass url_for_day / url_template",
        day=day,
    )


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_range(start_day: int, end_day: int, concurrency: int = 1) -> None:
    if not _is_int(start_day) or not _is_int(end_day):
        raise ValidationError("start_day and end_day must be integers")
    if start_day < 1 or end_day < start_day:
        raise ValidationError(f"Invalid day range {start_day}..{end_day}")
    if not _is_int(concurrency) or concurrency < 1:
        raise ValidationError(f"concurrency must be an integer >= 1, got {concurrency!r}")


async def scrape_range(
    start_day: int,
    end_day: int,
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    url_for_day: Optional[UrlForDay] = None,
    url_template: Optional[str] = None,
    fetch_options: Optional[FetchOptions] = None,
    fetcher: Optional[Fetcher] = None,
) -> ScrapeResult:
    """Scrape days `start_day..end_day` (inclusive).

    Returns a ScrapeResult: records sorted by day, plus one DayFailure per day
    that could not be fetched or yielded no reference. Validation problems
    raise ValidationError before any request is made.
    """
    validate_range(start_day, end_day, concurrency)
    resolve = _resolver(url_for_day, url_template)
    resolve(start_day)  # fail fast when no URL source is configured

    own_fetcher = fetcher is None
    if fetcher is None:
        fetcher = Fetcher(fetch_options, pool_size=concurrency)

    days = list(range(start_day, end_day + 1))
    urls = {}

    def make_task(day: int):
        async def task() -> DayRecord:
            url = resolve(day)
            urls[day] = url
            html = await fetcher.fetch(url)
            references = extract_references(html)
            if not references:
                raise ExtractionFailure(
                    f"Could not extract readings for day {day} ({url})",
                    day=day,
                    url=url,
                )
            media = extract_media_links(html)
            return DayRecord(day=day, references=tuple(references), media_links=tuple(media))

        return task

    logger.info(
        "Scraping days %d-%d with concurrency %d", start_day, end_day, concurrency
    )
    try:
        outcomes = await run_bounded([make_task(d) for d in days], concurrency)
    finally:
        if own_fetcher:
            fetcher.close()

    result = ScrapeResult()
    for outcome in outcomes:
        day = days[outcome.index]
        if outcome.ok:
            result.records.append(outcome.value)
        else:
            result.failures.append(
                DayFailure.from_exception(day, urls.get(day), outcome.error)
            )

    result.records.sort(key=lambda r: r.day)
    result.failures.sort(key=lambda f: f.day)
    for f in result.failures:
        logger.error("Failed for day %d: %s -> %s", f.day, f.url, f.message)
    logger.info(
        "Scraped %d/%d days (%d failed)",
        len(result.records),
        len(days),
        len(result.failures),
    )
    return result


def scrape_plan(start_day: int = 1, end_day: int = 365, **kwargs) -> ScrapeResult:
    """Blocking wrapper around `scrape_range` for synchronous callers.

    Works from inside a running event loop too (e.g. a Prefect task) by
    running the scrape on its own loop in a helper thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(scrape_range(start_day, end_day, **kwargs))
    with ThreadPoolExecutor(max_workers=1) as pool:
        return pool.submit(
            asyncio.run, scrape_range(start_day, end_day, **kwargs)
        ).result()


def _resolver(url_fn: Optional[UrlForDay], template: Optional[str]) -> UrlForDay:
    def resolve(day: int) -> str:
        return url_for_day(day, url_fn, template)

    return resolve
