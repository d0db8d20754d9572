"""Prefect tasks wrapping the scraping and storage components.

A Prefect "task" is a function Prefect runs with its own state, logs and
optional retries; a "flow" chains tasks together. These wrappers add logging
on top of the plain components so the refresh flow reads as a list of steps.

Scraping is not retried at the task level: every request already retries
inside the Fetcher, and a rerun would only repeat days that failed for good.
Merging is idempotent, so it is safe to retry.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping

from prefect import get_run_logger, task

from reading_plan.core.config import FetchOptions, PlanSource
from reading_plan.core.models import ScrapeResult
from reading_plan.scrapers.plan_scraper import scrape_plan
from reading_plan.services.storage import merge_table


@task(name="scrape_plan", retries=0)
def scrape_plan_task(
    source: PlanSource,
    start_day: int,
    end_day: int,
    concurrency: int,
    fetch_options: FetchOptions | None = None,
) -> ScrapeResult:
    logger = get_run_logger()
    logger.info("Scraping %s days %d-%d", source.name, start_day, end_day)
    result = scrape_plan(
        start_day,
        end_day,
        concurrency=concurrency,
        url_for_day=source.url_for,
        fetch_options=fetch_options,
    )
    for f in result.failures:
        logger.error("[%s] day %d failed: %s -> %s", source.name, f.day, f.url, f.message)
    logger.info(
        "Scraped %s: %d ok, %d failed",
        source.name,
        len(result.records),
        len(result.failures),
    )
    return result


@task(name="merge_table", retries=2, retry_delay_seconds=3)
def merge_table_task(
    path: str,
    updates: List[Mapping[str, Any]],
    key_column: str = "Day",
    sort_numeric: bool = True,
) -> Dict[str, Any]:
    logger = get_run_logger()
    table = merge_table(path, updates, key_column=key_column, sort_numeric=sort_numeric)
    logger.info("Saved %s (%d rows, %d updates)", path, len(table.rows), len(updates))
    return {"path": str(path), "rows": len(table.rows), "columns": table.header}
