"""
Reading plan refresh flow

This Prefect flow refreshes the plan CSV without rebuilding it from scratch:

1. Validates the job config (day range, plans to scrape, CSV path).
2. Scrapes every plan source over the day range (bounded concurrency,
   retries with backoff, failures collected per day).
3. Projects the successful days into CSV rows: one row per day with each
   plan's readings and URL, plus the union of the video links.
4. Merges the rows into the existing CSV by the Day column and writes it
   back atomically.

A day that failed for a plan contributes no column for that plan, so a
partial run never blanks data a previous run already stored.
"""

from __future__ import annotations

import os
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from prefect import flow, get_run_logger

from reading_plan.core.config import PlanRefreshConfig, PlanSource
from reading_plan.core.models import DayRecord, ScrapeResult
from reading_plan.core.scraping.prefect_tasks import merge_table_task, scrape_plan_task

READINGS_JOIN = "; "
MEDIA_JOIN = " | "

OT_TEMPLATE = (
    "https://www.bible.com/reading-plans/"
    "13630-bibleproject-old-testament-in-a-year/day/{day}"
)
NT_TEMPLATE = (
    "https://www.bible.com/reading-plans/"
    "13233-bibleproject-new-testament-in-one-year/day/{day}"
)


def project_records(
    records: Iterable[DayRecord], source: PlanSource, key_column: str = "Day"
) -> List[Dict[str, str]]:
    """One CSV row per day for a single plan: key, joined readings, day URL."""
    return [
        {
            key_column: str(r.day),
            source.readings_column: READINGS_JOIN.join(r.references),
            source.url_column: source.url_for(r.day),
        }
        for r in records
    ]


def combine_results(
    results_by_source: Mapping[str, ScrapeResult],
    sources: Sequence[PlanSource],
    key_column: str = "Day",
    media_column: Optional[str] = "Video_URLs",
) -> List[Dict[str, str]]:
    """Merge several plans into one row per day.

    Only days with at least one successful plan get a row, and only the
    successful plans contribute columns. Video links are the union over all
    plans for that day, in plan order.
    """
    by_source = {
        s.name: results_by_source[s.name].by_day()
        for s in sources
        if s.name in results_by_source
    }
    days = sorted({day for recs in by_source.values() for day in recs})

    rows: List[Dict[str, str]] = []
    for day in days:
        row: Dict[str, str] = {key_column: str(day)}
        videos: List[str] = []
        for s in sources:
            rec = by_source.get(s.name, {}).get(day)
            if rec is None:
                continue
            row.update(project_records([rec], s, key_column)[0])
            videos.extend(rec.media_links)
        if media_column:
            row[media_column] = MEDIA_JOIN.join(dict.fromkeys(videos))
        rows.append(row)
    return rows


@flow(name="Reading Plan Refresh", log_prints=True)
def refresh_plan_flow(config_dict: dict) -> Dict[str, Any]:
    """Scrape every configured plan and merge the results into the CSV.

    config_dict: must conform to `PlanRefreshConfig`.
    Returns {"path", "rows", "updated", "failures"}.
    """
    logger = get_run_logger()
    try:
        config = PlanRefreshConfig(**config_dict)
        logger.info("Config valid for job: %s", config.job_name)
    except Exception as e:
        logger.error("Invalid config: %s", e)
        raise

    results: Dict[str, ScrapeResult] = {}
    for source in config.sources:
        results[source.name] = scrape_plan_task(
            source,
            config.start_day,
            config.end_day,
            config.concurrency,
            config.fetch,
        )

    failures = [
        {"source": name, **f.as_dict()}
        for name, result in results.items()
        for f in result.failures
    ]

    updates = combine_results(
        results, config.sources, config.key_column, config.media_column
    )
    if not updates:
        logger.warning("No day scraped successfully; %s left untouched", config.destination_path)
        return {
            "path": config.destination_path,
            "rows": None,
            "updated": 0,
            "failures": failures,
        }

    saved = merge_table_task(
        config.destination_path,
        updates,
        key_column=config.key_column,
        sort_numeric=config.sort_numeric,
    )
    logger.info(
        "Job %s completed. %d days updated, %d failures.",
        config.job_name,
        len(updates),
        len(failures),
    )
    return {
        "path": saved["path"],
        "rows": saved["rows"],
        "updated": len(updates),
        "failures": failures,
    }


if __name__ == "__main__":
    # Combined Old + New Testament plan with videos, tuned via env vars
    payload = {
        "job_name": "bibleproject_combined",
        "start_day": int(os.environ.get("START_DAY", "1")),
        "end_day": int(os.environ.get("END_DAY", "365")),
        "concurrency": int(os.environ.get("CONCURRENCY", "6")),
        "sources": [
            {
                "name": "ot",
                "url_template": os.environ.get("OT_PLAN_URL_TEMPLATE", OT_TEMPLATE),
                "readings_column": "OT_Scripture_Readings",
                "url_column": "OT_URL",
            },
            {
                "name": "nt",
                "url_template": os.environ.get("NT_PLAN_URL_TEMPLATE", NT_TEMPLATE),
                "readings_column": "NT_Scripture_Readings",
                "url_column": "NT_URL",
            },
        ],
        "destination_path": os.environ.get(
            "PLAN_CSV_PATH", "combined-reading-plan-with-videos.csv"
        ),
    }
    refresh_plan_flow(payload)
