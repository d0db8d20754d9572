import logging

import pytest

from reading_plan.core.config import PlanSource
from reading_plan.core.errors import ErrorKind
from reading_plan.core.models import DayFailure, DayRecord, ScrapeResult
from reading_plan.flows.plan_refresh import combine_results, project_records, refresh_plan_flow

OT = PlanSource(
    name="ot",
    url_template="https://plans.example.org/ot/{day}",
    readings_column="OT_Scripture_Readings",
    url_column="OT_URL",
)
NT = PlanSource(
    name="nt",
    url_template="https://plans.example.org/nt/{day}",
    readings_column="NT_Scripture_Readings",
    url_column="NT_URL",
)


def test_project_records_joins_readings():
    rows = project_records([DayRecord(4, ("Genesis 7", "Genesis 8"))], OT)
    assert rows == [
        {
            "Day": "4",
            "OT_Scripture_Readings": "Genesis 7; Genesis 8",
            "OT_URL": "https://plans.example.org/ot/4",
        }
    ]


def test_combine_unions_videos_and_skips_failed_plans():
    results = {
        "ot": ScrapeResult(
            records=[
                DayRecord(1, ("Genesis 1",), ("https://youtu.be/a", "https://youtu.be/b")),
                DayRecord(2, ("Genesis 2",)),
            ]
        ),
        "nt": ScrapeResult(
            records=[DayRecord(1, ("Matthew 1",), ("https://youtu.be/b", "https://youtu.be/c"))],
            failures=[DayFailure(2, "https://plans.example.org/nt/2", ErrorKind.TERMINAL_HTTP, "404")],
        ),
    }
    rows = combine_results(results, [OT, NT])

    assert rows[0]["Video_URLs"] == "https://youtu.be/a | https://youtu.be/b | https://youtu.be/c"
    assert rows[0]["NT_Scripture_Readings"] == "Matthew 1"
    # day 2 failed for NT, so the row must not carry NT columns at all
    assert rows[1] == {
        "Day": "2",
        "OT_Scripture_Readings": "Genesis 2",
        "OT_URL": "https://plans.example.org/ot/2",
        "Video_URLs": "",
    }


@pytest.fixture
def patched_flow(monkeypatch):
    calls = {"scrape": [], "merge": []}
    monkeypatch.setattr(
        "reading_plan.flows.plan_refresh.get_run_logger",
        lambda: logging.getLogger("test_plan_refresh"),
    )

    def fake_merge(path, updates, key_column="Day", sort_numeric=True):
        calls["merge"].append((path, updates, key_column, sort_numeric))
        return {"path": path, "rows": 7, "columns": [key_column]}

    monkeypatch.setattr("reading_plan.flows.plan_refresh.merge_table_task", fake_merge)
    return calls, monkeypatch


def base_config(**overrides):
    cfg = {
        "job_name": "Combined_Plan",
        "start_day": 1,
        "end_day": 2,
        "concurrency": 2,
        "sources": [OT.model_dump(), NT.model_dump()],
        "destination_path": "data/plan.csv",
    }
    cfg.update(overrides)
    return cfg


def test_flow_scrapes_every_source_and_merges(patched_flow):
    calls, monkeypatch = patched_flow

    def fake_scrape(source, start_day, end_day, concurrency, fetch_options=None):
        calls["scrape"].append((source.name, start_day, end_day, concurrency))
        if source.name == "ot":
            return ScrapeResult(records=[DayRecord(1, ("Genesis 1",)), DayRecord(2, ("Genesis 2",))])
        return ScrapeResult(
            records=[DayRecord(1, ("Matthew 1",))],
            failures=[DayFailure(2, NT.url_for(2), ErrorKind.EXTRACTION, "no references for day 2")],
        )

    monkeypatch.setattr("reading_plan.flows.plan_refresh.scrape_plan_task", fake_scrape)

    result = refresh_plan_flow.fn(base_config())

    assert calls["scrape"] == [("ot", 1, 2, 2), ("nt", 1, 2, 2)]
    path, updates, key_column, sort_numeric = calls["merge"][0]
    assert path == "data/plan.csv"
    assert [u["Day"] for u in updates] == ["1", "2"]
    assert key_column == "Day" and sort_numeric is True
    assert result["updated"] == 2
    assert result["rows"] == 7
    assert result["failures"] == [
        {
            "source": "nt",
            "day": 2,
            "url": "https://plans.example.org/nt/2",
            "kind": "extraction",
            "error": "no references for day 2",
        }
    ]


def test_flow_leaves_store_alone_when_nothing_succeeds(patched_flow):
    calls, monkeypatch = patched_flow
    monkeypatch.setattr(
        "reading_plan.flows.plan_refresh.scrape_plan_task",
        lambda source, *args, **kwargs: ScrapeResult(
            failures=[DayFailure(1, source.url_for(1), ErrorKind.NETWORK, "refused")]
        ),
    )

    result = refresh_plan_flow.fn(base_config(end_day=1))

    assert calls["merge"] == []
    assert result["updated"] == 0
    assert len(result["failures"]) == 2


@pytest.mark.parametrize(
    "overrides",
    [
        {"end_day": 0},
        {"start_day": 5, "end_day": 4},
        {"concurrency": 0},
        {"sources": []},
        {"job_name": "has space"},
    ],
)
def test_flow_rejects_bad_config(patched_flow, overrides):
    calls, monkeypatch = patched_flow
    monkeypatch.setattr(
        "reading_plan.flows.plan_refresh.scrape_plan_task",
        lambda *args, **kwargs: pytest.fail("scrape must not run"),
    )
    with pytest.raises(Exception):
        refresh_plan_flow.fn(base_config(**overrides))
    assert calls["merge"] == []
