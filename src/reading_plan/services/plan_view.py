"""Read-only view of the combined plan CSV for site builds and search.

Turns the store back into per-day dicts (delimited fields split into lists,
videos in embed form) and builds the reference -> days lookup used by the
search page. Nothing here writes to the store.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from reading_plan.core.config import PlanSource
from reading_plan.core.scraping.normalizer import to_embed_url
from reading_plan.services.storage import DEFAULT_KEY_COLUMN, PathLike, read_table

READINGS_SEPARATOR = ";"
MEDIA_SEPARATOR = "|"


def split_field(value: Optional[str], separator: str) -> List[str]:
    return [p.strip() for p in (value or "").split(separator) if p.strip()]


def load_plan_days(
    path: PathLike,
    sources: Sequence[PlanSource],
    key_column: str = DEFAULT_KEY_COLUMN,
    media_column: Optional[str] = "Video_URLs",
) -> List[Dict[str, object]]:
    """Per-day dicts sorted by day.

    Each dict has `day`, `readings` ({source name: [refs]}), `urls`
    ({source name: url}) and `videos` (embed URLs). Rows whose key is not a
    number are skipped.
    """
    table = read_table(path)
    days: List[Dict[str, object]] = []
    for row in table.rows:
        try:
            day = int(row.get(key_column, ""))
        except ValueError:
            continue
        videos = []
        if media_column:
            videos = [
                to_embed_url(u) for u in split_field(row.get(media_column), MEDIA_SEPARATOR)
            ]
        days.append(
            {
                "day": day,
                "readings": {
                    s.name: split_field(row.get(s.readings_column), READINGS_SEPARATOR)
                    for s in sources
                },
                "urls": {s.name: row.get(s.url_column, "") for s in sources},
                "videos": videos,
            }
        )
    days.sort(key=lambda d: d["day"])
    return days


def build_reference_index(days: Sequence[Dict[str, object]]) -> List[Dict[str, object]]:
    """Unique (ref, day) pairs sorted by reference text, then day."""
    seen = set()
    index: List[Dict[str, object]] = []
    for d in days:
        for refs in d["readings"].values():
            for ref in refs:
                if (ref, d["day"]) in seen:
                    continue
                seen.add((ref, d["day"]))
                index.append({"ref": ref, "day": d["day"]})
    index.sort(key=lambda e: (e["ref"].casefold(), e["day"]))
    return index


def reference_days(days: Sequence[Dict[str, object]]) -> Dict[str, List[int]]:
    """Reference text -> sorted list of the days it is read on."""
    lookup: Dict[str, List[int]] = {}
    for entry in build_reference_index(days):
        lookup.setdefault(entry["ref"], []).append(entry["day"])
    return lookup
