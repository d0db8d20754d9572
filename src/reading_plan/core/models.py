"""Value objects passed between the orchestrator, the flows and the store."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from reading_plan.core.errors import ErrorKind, PlanError


@dataclass(frozen=True)
class DayRecord:
    day: int
    references: Tuple[str, ...]
    media_links: Tuple[str, ...] = ()


@dataclass(frozen=True)
class DayFailure:
    """A failed day as reported to operators: where, what kind, why."""

    day: int
    url: Optional[str]
    kind: ErrorKind
    message: str

    @classmethod
    def from_exception(
        cls, day: int, url: Optional[str], exc: BaseException
    ) -> "DayFailure":
        if isinstance(exc, PlanError):
            return cls(day=day, url=url, kind=exc.kind, message=str(exc))
        return cls(
            day=day,
            url=url,
            kind=ErrorKind.UNEXPECTED,
            message=f"{type(exc).__name__}: {exc}",
        )

    def as_dict(self) -> Dict[str, object]:
        return {
            "day": self.day,
            "url": self.url,
            "kind": self.kind.value,
            "error": self.message,
        }


@dataclass
class ScrapeResult:
    records: List[DayRecord] = field(default_factory=list)
    failures: List[DayFailure] = field(default_factory=list)

    @property
    def days(self) -> List[int]:
        return [r.day for r in self.records]

    def by_day(self) -> Dict[int, DayRecord]:
        return {r.day: r for r in self.records}
