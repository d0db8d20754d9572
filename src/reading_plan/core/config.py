from __future__ import annotations

from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_CONCURRENCY = 6


class FetchOptions(BaseModel):
    """Per-request settings for the retrying fetcher.

    Delays and timeouts are in seconds.
    """

    timeout: float = Field(default=15.0, gt=0)
    max_retries: int = Field(default=5, ge=0)
    base_delay: float = Field(default=0.5, ge=0)
    headers: Dict[str, str] = Field(default_factory=dict)


class PlanSource(BaseModel):
    """One day-indexed plan and the CSV columns its results land in.

    Example: the Old Testament plan writes `OT_Scripture_Readings` and `OT_URL`.
    """

    name: str
    url_template: str
    readings_column: str
    url_column: str

    @field_validator("url_template")
    def template_must_have_day(cls, v):
        if "{day}" not in v:
            raise ValueError("url_template must contain a '{day}' placeholder")
        return v

    def url_for(self, day: int) -> str:
        return self.url_template.replace("{day}", str(day))


class PlanRefreshConfig(BaseModel):
    """
    Contract for one refresh run.
    Everything the refresh flow needs: which days, which plans, where the CSV lives.
    """

    job_name: str
    start_day: int = Field(default=1, ge=1)
    end_day: int = Field(default=365, ge=1)
    concurrency: int = Field(default=DEFAULT_CONCURRENCY, ge=1)
    sources: List[PlanSource] = Field(min_length=1)

    # Destination
    destination_path: str
    key_column: str = "Day"
    media_column: Optional[str] = "Video_URLs"
    sort_numeric: bool = True

    fetch: FetchOptions = Field(default_factory=FetchOptions)

    @field_validator("job_name")
    def job_name_must_be_slug(cls, v):
        if " " in v:
            raise ValueError("job_name must not contain spaces")
        return v.lower()

    @model_validator(mode="after")
    def check_range_and_sources(self):
        if self.end_day < self.start_day:
            raise ValueError("end_day must be >= start_day")
        names = [s.name for s in self.sources]
        if len(set(names)) != len(names):
            raise ValueError("source names must be unique")
        return self
