"""Per-park aggregated conditions."""

from datetime import datetime

from pydantic import Field

from .base import RecordModel
from .report import Report, ReportStatus


class SiteConditions(RecordModel):
    """Aggregation output for one park.

    ``reports`` is newest first. Derived fields are null when no report is fresh.
    """

    slug: str
    composite_status: ReportStatus | None = None
    avg_surface: float | None = None
    avg_crowd: float | None = None
    active_hazards: list[str] = Field(default_factory=list)
    report_count: int = Field(default=0, ge=0, description="Lifetime accepted reports")
    last_report_at: datetime | None = None
    rain_reset_at: datetime | None = None
    reports: list[Report] = Field(default_factory=list)
    updated_at: datetime | None = None

    @classmethod
    def empty(cls, slug: str) -> "SiteConditions":
        return cls(slug=slug)

    def has_report(self, fingerprint: str) -> bool:
        return any(r.fingerprint == fingerprint for r in self.reports)
