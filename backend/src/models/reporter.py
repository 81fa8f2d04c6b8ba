"""Reporter reputation data models."""

from datetime import datetime
from enum import Enum

from pydantic import Field

from .base import RecordModel


class ReputationLevel(str, Enum):
    """Reputation tiers, lowest to highest."""

    ROOKIE = "rookie"
    REGULAR = "regular"
    LOCAL = "local"
    LEGEND = "legend"


class ReporterProfile(RecordModel):
    """Reputation ledger entry for one reporter."""

    id: str
    report_count: int = Field(default=0, ge=0)
    reputation: int = Field(default=0, ge=0)
    level: ReputationLevel = ReputationLevel.ROOKIE
    streak: int = Field(default=0, ge=0, description="Consecutive UTC report days")
    parks: list[str] = Field(default_factory=list)
    joined_at: datetime
    last_report_at: datetime | None = None
    today_report_count: int = Field(default=0, ge=0)
    # Replay detection only; not part of the exported stats document
    recent_fingerprints: list[str] = Field(default_factory=list, exclude=True)


class ReporterStats(RecordModel):
    """Exported ledger document."""

    updated_at: datetime | None = None
    reporters: list[ReporterProfile] = Field(default_factory=list)


class LevelProgress(RecordModel):
    """Progress from the current reputation level to the next one."""

    current: ReputationLevel
    next: ReputationLevel | None = None
    points_to_next: int | None = None
    pct: int = Field(ge=0, le=100)
