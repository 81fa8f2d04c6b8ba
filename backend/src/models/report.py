"""Condition report data models for crowd-sourced park reports."""

import hashlib
import json
from datetime import datetime
from enum import Enum

from pydantic import Field

from .base import RecordModel


class ReportStatus(str, Enum):
    """Park conditions a reporter can choose."""

    DRY = "dry"
    PARTIALLY_WET = "partially_wet"
    WET = "wet"
    CLOSED = "closed"


class ReporterChannel(str, Enum):
    """Identity channel a report arrived through."""

    VERIFIED = "verified"  # identity checked by the OAuth layer
    ANONYMOUS = "anonymous"  # self-chosen nickname


class Report(RecordModel):
    """A single observation of a park's condition."""

    reporter_id: str = Field(default="anonymous", min_length=1)
    created_at: datetime
    status: ReportStatus | None = None
    surface: int | None = Field(None, ge=1, le=5, description="Surface quality 1-5")
    crowd: int | None = Field(None, ge=1, le=5, description="Crowd density 1-5")
    hazards: list[str] = Field(default_factory=list)
    notes: str = ""
    photos: list[str] = Field(default_factory=list)
    source: ReporterChannel = ReporterChannel.ANONYMOUS
    stale: bool = False

    @property
    def fingerprint(self) -> str:
        """Content identity, ignoring lifecycle flags set by the sweeper."""
        payload = self.model_dump(mode="json", by_alias=True, exclude={"stale"})
        canonical = json.dumps(payload, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ArchivedReport(Report):
    """A report moved to day-partitioned archival storage."""

    park: str
