"""Validation boundary for inbound report submissions.

Everything past this module only ever sees well-typed ``Report`` records.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from models.report import Report, ReporterChannel, ReportStatus
from utils.constants import ANONYMOUS_REPORTER
from utils.time_utils import parse_timestamp

logger = logging.getLogger(__name__)

MAX_NOTES_LENGTH = 500
MAX_REPORTER_ID_LENGTH = 40
MAX_HAZARDS = 10
MAX_PHOTOS = 5
VALID_STATUSES = [s.value for s in ReportStatus]


def clamp_score(value: Any, low: int = 1, high: int = 5) -> int | None:
    """Coerce a 1-5 score; unparseable input becomes None, numbers are clamped.

    Infinities clamp to the nearest bound; NaN is unparseable.
    """
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    except OverflowError:
        # integers too large for a float
        number = math.inf if value > 0 else -math.inf
    if math.isnan(number):
        return None
    return int(max(low, min(high, number)))


class ReportSubmission(BaseModel):
    """Inbound submission as produced by the ingestion front door."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    park: str = Field(..., min_length=1)
    status: ReportStatus
    surface: int | None = None
    crowd: int | None = None
    reporter_id: str = Field(default=ANONYMOUS_REPORTER, alias="reporterId")
    notes: str = ""
    hazards: list[str] = Field(default_factory=list)
    photos: list[str] = Field(default_factory=list)
    timestamp: datetime | None = None
    source: ReporterChannel = ReporterChannel.ANONYMOUS

    @field_validator("park", mode="before")
    @classmethod
    def _normalize_park(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, v):
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @field_validator("surface", "crowd", mode="before")
    @classmethod
    def _clamp(cls, v):
        return clamp_score(v)

    @field_validator("reporter_id", mode="before")
    @classmethod
    def _normalize_reporter(cls, v):
        if not isinstance(v, str) or not v.strip():
            return ANONYMOUS_REPORTER
        return v.strip()[:MAX_REPORTER_ID_LENGTH]

    @field_validator("notes", mode="before")
    @classmethod
    def _truncate_notes(cls, v):
        if v is None:
            return ""
        return str(v)[:MAX_NOTES_LENGTH]

    @field_validator("hazards", mode="before")
    @classmethod
    def _split_hazards(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = v.split(",")
        hazards = []
        for item in v:
            tag = str(item).strip().lower()
            if tag and tag not in hazards:
                hazards.append(tag)
        return hazards[:MAX_HAZARDS]

    @field_validator("photos", mode="before")
    @classmethod
    def _keep_urls(cls, v):
        if not v:
            return []
        return [p for p in v if isinstance(p, str) and p.startswith(("http://", "https://"))][
            :MAX_PHOTOS
        ]

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, v):
        return parse_timestamp(v)


@dataclass(frozen=True)
class ValidationResult:
    """Tagged result: either ``report`` (valid) or ``reason`` (rejected)."""

    park: str | None = None
    report: Report | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.report is not None

    @classmethod
    def valid(cls, park: str, report: Report) -> "ValidationResult":
        return cls(park=park, report=report)

    @classmethod
    def rejected(cls, reason: str, park: str | None = None) -> "ValidationResult":
        return cls(park=park, reason=reason)


def _rejection_reason(error: ValidationError, raw: dict) -> str:
    first = error.errors()[0]
    field = first["loc"][0] if first.get("loc") else None
    if field == "park":
        return "Missing park slug"
    if field == "status":
        return f"Invalid status: {raw.get('status')}"
    if field == "timestamp":
        return f"Invalid timestamp: {raw.get('timestamp')}"
    return f"Invalid {field}: {first.get('msg')}"


def validate_submission(
    raw: Any,
    known_parks: set[str],
    now: datetime,
    received_at: datetime | None = None,
) -> ValidationResult:
    """Normalize a raw submission into a Report or reject it with a reason.

    Never touches state. Scores are clamped to [1, 5]; future timestamps are
    clamped to ``now``.

    A submission without a ``timestamp`` is dated ``received_at``, falling
    back to ``now``. The report fingerprint covers the creation time, so
    queued messages should pass the queue's own send time: a redelivery then
    yields the same fingerprint and is deduplicated instead of counted twice.
    """
    if not isinstance(raw, dict):
        return ValidationResult.rejected("Invalid submission")

    if "reporterId" not in raw and "nickname" in raw:
        raw = {**raw, "reporterId": raw["nickname"]}

    try:
        submission = ReportSubmission.model_validate(raw)
    except ValidationError as e:
        reason = _rejection_reason(e, raw)
        logger.info("Rejected submission: %s", reason)
        return ValidationResult.rejected(reason, park=raw.get("park"))

    if submission.park not in known_parks:
        logger.info("Rejected submission for unknown park %s", submission.park)
        return ValidationResult.rejected(
            f"Unknown park: {submission.park}", park=submission.park
        )

    created_at = submission.timestamp or received_at or now
    if created_at > now:
        created_at = now

    report = Report(
        reporter_id=submission.reporter_id,
        created_at=created_at,
        status=submission.status,
        surface=submission.surface,
        crowd=submission.crowd,
        hazards=submission.hazards,
        notes=submission.notes,
        photos=submission.photos,
        source=submission.source,
    )
    return ValidationResult.valid(submission.park, report)
