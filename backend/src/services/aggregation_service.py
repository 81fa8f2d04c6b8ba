"""Reputation-weighted composite conditions for a park.

The composite is a pure function of (reports, weights, now, rainResetAt);
``CompositeAggregator`` wraps it with storage and archival.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from models.conditions import SiteConditions
from models.report import Report
from services.archive_store import ReportArchive
from services.conditions_store import ConditionsStore
from services.reputation_service import ReputationLedger, is_first_after_rain
from utils.constants import ANONYMOUS_WEIGHT, FRESHNESS_WINDOW_HOURS, MAX_ACTIVE_REPORTS

logger = logging.getLogger(__name__)

WeightFn = Callable[[str], float]


@dataclass
class CompositeResult:
    composite_status: str | None = None
    avg_surface: float | None = None
    avg_crowd: float | None = None
    active_hazards: list[str] = field(default_factory=list)


@dataclass
class Insertion:
    """Outcome of inserting one report, as decided against the committed record."""

    conditions: SiteConditions
    first_after_rain: bool = False
    duplicate: bool = False


def round_half_up(value: float, digits: int = 1) -> float:
    """Round halves away from zero (2.25 -> 2.3), unlike built-in ``round``."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def is_fresh(
    report: Report, now: datetime, rain_reset_at: datetime | None = None
) -> bool:
    """A report votes if it is within the freshness window, not stale, and
    was not made before the last rain reset."""
    if report.stale:
        return False
    if now - report.created_at > timedelta(hours=FRESHNESS_WINDOW_HOURS):
        return False
    if rain_reset_at is not None and report.created_at < rain_reset_at:
        return False
    return True


def weighted_status(reports: list[Report], weights: dict[str, float]) -> str | None:
    """Weighted plurality vote over reports given newest first.

    Tallies keep first-vote order and the descending sort is stable, so on a
    tie the status seen first (the most recent report's) wins.
    """
    tallies: dict[str, float] = {}
    for report in reports:
        if report.status is None:
            continue
        status = getattr(report.status, "value", report.status)
        tallies[status] = tallies.get(status, 0.0) + weights[report.reporter_id]
    if not tallies:
        return None
    ranked = sorted(tallies.items(), key=lambda kv: kv[1], reverse=True)
    return ranked[0][0]


def weighted_average(
    reports: list[Report], weights: dict[str, float], field_name: str
) -> float | None:
    total_weight = 0.0
    total_value = 0.0
    for report in reports:
        value = getattr(report, field_name)
        if value is None:
            continue
        weight = weights[report.reporter_id]
        total_weight += weight
        total_value += value * weight
    if total_weight <= 0:
        return None
    return round_half_up(total_value / total_weight, 1)


def compute_composite(
    reports: list[Report],
    weight_of: WeightFn,
    now: datetime,
    rain_reset_at: datetime | None = None,
) -> CompositeResult:
    """Composite status, weighted averages and hazards from fresh reports only."""
    fresh = [r for r in reports if is_fresh(r, now, rain_reset_at)]
    if not fresh:
        return CompositeResult()

    weights = {rid: weight_of(rid) for rid in {r.reporter_id for r in fresh}}

    hazards: list[str] = []
    for report in fresh:
        for hazard in report.hazards:
            if hazard not in hazards:
                hazards.append(hazard)

    return CompositeResult(
        composite_status=weighted_status(fresh, weights),
        avg_surface=weighted_average(fresh, weights, "surface"),
        avg_crowd=weighted_average(fresh, weights, "crowd"),
        active_hazards=hazards,
    )


def apply_composite(
    conditions: SiteConditions, weight_of: WeightFn, now: datetime
) -> SiteConditions:
    """Return ``conditions`` with derived fields recomputed at ``now``."""
    result = compute_composite(
        conditions.reports, weight_of, now, conditions.rain_reset_at
    )
    return conditions.model_copy(
        update={
            "composite_status": result.composite_status,
            "avg_surface": result.avg_surface,
            "avg_crowd": result.avg_crowd,
            "active_hazards": result.active_hazards,
            "updated_at": now,
        }
    )


def default_weight(reporter_id: str) -> float:
    return ANONYMOUS_WEIGHT


class CompositeAggregator:
    """Inserts reports into a park's history and recomputes its composite."""

    def __init__(
        self,
        store: ConditionsStore,
        archive: ReportArchive,
        ledger: ReputationLedger | None = None,
    ):
        self.store = store
        self.archive = archive
        self.ledger = ledger

    def weight_fn(self) -> WeightFn:
        """Per-call memoized weight lookup; default weights without a ledger."""
        if self.ledger is None:
            return default_weight
        cache: dict[str, float] = {}

        def weight_of(reporter_id: str) -> float:
            if reporter_id not in cache:
                cache[reporter_id] = self.ledger.weight_of(reporter_id)
            return cache[reporter_id]

        return weight_of

    def insert(
        self,
        slug: str,
        report: Report,
        now: datetime,
        recently_rained: bool = False,
    ) -> Insertion:
        """Insert ``report`` into the park's active list and recompute the composite.

        Whether the report is the first after rain is decided against the same
        record version the insert commits, so of two racing reports only the
        one that lands first is credited. Replaying a report whose content is
        already in the active list leaves the record untouched and answers for
        the copy already stored. Reports pushed past the active-list cap are
        archived before they are dropped.
        """
        weight_of = self.weight_fn()
        outcome = {"first_after_rain": False, "duplicate": False}

        def mutate(conditions: SiteConditions) -> SiteConditions | None:
            for idx, existing in enumerate(conditions.reports):
                if existing.fingerprint == report.fingerprint:
                    logger.info("Duplicate report for %s ignored", slug)
                    outcome["duplicate"] = True
                    outcome["first_after_rain"] = is_first_after_rain(
                        conditions.reports[idx + 1 :], recently_rained, now
                    )
                    return None

            outcome["duplicate"] = False
            outcome["first_after_rain"] = is_first_after_rain(
                conditions.reports, recently_rained, now
            )

            reports = [report] + conditions.reports
            overflow = reports[MAX_ACTIVE_REPORTS:]
            if overflow:
                self.archive.append_many(slug, overflow)

            last_report_at = conditions.last_report_at
            if last_report_at is None or report.created_at > last_report_at:
                last_report_at = report.created_at

            inserted = conditions.model_copy(
                update={
                    "reports": reports[:MAX_ACTIVE_REPORTS],
                    "report_count": conditions.report_count + 1,
                    "last_report_at": last_report_at,
                }
            )
            return apply_composite(inserted, weight_of, now)

        conditions = self.store.update(slug, mutate)
        return Insertion(conditions=conditions, **outcome)

    def aggregate(
        self, slug: str, now: datetime, new_report: Report | None = None
    ) -> SiteConditions:
        """Insert ``new_report`` (if any) and recompute the park's composite."""
        if new_report is not None:
            return self.insert(slug, new_report, now).conditions

        weight_of = self.weight_fn()
        return self.store.update(
            slug, lambda conditions: apply_composite(conditions, weight_of, now)
        )
