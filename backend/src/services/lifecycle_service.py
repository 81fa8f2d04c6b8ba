"""Time-based lifecycle of reports and rain-reset invalidation.

Sweep rules by report age at ``now``:
- older than 12h: archived under its UTC day, then removed from the active list
- older than 4h: marked stale in place
- otherwise: untouched

After a sweep the composite is recomputed with the same freshness rule the
aggregator uses, so a sweep right after an aggregation changes nothing derived.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from models.conditions import SiteConditions
from models.weather import WeatherSnapshot
from services.aggregation_service import CompositeAggregator, apply_composite
from services.archive_store import ReportArchive
from services.conditions_store import ConditionsStore
from utils.constants import ARCHIVE_AFTER_HOURS, STALE_AFTER_HOURS

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    cleaned: int = 0
    archived: int = 0
    parks: int = 0
    errors: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "cleaned": self.cleaned,
            "archived": self.archived,
            "parks": self.parks,
            "errors": self.errors,
        }


class LifecycleSweeper:
    """Periodic pass that stales, archives and evicts aged reports."""

    def __init__(self, aggregator: CompositeAggregator, slugs: list[str]):
        self.aggregator = aggregator
        self.slugs = list(slugs)

    @property
    def store(self) -> ConditionsStore:
        return self.aggregator.store

    @property
    def archive(self) -> ReportArchive:
        return self.aggregator.archive

    def sweep_park(self, slug: str, now: datetime) -> tuple[int, int]:
        """Sweep one park. Returns (newly stale, archived)."""
        stale_after = timedelta(hours=STALE_AFTER_HOURS)
        archive_after = timedelta(hours=ARCHIVE_AFTER_HOURS)
        weight_of = self.aggregator.weight_fn()
        counts = {"cleaned": 0, "archived": 0}

        def mutate(conditions: SiteConditions) -> SiteConditions:
            counts["cleaned"] = 0
            counts["archived"] = 0
            remaining = []
            expired = []
            for report in conditions.reports:
                age = now - report.created_at
                if age > archive_after:
                    expired.append(report)
                elif age > stale_after:
                    if not report.stale:
                        counts["cleaned"] += 1
                    remaining.append(report.model_copy(update={"stale": True}))
                else:
                    remaining.append(report)

            # Archive first: reports never leave the active list unpersisted
            if expired:
                self.archive.append_many(slug, expired)
                counts["archived"] = len(expired)

            swept = conditions.model_copy(update={"reports": remaining})
            return apply_composite(swept, weight_of, now)

        self.store.update(slug, mutate)
        return counts["cleaned"], counts["archived"]

    def sweep(self, now: datetime) -> SweepResult:
        """Sweep every park independently; one failing park never blocks others."""
        result = SweepResult()
        for slug in self.slugs:
            try:
                cleaned, archived = self.sweep_park(slug, now)
            except Exception as e:
                logger.error("Sweep failed for %s: %s", slug, e)
                result.errors.append({"park": slug, "error": str(e)})
                continue
            result.cleaned += cleaned
            result.archived += archived
            result.parks += 1

        logger.info(
            "Sweep complete: %d marked stale, %d archived, %d parks, %d errors",
            result.cleaned,
            result.archived,
            result.parks,
            len(result.errors),
        )
        return result


def rain_stopped(
    previous: WeatherSnapshot | None, current: WeatherSnapshot | None
) -> bool:
    """True on the transition from active precipitation to none."""
    if previous is None or current is None:
        return False
    return previous.current.is_raining and not current.current.is_raining


class RainResetService:
    """Clears composite conditions when rain stops, so pre-rain votes don't carry over."""

    def __init__(self, store: ConditionsStore, slugs: list[str]):
        self.store = store
        self.slugs = list(slugs)

    def reset_park(self, slug: str, now: datetime) -> SiteConditions:
        """Drop every derived field; they are rebuilt from post-reset reports only.

        Reports themselves are kept so the sweeper can still age and archive them.
        """

        def mutate(conditions: SiteConditions) -> SiteConditions:
            return conditions.model_copy(
                update={
                    "composite_status": None,
                    "avg_surface": None,
                    "avg_crowd": None,
                    "active_hazards": [],
                    "rain_reset_at": now,
                    "updated_at": now,
                }
            )

        return self.store.update(slug, mutate)

    def check(
        self,
        previous: WeatherSnapshot | None,
        current: WeatherSnapshot | None,
        now: datetime,
    ) -> list[str]:
        """Reset every park if rain just stopped. Returns the slugs that were reset."""
        if not rain_stopped(previous, current):
            return []

        logger.info("Rain stopped - resetting park condition statuses")
        reset = []
        for slug in self.slugs:
            try:
                self.reset_park(slug, now)
                reset.append(slug)
            except Exception as e:
                logger.error("Rain reset failed for %s: %s", slug, e)
        return reset
