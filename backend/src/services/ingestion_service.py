"""Accepts one report submission end to end.

validate -> rate limit -> aggregate -> reputation. Rejections raise before any
state is touched.
"""

import logging
from datetime import datetime
from typing import Any, Callable

from models.conditions import SiteConditions
from models.weather import WeatherSnapshot
from services.aggregation_service import CompositeAggregator
from services.errors import RateLimited, ValidationRejected
from services.report_validator import validate_submission
from services.reputation_service import ReputationLedger, is_anonymous
from utils.constants import FIRST_AFTER_RAIN_WINDOW_HOURS, MAX_REPORTS_PER_DAY

logger = logging.getLogger(__name__)

WeatherProvider = Callable[[], WeatherSnapshot | None]


class ReportIngestionService:
    """Turns raw submissions into ledger and conditions updates."""

    def __init__(
        self,
        park_slugs,
        aggregator: CompositeAggregator,
        ledger: ReputationLedger | None = None,
        weather_provider: WeatherProvider | None = None,
    ):
        self.park_slugs = set(park_slugs)
        self.aggregator = aggregator
        self.ledger = ledger
        self.weather_provider = weather_provider

    def _recently_rained(self, now: datetime) -> bool:
        if self.weather_provider is None:
            return False
        try:
            weather = self.weather_provider()
        except Exception as e:
            logger.warning("Weather snapshot unavailable for rain bonus: %s", e)
            return False
        if weather is None:
            return False
        return weather.recently_rained(now, FIRST_AFTER_RAIN_WINDOW_HOURS)

    def submit(
        self, raw: Any, now: datetime, received_at: datetime | None = None
    ) -> SiteConditions:
        """Validate and apply one submission.

        A submission without its own ``timestamp`` is dated ``received_at``
        (the queue's delivery time) when given, otherwise ``now``. Pass a
        stable ``received_at`` for queued messages so that a redelivered
        message keeps its fingerprint and is counted once.

        Raises:
            ValidationRejected: malformed submission or unknown park
            RateLimited: reporter already hit the daily report limit
        """
        result = validate_submission(raw, self.park_slugs, now, received_at=received_at)
        if not result.ok:
            raise ValidationRejected(result.reason)

        slug = result.park
        report = result.report
        tracked = self.ledger is not None and not is_anonymous(report.reporter_id)

        if tracked:
            today = self.ledger.reports_today(report.reporter_id, now)
            if today >= MAX_REPORTS_PER_DAY:
                logger.info("Rate limited reporter %s (%d today)", report.reporter_id, today)
                raise RateLimited(f"Daily report limit reached ({MAX_REPORTS_PER_DAY})")

        recently_rained = self._recently_rained(now) if tracked else False
        insertion = self.aggregator.insert(slug, report, now, recently_rained)

        # A duplicate may be a redelivery after the ledger write was lost;
        # the ledger skips reports it has already counted.
        if tracked:
            self.ledger.record(
                report.reporter_id, report, slug, insertion.first_after_rain, now
            )

        conditions = insertion.conditions
        if insertion.duplicate:
            logger.info("Duplicate submission for %s ignored", slug)
            return conditions

        logger.info(
            "Accepted %s report for %s (composite=%s, fresh avgSurface=%s)",
            report.status,
            slug,
            conditions.composite_status,
            conditions.avg_surface,
        )
        return conditions
