"""Reporter reputation ledger.

The ledger is the only writer of ``ReporterProfile`` records. Each reporter is
one DynamoDB item guarded by a ``version`` attribute, so concurrent writes for
the same reporter are serialized while different reporters proceed in parallel.
"""

import logging
from datetime import datetime, timedelta

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from models.report import Report, ReporterChannel
from models.reporter import LevelProgress, ReporterProfile, ReporterStats, ReputationLevel
from services.errors import ConcurrentModificationError
from utils.constants import (
    ANONYMOUS_REPORTER,
    ANONYMOUS_WEIGHT,
    BASE_REPORT_POINTS,
    FIRST_AFTER_RAIN_POINTS,
    FIRST_AFTER_RAIN_WINDOW_HOURS,
    MAX_WRITE_ATTEMPTS,
    MIN_TENURE_REPORTS,
    NEW_REPORTER_WEIGHT,
    PHOTO_POINTS,
    RECENT_FINGERPRINTS_KEPT,
    REPUTATION_LEVELS,
)
from utils.dynamodb_utils import is_conditional_check_failure, item_to_dict, model_to_item
from utils.time_utils import is_yesterday, utc_day

logger = logging.getLogger(__name__)

LEADERBOARD_PERIODS = {"all": None, "month": 30, "week": 7}


def is_anonymous(reporter_id: str | None) -> bool:
    return not reporter_id or reporter_id == ANONYMOUS_REPORTER


def level_for(reputation: int) -> ReputationLevel:
    for level, min_points, _ in REPUTATION_LEVELS:
        if reputation >= min_points:
            return ReputationLevel(level)
    return ReputationLevel.ROOKIE


def weight_for(profile: ReporterProfile | None) -> float:
    """Vote weight for a reporter profile (None = unknown reporter)."""
    if profile is None:
        return ANONYMOUS_WEIGHT
    if profile.report_count < MIN_TENURE_REPORTS:
        return NEW_REPORTER_WEIGHT
    for _, min_points, weight in REPUTATION_LEVELS:
        if profile.reputation >= min_points:
            return weight
    return REPUTATION_LEVELS[-1][2]


def level_progress(reputation: int) -> LevelProgress:
    """Progress toward the next reputation level, as a whole percentage."""
    levels = REPUTATION_LEVELS
    for idx, (level, min_points, _) in enumerate(levels):
        if reputation >= min_points:
            if idx == 0:
                return LevelProgress(current=ReputationLevel(level), pct=100)
            next_level, next_min, _ = levels[idx - 1]
            span = next_min - min_points
            pct = min(100, round((reputation - min_points) / span * 100))
            return LevelProgress(
                current=ReputationLevel(level),
                next=ReputationLevel(next_level),
                points_to_next=next_min - reputation,
                pct=pct,
            )
    return LevelProgress(current=ReputationLevel.ROOKIE, pct=0)


def is_first_after_rain(
    site_reports: list[Report], recently_rained: bool, now: datetime
) -> bool:
    """True when rain was seen and nobody has reported at the park in the lookback window.

    The 6h lookback is deliberately independent of the 4h freshness window.
    """
    if not recently_rained:
        return False
    window = timedelta(hours=FIRST_AFTER_RAIN_WINDOW_HOURS)
    return not any(now - r.created_at < window for r in site_reports)


def points_for(report: Report, first_after_rain: bool) -> int:
    points = BASE_REPORT_POINTS
    if first_after_rain:
        points += FIRST_AFTER_RAIN_POINTS
    if report.source == ReporterChannel.VERIFIED and report.photos:
        points += PHOTO_POINTS
    return points


def next_streak(last_report_at: datetime | None, streak: int, now: datetime) -> int:
    if last_report_at is None:
        return 1
    if utc_day(last_report_at) == utc_day(now):
        return streak
    if is_yesterday(last_report_at, now):
        return streak + 1
    return 1


def reports_today_count(profile: ReporterProfile | None, now: datetime) -> int:
    if profile is None or profile.last_report_at is None:
        return 0
    if utc_day(profile.last_report_at) != utc_day(now):
        return 0
    return profile.today_report_count


def apply_report(
    profile: ReporterProfile,
    report: Report,
    park_slug: str,
    first_after_rain: bool,
    now: datetime,
) -> ReporterProfile:
    """Return a new profile with one accepted report applied."""
    reputation = profile.reputation + points_for(report, first_after_rain)
    parks = list(profile.parks)
    if park_slug not in parks:
        parks.append(park_slug)
    fingerprints = [report.fingerprint] + profile.recent_fingerprints
    return profile.model_copy(
        update={
            "report_count": profile.report_count + 1,
            "today_report_count": reports_today_count(profile, now) + 1,
            "streak": next_streak(profile.last_report_at, profile.streak, now),
            "reputation": reputation,
            "level": level_for(reputation).value,
            "parks": parks,
            "last_report_at": now,
            "recent_fingerprints": fingerprints[:RECENT_FINGERPRINTS_KEPT],
        }
    )


class ReputationLedger:
    """Service for reading and updating reporter reputation."""

    def __init__(self, table):
        """Initialize the ledger.

        Args:
            table: DynamoDB table keyed by reporter ``id``
        """
        self.table = table

    def _load(self, reporter_id: str) -> tuple[ReporterProfile | None, int]:
        try:
            response = self.table.get_item(Key={"id": reporter_id})
        except ClientError as e:
            logger.error("Failed to read reporter %s: %s", reporter_id, e)
            raise

        item = item_to_dict(response.get("Item"))
        if not item:
            return None, 0
        version = int(item.pop("version", 0))
        return ReporterProfile.model_validate(item), version

    def _save(self, profile: ReporterProfile, expected_version: int) -> None:
        item = model_to_item(
            profile,
            version=expected_version + 1,
            recentFingerprints=profile.recent_fingerprints,
        )
        if expected_version == 0:
            condition = Attr("id").not_exists()
        else:
            condition = Attr("version").eq(expected_version)
        self.table.put_item(Item=item, ConditionExpression=condition)

    def get_profile(self, reporter_id: str) -> ReporterProfile | None:
        if is_anonymous(reporter_id):
            return None
        profile, _ = self._load(reporter_id)
        return profile

    def weight_of(self, reporter_id: str | None) -> float:
        if is_anonymous(reporter_id):
            return ANONYMOUS_WEIGHT
        return weight_for(self.get_profile(reporter_id))

    def reports_today(self, reporter_id: str, now: datetime) -> int:
        if is_anonymous(reporter_id):
            return 0
        return reports_today_count(self.get_profile(reporter_id), now)

    def record(
        self,
        reporter_id: str,
        report: Report,
        park_slug: str,
        first_after_rain: bool,
        now: datetime,
    ) -> ReporterProfile | None:
        """Apply an accepted report to the reporter's profile.

        ``first_after_rain`` must be decided against the park record the report
        was committed to (see ``CompositeAggregator.insert``), so that only one
        of several concurrent reports can earn the bonus.

        Anonymous reporters have no profile and return None. Replaying a
        report already counted for this reporter returns the profile unchanged.

        Raises:
            ConcurrentModificationError: if the optimistic write keeps losing
        """
        if is_anonymous(reporter_id):
            return None

        for _ in range(MAX_WRITE_ATTEMPTS):
            profile, version = self._load(reporter_id)
            if profile is None:
                profile = ReporterProfile(id=reporter_id, joined_at=now)
            elif report.fingerprint in profile.recent_fingerprints:
                logger.info("Report replay ignored for reporter %s", reporter_id)
                return profile

            updated = apply_report(profile, report, park_slug, first_after_rain, now)
            try:
                self._save(updated, version)
            except ClientError as e:
                if is_conditional_check_failure(e):
                    logger.info("Reporter %s changed concurrently, retrying", reporter_id)
                    continue
                logger.error("Failed to save reporter %s: %s", reporter_id, e)
                raise

            logger.info(
                "Reporter %s: +%d points (reputation=%d, level=%s, streak=%d)",
                reporter_id,
                updated.reputation - profile.reputation,
                updated.reputation,
                updated.level,
                updated.streak,
            )
            return updated

        raise ConcurrentModificationError(f"reporter:{reporter_id}", MAX_WRITE_ATTEMPTS)

    def get_all_profiles(self) -> list[ReporterProfile]:
        profiles = []
        scan_kwargs = {}
        try:
            while True:
                response = self.table.scan(**scan_kwargs)
                for item in response.get("Items", []):
                    data = item_to_dict(item)
                    data.pop("version", None)
                    profiles.append(ReporterProfile.model_validate(data))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                scan_kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error("Failed to scan reporter ledger: %s", e)
            raise
        return profiles

    def leaderboard(
        self, period: str = "all", now: datetime | None = None, limit: int | None = None
    ) -> list[ReporterProfile]:
        """Reporters by reputation, optionally limited to recently active ones."""
        if period not in LEADERBOARD_PERIODS:
            raise ValueError(f"Unknown leaderboard period: {period}")
        profiles = self.get_all_profiles()
        days = LEADERBOARD_PERIODS[period]
        if days is not None and now is not None:
            cutoff = now - timedelta(days=days)
            profiles = [
                p for p in profiles if p.last_report_at and p.last_report_at > cutoff
            ]
        profiles.sort(key=lambda p: (-p.reputation, p.id))
        return profiles[:limit] if limit else profiles

    def export_stats(self, now: datetime) -> ReporterStats:
        return ReporterStats(updated_at=now, reporters=self.leaderboard("all"))
