"""Static JSON document publishing.

Persisted documents are uploaded to S3 and served via CloudFront; the weather
cycle also reads its previous outputs back from here.

Files:
- data/parks/index.json - All parks with their current composite
- data/parks/{slug}/conditions.json - Full conditions record per park
- data/users/stats.json - Reporter ledger export
- data/weather/current.json - Latest weather snapshot
- data/weather/dry-estimates.json - Dry-out estimates for all parks
- data/weather/alert-state.json - Alert debounce state
- data/notifications.json - Notification feed, newest first
"""

import json
import logging
import os
from datetime import UTC, datetime
from typing import Any

import boto3
from botocore.exceptions import ClientError
from pydantic import BaseModel, ValidationError

from models.conditions import SiteConditions
from models.notification import AlertState, ParkNotification
from models.park import Park
from models.reporter import ReporterStats
from models.weather import DryEstimatesOutput, WeatherSnapshot
from services.conditions_store import ConditionsStore
from services.reputation_service import ReputationLedger
from utils.constants import MAX_NOTIFICATIONS

logger = logging.getLogger(__name__)

ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")
WEBSITE_BUCKET = os.environ.get("WEBSITE_BUCKET", f"parkcheck-website-{ENVIRONMENT}")
AWS_REGION = os.environ.get("AWS_DEFAULT_REGION", "us-east-1")

PARKS_INDEX_KEY = "data/parks/index.json"
USER_STATS_KEY = "data/users/stats.json"
WEATHER_KEY = "data/weather/current.json"
DRY_ESTIMATES_KEY = "data/weather/dry-estimates.json"
ALERT_STATE_KEY = "data/weather/alert-state.json"
NOTIFICATIONS_KEY = "data/notifications.json"

SHORT_CACHE = "public, max-age=60"
NO_CACHE = "no-cache"


def conditions_key(slug: str) -> str:
    return f"data/parks/{slug}/conditions.json"


def park_summary(
    park: Park, conditions: SiteConditions | None, estimate: dict | None = None
) -> dict[str, Any]:
    """One entry of the parks index."""
    summary = park.to_record()
    if conditions is not None:
        record = conditions.to_record()
        for field in (
            "compositeStatus",
            "avgSurface",
            "avgCrowd",
            "activeHazards",
            "reportCount",
            "lastReportAt",
        ):
            summary[field] = record[field]
    if estimate is not None:
        summary["isDry"] = estimate.get("isDry")
        summary["estimatedDryAt"] = estimate.get("estimatedDryAt")
    return summary


class StaticJsonPublisher:
    """Reads and writes the persisted JSON documents in S3."""

    def __init__(self, s3_client=None, bucket: str | None = None):
        self.s3_client = s3_client or boto3.client("s3", region_name=AWS_REGION)
        self.bucket = bucket or WEBSITE_BUCKET

    def get_json(self, key: str) -> Any | None:
        """Fetch and decode a document; None when it does not exist yet."""
        try:
            response = self.s3_client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") in ("NoSuchKey", "404"):
                return None
            logger.error(f"Failed to read s3://{self.bucket}/{key}: {e}")
            raise
        return json.loads(response["Body"].read())

    def put_json(self, key: str, data: Any, cache_control: str = SHORT_CACHE) -> int:
        """Upload a document. Returns its size in bytes."""
        content = json.dumps(data, indent=None, separators=(",", ":"))
        try:
            self.s3_client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=content.encode("utf-8"),
                ContentType="application/json",
                CacheControl=cache_control,
            )
            logger.info(f"Uploaded {key} to s3://{self.bucket}/{key}")
        except ClientError as e:
            logger.error(f"Failed to upload {key} to S3: {e}")
            raise
        return len(content)

    def _get_model(self, key: str, model: type[BaseModel]):
        data = self.get_json(key)
        if data is None:
            return None
        try:
            return model.model_validate(data)
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable document {key}: {e}")
            return None

    def _put_model(self, key: str, model: BaseModel, cache_control: str = SHORT_CACHE) -> int:
        return self.put_json(key, model.model_dump(mode="json", by_alias=True), cache_control)

    # Weather cycle state

    def read_weather(self) -> WeatherSnapshot | None:
        return self._get_model(WEATHER_KEY, WeatherSnapshot)

    def write_weather(self, snapshot: WeatherSnapshot) -> int:
        return self._put_model(WEATHER_KEY, snapshot)

    def read_dry_estimates(self) -> DryEstimatesOutput | None:
        return self._get_model(DRY_ESTIMATES_KEY, DryEstimatesOutput)

    def write_dry_estimates(self, output: DryEstimatesOutput) -> int:
        return self._put_model(DRY_ESTIMATES_KEY, output)

    def read_alert_state(self) -> AlertState:
        return self._get_model(ALERT_STATE_KEY, AlertState) or AlertState()

    def write_alert_state(self, state: AlertState) -> int:
        return self._put_model(ALERT_STATE_KEY, state, NO_CACHE)

    def read_notifications(self) -> list[ParkNotification]:
        data = self.get_json(NOTIFICATIONS_KEY) or []
        notifications = []
        for entry in data:
            try:
                notifications.append(ParkNotification.model_validate(entry))
            except ValidationError as e:
                logger.warning(f"Dropping unreadable notification: {e}")
        return notifications

    def append_notifications(self, new: list[ParkNotification]) -> list[ParkNotification]:
        """Prepend new notifications to the feed, keeping the newest entries."""
        if not new:
            return []
        feed = (list(reversed(new)) + self.read_notifications())[:MAX_NOTIFICATIONS]
        self.put_json(NOTIFICATIONS_KEY, [n.to_record() for n in feed])
        return feed

    # Published views

    def publish_conditions(self, conditions: SiteConditions) -> int:
        return self._put_model(conditions_key(conditions.slug), conditions)

    def publish_stats(self, stats: ReporterStats) -> int:
        return self._put_model(USER_STATS_KEY, stats)

    def publish_parks_index(
        self,
        parks: list[Park],
        conditions: dict[str, SiteConditions],
        estimates: DryEstimatesOutput | None = None,
        now: datetime | None = None,
    ) -> int:
        estimate_records = {}
        if estimates is not None:
            estimate_records = estimates.to_record()["estimates"]
        output = {
            "generatedAt": (now or datetime.now(UTC)).isoformat(),
            "count": len(parks),
            "parks": [
                park_summary(p, conditions.get(p.slug), estimate_records.get(p.slug))
                for p in parks
            ],
        }
        return self.put_json(PARKS_INDEX_KEY, output)


class StaticJsonGenerator:
    """Regenerates every published view from the stores."""

    def __init__(
        self,
        publisher: StaticJsonPublisher,
        store: ConditionsStore,
        ledger: ReputationLedger | None,
        parks: list[Park],
    ):
        self.publisher = publisher
        self.store = store
        self.ledger = ledger
        self.parks = parks

    def generate_all(self, now: datetime | None = None) -> dict[str, Any]:
        """Generate and upload all static JSON files.

        Returns:
            Dict with generation statistics and results
        """
        now = now or datetime.now(UTC)
        logger.info("Starting static JSON generation")
        results = {"generated_at": now.isoformat(), "files": [], "errors": []}

        conditions = {}
        for park in self.parks:
            key = conditions_key(park.slug)
            try:
                conditions[park.slug] = self.store.get(park.slug)
                size = self.publisher.publish_conditions(conditions[park.slug])
                results["files"].append({"file": key, "size_bytes": size})
            except Exception as e:
                logger.error(f"Failed to generate {key}: {e}")
                results["errors"].append({"file": key, "error": str(e)})

        try:
            estimates = self.publisher.read_dry_estimates()
            size = self.publisher.publish_parks_index(self.parks, conditions, estimates, now)
            results["files"].append({"file": PARKS_INDEX_KEY, "size_bytes": size})
        except Exception as e:
            logger.error(f"Failed to generate {PARKS_INDEX_KEY}: {e}")
            results["errors"].append({"file": PARKS_INDEX_KEY, "error": str(e)})

        if self.ledger is not None:
            try:
                size = self.publisher.publish_stats(self.ledger.export_stats(now))
                results["files"].append({"file": USER_STATS_KEY, "size_bytes": size})
            except Exception as e:
                logger.error(f"Failed to generate {USER_STATS_KEY}: {e}")
                results["errors"].append({"file": USER_STATS_KEY, "error": str(e)})

        results["success"] = len(results["errors"]) == 0
        logger.info(
            f"Static JSON generation complete: {len(results['files'])} files, "
            f"{len(results['errors'])} errors"
        )
        return results
