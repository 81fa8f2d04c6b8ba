"""Lambda handler for queued report submissions.

Triggered by an SQS queue of pending submissions. Each message body is one raw
submission. Rejected submissions are logged and dropped; only unexpected
failures are reported back as batch item failures so SQS redelivers them.
"""

import json
import logging
import os
from datetime import UTC, datetime

from handlers.runtime import get_aggregator, get_ledger, get_park_loader, get_publisher
from services.errors import ValidationRejected
from services.ingestion_service import ReportIngestionService
from utils.time_utils import now_utc

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")
PUBLISH_CONDITIONS = os.environ.get("PUBLISH_CONDITIONS", "true").lower() == "true"


def _read_weather():
    return get_publisher().read_weather()


def get_ingestion_service() -> ReportIngestionService:
    return ReportIngestionService(
        get_park_loader().slugs(),
        get_aggregator(),
        get_ledger(),
        weather_provider=_read_weather,
    )


def received_at(record: dict) -> datetime | None:
    """When SQS first received the message, from its ``SentTimestamp`` attribute.

    The value is stable across redeliveries, so it dates submissions that
    carry no timestamp of their own.
    """
    sent = (record.get("attributes") or {}).get("SentTimestamp")
    if not sent:
        return None
    try:
        return datetime.fromtimestamp(int(sent) / 1000, UTC)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning(f"Ignoring bad SentTimestamp {sent!r} on {record.get('messageId')}")
        return None


def process_record(service: ReportIngestionService, record: dict) -> str:
    """Process one SQS record. Returns "accepted" or "rejected"."""
    try:
        raw = json.loads(record.get("body") or "")
    except json.JSONDecodeError:
        logger.warning(f"Dropping unparseable message {record.get('messageId')}")
        return "rejected"

    try:
        conditions = service.submit(raw, now_utc(), received_at=received_at(record))
    except ValidationRejected as e:
        logger.info(f"Dropping rejected submission {record.get('messageId')}: {e.reason}")
        return "rejected"

    if PUBLISH_CONDITIONS:
        try:
            get_publisher().publish_conditions(conditions)
        except Exception as e:
            # The record is already stored; the next static JSON run republishes it
            logger.warning(f"Failed to publish conditions for {conditions.slug}: {e}")
    return "accepted"


def report_processor_handler(event, context):
    """Process a batch of queued submissions.

    Returns:
        SQS partial batch response listing the messages to retry
    """
    records = event.get("Records", [])
    logger.info(f"Report processor started at {datetime.now(UTC).isoformat()}")
    logger.info(f"Environment: {ENVIRONMENT}, {len(records)} records")

    service = get_ingestion_service()
    failures = []
    counts = {"accepted": 0, "rejected": 0, "failed": 0}

    for record in records:
        try:
            counts[process_record(service, record)] += 1
        except Exception as e:
            logger.error(
                f"Failed to process message {record.get('messageId')}: {e}", exc_info=True
            )
            counts["failed"] += 1
            failures.append({"itemIdentifier": record.get("messageId")})

    logger.info(f"Report batch complete: {counts}")
    return {"batchItemFailures": failures}
