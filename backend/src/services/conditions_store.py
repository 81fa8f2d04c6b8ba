"""DynamoDB persistence for per-park conditions records.

One item per park slug. Every write is conditional on the ``version`` read, so
ingestion, sweeps and rain resets touching the same park never interleave a
read-modify-write; writes to different parks are independent.
"""

import logging
from typing import Any, Callable

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from models.conditions import SiteConditions
from models.report import ReportStatus
from services.errors import ConcurrentModificationError, InternalInconsistency
from utils.constants import MAX_WRITE_ATTEMPTS
from utils.dynamodb_utils import is_conditional_check_failure, item_to_dict, model_to_item
from utils.time_utils import parse_timestamp

logger = logging.getLogger(__name__)

VALID_STATUSES = {s.value for s in ReportStatus}

Mutation = Callable[[SiteConditions], SiteConditions | None]


def _is_score(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 1 <= value <= 5


def _is_average(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and 1 <= value <= 5


def _is_status(value: Any) -> bool:
    return value in VALID_STATUSES


def _check_field(record: dict, field: str, is_valid: Callable[[Any], bool]) -> None:
    value = record.get(field)
    if value is not None and not is_valid(value):
        raise InternalInconsistency(field, value)


def _null_invalid_fields(
    record: dict, checks: dict[str, Callable[[Any], bool]], context: str
) -> dict:
    for field, is_valid in checks.items():
        try:
            _check_field(record, field, is_valid)
        except InternalInconsistency as e:
            logger.warning("%s: %s; treating as null", context, e)
            record[field] = None
    return record


def sanitize_conditions(data: dict) -> dict:
    """Null out persisted values that violate record invariants.

    Reports without a readable ``createdAt`` cannot be aged and are dropped
    with an error log.
    """
    slug = data.get("slug", "?")
    _null_invalid_fields(
        data,
        {
            "compositeStatus": _is_status,
            "avgSurface": _is_average,
            "avgCrowd": _is_average,
        },
        f"conditions[{slug}]",
    )

    reports = []
    for idx, raw in enumerate(data.get("reports") or []):
        context = f"conditions[{slug}].reports[{idx}]"
        try:
            if parse_timestamp(raw.get("createdAt")) is None:
                raise InternalInconsistency("createdAt", raw.get("createdAt"))
        except (InternalInconsistency, ValueError) as e:
            logger.error("%s: %s; dropping unreadable report %s", context, e, raw)
            continue
        reports.append(
            _null_invalid_fields(
                dict(raw),
                {"status": _is_status, "surface": _is_score, "crowd": _is_score},
                context,
            )
        )
    data["reports"] = reports
    return data


class ConditionsStore:
    """Versioned read/modify/write access to ``SiteConditions`` records."""

    def __init__(self, table):
        """Initialize the store.

        Args:
            table: DynamoDB table keyed by park ``slug``
        """
        self.table = table

    def load(self, slug: str) -> tuple[SiteConditions, int]:
        """Return the park's conditions and the version they were read at (0 = new)."""
        try:
            response = self.table.get_item(Key={"slug": slug})
        except ClientError as e:
            logger.error("Failed to read conditions for %s: %s", slug, e)
            raise

        item = item_to_dict(response.get("Item"))
        if not item:
            return SiteConditions.empty(slug), 0
        version = int(item.pop("version", 0))
        return SiteConditions.model_validate(sanitize_conditions(item)), version

    def get(self, slug: str) -> SiteConditions:
        conditions, _ = self.load(slug)
        return conditions

    def save(self, conditions: SiteConditions, expected_version: int) -> int:
        """Conditionally write the record; returns the new version.

        Raises:
            ClientError: ConditionalCheckFailedException when another writer won
        """
        item = model_to_item(conditions, version=expected_version + 1)
        if expected_version == 0:
            condition = Attr("slug").not_exists()
        else:
            condition = Attr("version").eq(expected_version)
        self.table.put_item(Item=item, ConditionExpression=condition)
        return expected_version + 1

    def update(self, slug: str, mutate: Mutation) -> SiteConditions:
        """Apply ``mutate`` under optimistic concurrency, retrying on conflicts.

        ``mutate`` receives the current record and returns the new one, or None
        to leave the record untouched. It may run more than once, so any side
        effects it has must be idempotent.
        """
        for attempt in range(1, MAX_WRITE_ATTEMPTS + 1):
            current, version = self.load(slug)
            updated = mutate(current)
            if updated is None:
                return current
            try:
                self.save(updated, version)
                return updated
            except ClientError as e:
                if is_conditional_check_failure(e):
                    logger.info(
                        "Conditions for %s changed concurrently (attempt %d), retrying",
                        slug,
                        attempt,
                    )
                    continue
                logger.error("Failed to save conditions for %s: %s", slug, e)
                raise

        raise ConcurrentModificationError(f"park:{slug}", MAX_WRITE_ATTEMPTS)
