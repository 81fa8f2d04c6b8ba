"""Append-only archival storage for reports leaving a park's active list.

Items are partitioned by the UTC day of the report's own timestamp
(``day = "YYYY/MM/DD"``) and keyed within the day by ``park#fingerprint``.
Writes never overwrite: re-archiving the same report is a no-op.
"""

import logging

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from models.report import ArchivedReport, Report
from utils.dynamodb_utils import is_conditional_check_failure, item_to_dict, model_to_item
from utils.time_utils import archive_day_key

logger = logging.getLogger(__name__)


class ReportArchive:
    """Service for archiving reports by day."""

    def __init__(self, table):
        """Initialize the archive.

        Args:
            table: DynamoDB table with hash key ``day`` and range key ``archiveKey``
        """
        self.table = table

    def append(self, park: str, report: Report) -> bool:
        """Archive one report. Returns False if it was already archived."""
        archived = ArchivedReport(**report.model_dump(), park=park)
        day = archive_day_key(report.created_at)
        item = model_to_item(
            archived, day=day, archiveKey=f"{park}#{report.fingerprint}"
        )
        try:
            self.table.put_item(
                Item=item, ConditionExpression=Attr("archiveKey").not_exists()
            )
            return True
        except ClientError as e:
            if is_conditional_check_failure(e):
                logger.debug("Report %s already archived for %s", report.fingerprint, day)
                return False
            logger.error("Failed to archive report for %s on %s: %s", park, day, e)
            raise

    def append_many(self, park: str, reports: list[Report]) -> int:
        return sum(1 for report in reports if self.append(park, report))

    def get_day(self, day: str) -> list[ArchivedReport]:
        """All reports archived for a UTC day (``YYYY/MM/DD``)."""
        reports = []
        query_kwargs = {"KeyConditionExpression": Key("day").eq(day)}
        try:
            while True:
                response = self.table.query(**query_kwargs)
                for item in response.get("Items", []):
                    data = item_to_dict(item)
                    data.pop("day", None)
                    data.pop("archiveKey", None)
                    reports.append(ArchivedReport.model_validate(data))
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    break
                query_kwargs["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error("Failed to read archive for %s: %s", day, e)
            raise
        return reports
