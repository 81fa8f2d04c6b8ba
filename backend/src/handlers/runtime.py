"""Lazily-initialized AWS clients and services shared by all handlers.

Connections must be re-established after a Lambda SnapStart restore, so nothing
here is created at import time.
"""

import os

import boto3

from services.aggregation_service import CompositeAggregator
from services.archive_store import ReportArchive
from services.conditions_store import ConditionsStore
from services.reputation_service import ReputationLedger
from services.static_json_generator import StaticJsonPublisher
from utils.park_loader import ParkLoader

ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")

_dynamodb = None
_s3_client = None
_park_loader = None
_conditions_store = None
_ledger = None
_archive = None
_publisher = None


def reset_services():
    """Reset all lazy-initialized services. Useful for testing.

    Also resets boto3's default session so that subsequent calls to
    boto3.resource() create fresh sessions within the current mock context
    (e.g., moto's mock_aws).
    """
    global _dynamodb, _s3_client, _park_loader, _conditions_store
    global _ledger, _archive, _publisher
    _dynamodb = None
    _s3_client = None
    _park_loader = None
    _conditions_store = None
    _ledger = None
    _archive = None
    _publisher = None
    boto3.DEFAULT_SESSION = None


def _region() -> str:
    return os.environ.get("AWS_DEFAULT_REGION", "us-east-1")


def get_dynamodb():
    """Get or create DynamoDB resource (lazy init for SnapStart)."""
    global _dynamodb
    if _dynamodb is None:
        _dynamodb = boto3.resource("dynamodb", region_name=_region())
    return _dynamodb


def get_s3_client():
    """Get or create S3 client (lazy init for SnapStart)."""
    global _s3_client
    if _s3_client is None:
        _s3_client = boto3.client("s3", region_name=_region())
    return _s3_client


def get_park_loader() -> ParkLoader:
    global _park_loader
    if _park_loader is None:
        data_file = os.environ.get("PARKS_FILE")
        _park_loader = ParkLoader(data_file) if data_file else ParkLoader()
    return _park_loader


def get_conditions_store() -> ConditionsStore:
    global _conditions_store
    if _conditions_store is None:
        _conditions_store = ConditionsStore(
            get_dynamodb().Table(
                os.environ.get("CONDITIONS_TABLE", f"parkcheck-conditions-{ENVIRONMENT}")
            )
        )
    return _conditions_store


def get_ledger() -> ReputationLedger | None:
    """The reputation ledger, or None when no reporters table is configured."""
    global _ledger
    if _ledger is None:
        table_name = os.environ.get("REPORTERS_TABLE", f"parkcheck-reporters-{ENVIRONMENT}")
        if not table_name:
            return None
        _ledger = ReputationLedger(get_dynamodb().Table(table_name))
    return _ledger


def get_archive() -> ReportArchive:
    global _archive
    if _archive is None:
        _archive = ReportArchive(
            get_dynamodb().Table(
                os.environ.get("ARCHIVE_TABLE", f"parkcheck-archive-{ENVIRONMENT}")
            )
        )
    return _archive


def get_aggregator() -> CompositeAggregator:
    return CompositeAggregator(get_conditions_store(), get_archive(), get_ledger())


def get_publisher() -> StaticJsonPublisher:
    global _publisher
    if _publisher is None:
        _publisher = StaticJsonPublisher(
            get_s3_client(),
            os.environ.get("WEBSITE_BUCKET", f"parkcheck-website-{ENVIRONMENT}"),
        )
    return _publisher
