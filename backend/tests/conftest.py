"""Pytest configuration and shared fixtures."""

import os
from datetime import UTC, datetime, timedelta
from unittest.mock import Mock

import boto3
import pytest
from moto import mock_aws

from models.park import Park
from models.report import Report
from models.weather import CurrentWeather, WeatherSnapshot

# Set environment variables before any handler imports
os.environ.setdefault("AWS_ACCESS_KEY_ID", "testing")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "testing")
os.environ.setdefault("AWS_SECURITY_TOKEN", "testing")
os.environ.setdefault("AWS_SESSION_TOKEN", "testing")
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"

CONDITIONS_TABLE = "parkcheck-conditions-test"
REPORTERS_TABLE = "parkcheck-reporters-test"
ARCHIVE_TABLE = "parkcheck-archive-test"
WEBSITE_BUCKET = "parkcheck-website-test"

# 2026-06-15 16:00 UTC is noon in New York (daylight)
NOW = datetime(2026, 6, 15, 16, 0, tzinfo=UTC)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def make_report():
    """Factory for reports created ``minutes_ago`` before NOW."""

    def _make(
        status="dry",
        reporter_id="anonymous",
        minutes_ago=10,
        surface=None,
        crowd=None,
        hazards=None,
        notes="",
        **kwargs,
    ) -> Report:
        return Report(
            reporter_id=reporter_id,
            created_at=NOW - timedelta(minutes=minutes_ago),
            status=status,
            surface=surface,
            crowd=crowd,
            hazards=hazards or [],
            notes=notes,
            **kwargs,
        )

    return _make


@pytest.fixture
def sample_park():
    """Fast-drying outdoor park."""
    return Park(
        slug="les-coleman",
        name="LES Coleman Skatepark",
        borough="manhattan",
        location={"lat": 40.7115, "lng": -73.9885},
        surface_type="smooth_concrete",
        sun_exposure="full_sun",
        drainage="excellent",
        covered_pct=0,
    )


@pytest.fixture
def covered_park():
    """Park largely under an overpass."""
    return Park(
        slug="cooper-park",
        name="Cooper Park",
        surface_type="rough_concrete",
        sun_exposure="full_shade",
        drainage="poor",
        covered_pct=40,
    )


@pytest.fixture
def dry_weather():
    """Snapshot with no rain in the last day."""
    return WeatherSnapshot(
        fetched_at=NOW,
        current=CurrentWeather(temp=75, wind_speed=5, cloud_cover=10),
    )


@pytest.fixture
def raining_weather():
    return WeatherSnapshot(
        fetched_at=NOW,
        current=CurrentWeather(
            temp=60, wind_speed=8, cloud_cover=100, precip_last_1h=2.5, precip_last_3h=6.0,
            last_rain_at=NOW,
        ),
    )


@pytest.fixture
def mock_dynamodb_table():
    """Create a mock DynamoDB table for testing."""
    mock_table = Mock()
    mock_table.put_item.return_value = {}
    mock_table.get_item.return_value = {}
    mock_table.query.return_value = {"Items": []}
    mock_table.scan.return_value = {"Items": []}
    return mock_table


# ---------------------------------------------------------------------------
# moto-backed AWS resources
# ---------------------------------------------------------------------------


@pytest.fixture
def aws_mock():
    with mock_aws():
        yield


@pytest.fixture
def dynamodb(aws_mock):
    return boto3.resource("dynamodb", region_name="us-east-1")


@pytest.fixture
def conditions_table(dynamodb):
    return dynamodb.create_table(
        TableName=CONDITIONS_TABLE,
        KeySchema=[{"AttributeName": "slug", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "slug", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def reporters_table(dynamodb):
    return dynamodb.create_table(
        TableName=REPORTERS_TABLE,
        KeySchema=[{"AttributeName": "id", "KeyType": "HASH"}],
        AttributeDefinitions=[{"AttributeName": "id", "AttributeType": "S"}],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def archive_table(dynamodb):
    return dynamodb.create_table(
        TableName=ARCHIVE_TABLE,
        KeySchema=[
            {"AttributeName": "day", "KeyType": "HASH"},
            {"AttributeName": "archiveKey", "KeyType": "RANGE"},
        ],
        AttributeDefinitions=[
            {"AttributeName": "day", "AttributeType": "S"},
            {"AttributeName": "archiveKey", "AttributeType": "S"},
        ],
        BillingMode="PAY_PER_REQUEST",
    )


@pytest.fixture
def s3_client(aws_mock):
    client = boto3.client("s3", region_name="us-east-1")
    client.create_bucket(Bucket=WEBSITE_BUCKET)
    return client


@pytest.fixture
def conditions_store(conditions_table):
    from services.conditions_store import ConditionsStore

    return ConditionsStore(conditions_table)


@pytest.fixture
def ledger(reporters_table):
    from services.reputation_service import ReputationLedger

    return ReputationLedger(reporters_table)


@pytest.fixture
def archive(archive_table):
    from services.archive_store import ReportArchive

    return ReportArchive(archive_table)


@pytest.fixture
def aggregator(conditions_store, archive, ledger):
    from services.aggregation_service import CompositeAggregator

    return CompositeAggregator(conditions_store, archive, ledger)


@pytest.fixture
def publisher(s3_client):
    from services.static_json_generator import StaticJsonPublisher

    return StaticJsonPublisher(s3_client, WEBSITE_BUCKET)


@pytest.fixture
def wired_runtime(monkeypatch, conditions_table, reporters_table, archive_table, s3_client):
    """Point the handler runtime getters at the moto tables and bucket."""
    from handlers.runtime import reset_services

    monkeypatch.setenv("CONDITIONS_TABLE", CONDITIONS_TABLE)
    monkeypatch.setenv("REPORTERS_TABLE", REPORTERS_TABLE)
    monkeypatch.setenv("ARCHIVE_TABLE", ARCHIVE_TABLE)
    monkeypatch.setenv("WEBSITE_BUCKET", WEBSITE_BUCKET)
    reset_services()
    yield
    reset_services()
