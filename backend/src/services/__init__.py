"""Services for the ParkCheck backend."""

from .aggregation_service import CompositeAggregator
from .archive_store import ReportArchive
from .conditions_store import ConditionsStore
from .dry_out_service import DryOutEstimator
from .ingestion_service import ReportIngestionService
from .lifecycle_service import LifecycleSweeper, RainResetService
from .reputation_service import ReputationLedger
from .weather_service import OpenWeatherMapService

__all__ = [
    "CompositeAggregator",
    "ConditionsStore",
    "DryOutEstimator",
    "LifecycleSweeper",
    "OpenWeatherMapService",
    "RainResetService",
    "ReportArchive",
    "ReportIngestionService",
    "ReputationLedger",
]
