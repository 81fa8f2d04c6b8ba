"""Data models for ParkCheck."""

from .conditions import SiteConditions
from .notification import AlertState, NotificationType, ParkNotification
from .park import Drainage, Location, Park, SunExposure, SurfaceType
from .report import ArchivedReport, Report, ReporterChannel, ReportStatus
from .reporter import LevelProgress, ReporterProfile, ReporterStats, ReputationLevel
from .weather import (
    ConfidenceLevel,
    CurrentWeather,
    DryEstimate,
    DryEstimatesOutput,
    DryFactors,
    HourlyForecast,
    WeatherAlert,
    WeatherSnapshot,
)

__all__ = [
    "Report",
    "ArchivedReport",
    "ReportStatus",
    "ReporterChannel",
    "SiteConditions",
    "ReporterProfile",
    "ReporterStats",
    "ReputationLevel",
    "LevelProgress",
    "Park",
    "Location",
    "SurfaceType",
    "SunExposure",
    "Drainage",
    "WeatherSnapshot",
    "CurrentWeather",
    "HourlyForecast",
    "WeatherAlert",
    "DryEstimate",
    "DryEstimatesOutput",
    "DryFactors",
    "ConfidenceLevel",
    "AlertState",
    "NotificationType",
    "ParkNotification",
]
