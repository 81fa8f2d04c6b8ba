"""Weather snapshot and dry-out estimate data models."""

from datetime import datetime, timedelta
from enum import Enum

from pydantic import Field

from .base import RecordModel


class ConfidenceLevel(str, Enum):
    """Confidence in a dry-out estimate."""

    HIGH = "high"  # light rain, model is reliable
    MEDIUM = "medium"
    LOW = "low"  # heavy rain or currently raining


class CurrentWeather(RecordModel):
    """Current conditions at the weather station."""

    temp: float | None = None
    feels_like: float | None = None
    humidity: float | None = None
    wind_speed: float = Field(default=0.0, description="Wind speed in mph")
    wind_gust: float | None = None
    cloud_cover: float = Field(default=0.0, ge=0, le=100, description="Percent")
    precip_last_1h: float = Field(default=0.0, ge=0, alias="precipLast1h")
    precip_last_3h: float = Field(default=0.0, ge=0, alias="precipLast3h")
    last_rain_at: datetime | None = None
    conditions: str = "unknown"
    description: str = ""

    @property
    def is_raining(self) -> bool:
        return self.precip_last_1h > 0


class HourlyForecast(RecordModel):
    dt: datetime
    temp: float | None = None
    pop: float = Field(default=0.0, ge=0, le=1, description="Probability of precipitation")
    rain_1h: float = Field(default=0.0, ge=0, alias="rain1h")
    conditions: str = "unknown"
    cloud_cover: float = 0.0
    wind_speed: float = 0.0


class WeatherAlert(RecordModel):
    event: str
    sender: str | None = None
    start: datetime | None = None
    end: datetime | None = None
    description: str = ""


class WeatherSnapshot(RecordModel):
    """One weather fetch cycle. Immutable once produced."""

    fetched_at: datetime
    current: CurrentWeather
    hourly: list[HourlyForecast] = Field(default_factory=list)
    alerts: list[WeatherAlert] = Field(default_factory=list)
    recent_rain: bool | None = Field(
        None, description="Explicit recently-rained flag; derived from lastRainAt when unset"
    )

    def recently_rained(self, now: datetime, window_hours: float) -> bool:
        """Whether rain was observed system-wide within ``window_hours`` of ``now``."""
        if self.recent_rain is not None:
            return self.recent_rain
        if self.current.is_raining:
            return True
        last_rain = self.current.last_rain_at
        if last_rain is None:
            return False
        return now - last_rain <= timedelta(hours=window_hours)


class DryFactors(RecordModel):
    """Intermediate values of the dry-out model, kept for auditability."""

    precip_mm: float
    base_dry_hours: float
    surface_modifier: float
    sun_modifier: float
    drainage_modifier: float
    wind_modifier: float
    total_dry_hours: float


class DryEstimate(RecordModel):
    """Dry-out prediction for one park."""

    is_dry: bool
    estimated_dry_at: datetime | None = None
    confidence: ConfidenceLevel = ConfidenceLevel.HIGH
    note: str | None = None
    factors: DryFactors | None = None


class DryEstimatesOutput(RecordModel):
    """Persisted dry-estimates document for all parks."""

    computed_at: datetime
    last_rain_ended_at: datetime | None = None
    estimates: dict[str, DryEstimate] = Field(default_factory=dict)
