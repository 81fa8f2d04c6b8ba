"""OpenWeatherMap One Call client producing weather snapshots."""

import logging
import time
from datetime import UTC, datetime
from typing import Any

import requests

from models.weather import CurrentWeather, HourlyForecast, WeatherAlert, WeatherSnapshot
from services.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


# Retry configuration for API calls
MAX_RETRIES = 3
RETRY_DELAYS = [1, 2, 4]  # Exponential backoff: 1s, 2s, 4s
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}

HOURLY_LOOKBACK = 24
HOURLY_KEPT = 48


def _is_retryable_error(exception: Exception) -> bool:
    """Check if an exception is retryable."""
    if isinstance(exception, requests.exceptions.Timeout):
        return True
    if isinstance(exception, requests.exceptions.ConnectionError):
        return True
    if isinstance(exception, requests.exceptions.HTTPError):
        response = exception.response
        if response is not None and response.status_code in RETRYABLE_STATUS_CODES:
            return True
    return False


def _request_with_retry(method: str, url: str, **kwargs) -> requests.Response:
    """Make an HTTP request with retry logic and exponential backoff.

    Raises:
        requests.exceptions.RequestException: If all retries fail
    """
    last_exception = None

    for attempt in range(MAX_RETRIES):
        try:
            response = requests.request(method, url, **kwargs)
            response.raise_for_status()
            return response
        except requests.exceptions.RequestException as e:
            last_exception = e
            if not _is_retryable_error(e) or attempt == MAX_RETRIES - 1:
                raise

            delay = RETRY_DELAYS[attempt]
            logger.warning(
                f"Request to {url} failed (attempt {attempt + 1}/{MAX_RETRIES}): {e}. "
                f"Retrying in {delay}s..."
            )
            time.sleep(delay)

    raise last_exception


def _epoch(value) -> datetime | None:
    if value is None:
        return None
    return datetime.fromtimestamp(value, UTC)


def _rain(block: dict, key: str = "1h") -> float:
    return float((block.get("rain") or {}).get(key) or 0.0)


def _main_condition(block: dict) -> tuple[str, str]:
    weather = (block.get("weather") or [{}])[0]
    return (weather.get("main") or "unknown").lower(), weather.get("description") or ""


def _last_rain_at(
    raw: dict, precip_1h: float, previous: WeatherSnapshot | None, now: datetime
) -> datetime | None:
    """When rain was last seen.

    Raining now wins; otherwise the latest past hour with rain in the hourly
    block; otherwise whatever the previous snapshot knew.
    """
    if precip_1h > 0:
        return now

    last_rain = None
    for hour in (raw.get("hourly") or [])[:HOURLY_LOOKBACK]:
        dt = _epoch(hour.get("dt"))
        if dt is None or dt >= now or _rain(hour) <= 0:
            continue
        if last_rain is None or dt > last_rain:
            last_rain = dt

    if last_rain is None and previous is not None:
        last_rain = previous.current.last_rain_at
    return last_rain


def transform_weather(
    raw: dict[str, Any], previous: WeatherSnapshot | None, now: datetime
) -> WeatherSnapshot:
    """Convert a One Call response into a snapshot.

    Raises:
        UpstreamUnavailable: when the payload has no usable ``current`` block
    """
    current = raw.get("current")
    if not isinstance(current, dict):
        raise UpstreamUnavailable("Weather response missing current conditions")

    try:
        precip_1h = _rain(current, "1h")
        precip_3h = float((current.get("rain") or {}).get("3h", precip_1h) or 0.0)
        conditions, description = _main_condition(current)
        wind_speed = current.get("wind_speed") or 0.0

        hourly = []
        for hour in (raw.get("hourly") or [])[:HOURLY_KEPT]:
            hour_conditions, _ = _main_condition(hour)
            hourly.append(
                HourlyForecast(
                    dt=_epoch(hour["dt"]),
                    temp=hour.get("temp"),
                    pop=hour.get("pop") or 0.0,
                    rain_1h=_rain(hour),
                    conditions=hour_conditions,
                    cloud_cover=hour.get("clouds") or 0,
                    wind_speed=hour.get("wind_speed") or 0.0,
                )
            )

        alerts = [
            WeatherAlert(
                event=alert.get("event", "unknown"),
                sender=alert.get("sender_name"),
                start=_epoch(alert.get("start")),
                end=_epoch(alert.get("end")),
                description=alert.get("description", ""),
            )
            for alert in raw.get("alerts") or []
        ]

        return WeatherSnapshot(
            fetched_at=now,
            current=CurrentWeather(
                temp=current.get("temp"),
                feels_like=current.get("feels_like"),
                humidity=current.get("humidity"),
                wind_speed=wind_speed,
                wind_gust=current.get("wind_gust", wind_speed),
                cloud_cover=current.get("clouds") or 0,
                precip_last_1h=precip_1h,
                precip_last_3h=precip_3h,
                last_rain_at=_last_rain_at(raw, precip_1h, previous, now),
                conditions=conditions,
                description=description,
            ),
            hourly=hourly,
            alerts=alerts,
        )
    except (KeyError, TypeError, ValueError) as e:
        raise UpstreamUnavailable(f"Unexpected weather API response format: {e}") from e


class OpenWeatherMapService:
    """Service for fetching area weather from the OpenWeatherMap One Call API."""

    def __init__(self, api_key: str, lat: float, lon: float):
        self.api_key = api_key
        self.lat = lat
        self.lon = lon
        self.base_url = "https://api.openweathermap.org/data/3.0/onecall"

    def fetch_raw(self) -> dict[str, Any]:
        if not self.api_key:
            raise UpstreamUnavailable("OPENWEATHERMAP_API_KEY is not configured")
        params = {
            "lat": self.lat,
            "lon": self.lon,
            "appid": self.api_key,
            "units": "imperial",
        }
        try:
            response = _request_with_retry("GET", self.base_url, params=params, timeout=10)
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error("OpenWeatherMap request failed: %s", e)
            raise UpstreamUnavailable(f"Failed to fetch weather data: {e}") from e
        except ValueError as e:
            raise UpstreamUnavailable(f"Weather response was not JSON: {e}") from e

    def fetch_snapshot(
        self, previous: WeatherSnapshot | None, now: datetime
    ) -> WeatherSnapshot:
        """Fetch and transform one snapshot.

        Raises:
            UpstreamUnavailable: when the API cannot be reached or returns garbage
        """
        snapshot = transform_weather(self.fetch_raw(), previous, now)
        logger.info(
            "Weather updated: %s, %s, %.1fmm last hour",
            snapshot.current.temp,
            snapshot.current.conditions,
            snapshot.current.precip_last_1h,
        )
        return snapshot
