"""Lambda handler for the scheduled weather refresh.

One cycle:
1. Fetch a weather snapshot (previous snapshot supplies lastRainAt fallback)
2. Reset park composites if rain just stopped
3. Recompute dry-out estimates for every park
4. Raise rain-incoming / park-dried notifications

If the weather API is unavailable the cycle is skipped and every previous
output is left in place.
"""

import logging
import os
from datetime import datetime
from typing import Any

from handlers.runtime import get_conditions_store, get_park_loader, get_publisher
from models.weather import DryEstimatesOutput, WeatherSnapshot
from services.alert_service import AlertService
from services.dry_out_service import DryOutEstimator
from services.errors import UpstreamUnavailable
from services.lifecycle_service import RainResetService
from services.weather_service import OpenWeatherMapService
from utils.time_utils import now_utc

# Configure logging
logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Environment variables
OPENWEATHERMAP_API_KEY = os.environ.get("OPENWEATHERMAP_API_KEY", "")
WEATHER_LAT = float(os.environ.get("WEATHER_LAT", "40.7128"))
WEATHER_LON = float(os.environ.get("WEATHER_LON", "-74.0060"))
ENABLE_ALERTS = os.environ.get("ENABLE_ALERTS", "true").lower() == "true"


def get_weather_service() -> OpenWeatherMapService:
    return OpenWeatherMapService(OPENWEATHERMAP_API_KEY, WEATHER_LAT, WEATHER_LON)


def _raise_alerts(
    parks, snapshot: WeatherSnapshot, previous_estimates, estimates, reset, now: datetime
) -> int:
    publisher = get_publisher()
    alerts = AlertService(parks)

    notifications, state = alerts.check_rain_incoming(
        snapshot, publisher.read_alert_state(), now
    )
    notifications += alerts.rain_reset_notice(reset, now)
    notifications += alerts.check_parks_dried(previous_estimates, estimates, now)

    publisher.write_alert_state(state)
    publisher.append_notifications(notifications)
    return len(notifications)


def run_weather_cycle(now: datetime) -> dict[str, Any]:
    """Run one weather refresh cycle and return its summary."""
    publisher = get_publisher()
    parks = get_park_loader().get_parks()
    slugs = [p.slug for p in parks]

    previous = publisher.read_weather()
    try:
        snapshot = get_weather_service().fetch_snapshot(previous, now)
    except UpstreamUnavailable as e:
        logger.error(f"Weather cycle skipped, keeping previous outputs: {e}")
        return {"skipped": True, "reason": str(e)}

    publisher.write_weather(snapshot)

    reset = RainResetService(get_conditions_store(), slugs).check(previous, snapshot, now)
    for slug in reset:
        try:
            publisher.publish_conditions(get_conditions_store().get(slug))
        except Exception as e:
            logger.warning(f"Failed to publish reset conditions for {slug}: {e}")

    previous_output = publisher.read_dry_estimates()
    previous_estimates = previous_output.estimates if previous_output else {}

    estimates = DryOutEstimator().estimate_all(parks, snapshot, now)
    publisher.write_dry_estimates(
        DryEstimatesOutput(
            computed_at=now,
            last_rain_ended_at=snapshot.current.last_rain_at,
            estimates=estimates,
        )
    )
    dry_count = sum(1 for e in estimates.values() if e.is_dry)
    logger.info(f"{dry_count}/{len(parks)} parks estimated dry")

    notifications = 0
    if ENABLE_ALERTS:
        try:
            notifications = _raise_alerts(
                parks, snapshot, previous_estimates, estimates, reset, now
            )
        except Exception as e:
            logger.error(f"Alert processing failed: {e}", exc_info=True)

    return {
        "skipped": False,
        "raining": snapshot.current.is_raining,
        "rain_reset_parks": reset,
        "dry_parks": dry_count,
        "parks": len(parks),
        "notifications": notifications,
    }


def weather_processor_handler(event: dict[str, Any], context) -> dict[str, Any]:
    """Lambda handler for the scheduled weather refresh."""
    now = now_utc()
    logger.info(f"Weather processor started at {now.isoformat()}")

    try:
        summary = run_weather_cycle(now)
    except Exception as e:
        logger.error(f"Error in weather processor: {e}", exc_info=True)
        return {
            "statusCode": 500,
            "body": {"message": f"Error processing weather: {e}", "timestamp": now.isoformat()},
        }

    logger.info(f"Weather processing complete: {summary}")
    return {
        "statusCode": 200,
        "body": {
            "message": "Weather processing complete",
            "summary": summary,
            "timestamp": now.isoformat(),
        },
    }
