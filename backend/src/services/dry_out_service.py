"""Dry-out estimation for parks after rain.

The estimate is a pure, deterministic function of the park's static attributes
and one weather snapshot:

    total_hours = base(precip) * surface * sun(time of day, clouds) * drainage * wind
    estimated_dry_at = last_rain_at + total_hours

Modifiers default to 1.0 when a park attribute is unset.
"""

import logging
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from models.park import Park
from models.weather import ConfidenceLevel, DryEstimate, DryFactors, WeatherSnapshot
from utils.constants import (
    BASE_DRY_HOURS_MAX,
    BASE_DRY_HOURS_STEPS,
    CONFIDENCE_STEPS,
    COVERED_AREA_NOTE_PCT,
    DAYLIGHT_END_HOUR,
    DAYLIGHT_START_HOUR,
    DRAINAGE_MODIFIERS,
    FULL_SHADE_MODIFIER,
    NO_RAIN_LOOKBACK_HOURS,
    SUN_DAYLIGHT_MODIFIERS,
    SUN_NIGHT_MODIFIER,
    SURFACE_MODIFIERS,
    WIND_MODIFIERS,
)
from utils.time_utils import hours_between

logger = logging.getLogger(__name__)

RAINING_NOTE = "Currently raining - estimate available after rain stops"


def _value(attr) -> str | None:
    return getattr(attr, "value", attr)


def base_dry_hours(precip_mm: float) -> float:
    for upper, hours in BASE_DRY_HOURS_STEPS:
        if precip_mm < upper:
            return hours
    return BASE_DRY_HOURS_MAX


def surface_modifier(surface_type) -> float:
    return SURFACE_MODIFIERS.get(_value(surface_type), 1.0)


def drainage_modifier(drainage) -> float:
    return DRAINAGE_MODIFIERS.get(_value(drainage), 1.0)


def is_daylight(local_hour: int) -> bool:
    return DAYLIGHT_START_HOUR <= local_hour < DAYLIGHT_END_HOUR


def sun_modifier(sun_exposure, daylight: bool, cloud_fraction: float) -> float:
    exposure = _value(sun_exposure)
    if exposure == "full_shade":
        return FULL_SHADE_MODIFIER
    if exposure in SUN_DAYLIGHT_MODIFIERS:
        if not daylight:
            return SUN_NIGHT_MODIFIER
        base, slope = SUN_DAYLIGHT_MODIFIERS[exposure]
        return base + slope * cloud_fraction
    return 1.0


def wind_modifier(wind_speed: float) -> float:
    for threshold, modifier in WIND_MODIFIERS:
        if wind_speed > threshold:
            return modifier
    return 1.0


def confidence_for(precip_mm: float) -> ConfidenceLevel:
    for upper, level in CONFIDENCE_STEPS:
        if precip_mm < upper:
            return ConfidenceLevel(level)
    return ConfidenceLevel.LOW


def covered_area_note(park: Park) -> str | None:
    covered = park.covered_pct or 0
    if covered > COVERED_AREA_NOTE_PCT:
        return f"~{covered:g}% covered area likely dry"
    return None


class DryOutEstimator:
    """Service for predicting when a rained-on park will be dry."""

    def estimate(
        self, park: Park, weather: WeatherSnapshot, now: datetime | None = None
    ) -> DryEstimate:
        """Estimate dry-out for one park.

        Args:
            park: Park with static surface/sun/drainage attributes
            weather: Weather snapshot for this refresh cycle
            now: Evaluation instant; defaults to the snapshot's fetch time

        Returns:
            DryEstimate including the intermediate factors used
        """
        now = now or weather.fetched_at
        current = weather.current
        last_rain = current.last_rain_at

        if current.is_raining:
            return DryEstimate(
                is_dry=False,
                estimated_dry_at=None,
                confidence=ConfidenceLevel.LOW,
                note=RAINING_NOTE,
            )

        if last_rain is None or hours_between(last_rain, now) > NO_RAIN_LOOKBACK_HOURS:
            return DryEstimate(is_dry=True, confidence=ConfidenceLevel.HIGH)

        precip = current.precip_last_3h or current.precip_last_1h or 0.0
        base = base_dry_hours(precip)

        local_hour = now.astimezone(ZoneInfo(park.timezone)).hour
        cloud_fraction = min(max(current.cloud_cover / 100.0, 0.0), 1.0)

        surf_mod = surface_modifier(park.surface_type)
        sun_mod = sun_modifier(park.sun_exposure, is_daylight(local_hour), cloud_fraction)
        drain_mod = drainage_modifier(park.drainage)
        wind_mod = wind_modifier(current.wind_speed)

        total_hours = base * surf_mod * sun_mod * drain_mod * wind_mod
        estimated_dry_at = last_rain + timedelta(hours=total_hours)

        return DryEstimate(
            is_dry=now > estimated_dry_at,
            estimated_dry_at=estimated_dry_at,
            confidence=confidence_for(precip),
            note=covered_area_note(park),
            factors=DryFactors(
                precip_mm=precip,
                base_dry_hours=base,
                surface_modifier=surf_mod,
                sun_modifier=round(sun_mod, 4),
                drainage_modifier=drain_mod,
                wind_modifier=wind_mod,
                total_dry_hours=round(total_hours, 2),
            ),
        )

    def estimate_all(
        self, parks: list[Park], weather: WeatherSnapshot | None, now: datetime | None = None
    ) -> dict[str, DryEstimate]:
        """Estimates keyed by park slug; empty when there is no snapshot this cycle.

        A park whose estimate fails is logged and left out.
        """
        if weather is None:
            logger.warning("No weather snapshot this cycle, skipping dry-out estimates")
            return {}
        estimates = {}
        for park in parks:
            try:
                estimates[park.slug] = self.estimate(park, weather, now)
            except Exception as e:
                logger.error("Dry-out estimate failed for %s: %s", park.slug, e)
        return estimates
