"""Detects weather events worth announcing to park followers."""

import logging
from datetime import datetime, timedelta

from models.notification import AlertState, NotificationType, ParkNotification
from models.park import Park
from models.weather import DryEstimate, WeatherSnapshot
from utils.constants import RAIN_INCOMING_LOOKAHEAD_HOURS, RAIN_INCOMING_POP

logger = logging.getLogger(__name__)


def rain_incoming(weather: WeatherSnapshot, now: datetime) -> bool:
    """Any of the next forecast hours (current hour included) with a high chance of rain."""
    upcoming = [h for h in weather.hourly if h.dt > now - timedelta(hours=1)]
    return any(h.pop > RAIN_INCOMING_POP for h in upcoming[:RAIN_INCOMING_LOOKAHEAD_HOURS])


def newly_dried(
    previous: dict[str, DryEstimate], current: dict[str, DryEstimate]
) -> list[str]:
    """Slugs whose estimate flipped from wet to dry since the previous cycle."""
    return [
        slug
        for slug, estimate in current.items()
        if estimate.is_dry and slug in previous and not previous[slug].is_dry
    ]


class AlertService:
    """Turns weather transitions into notification feed entries."""

    def __init__(self, parks: list[Park]):
        self.parks = {p.slug: p for p in parks}

    def check_rain_incoming(
        self, weather: WeatherSnapshot, state: AlertState, now: datetime
    ) -> tuple[list[ParkNotification], AlertState]:
        """Announce incoming rain once until the forecast clears again."""
        if not rain_incoming(weather, now):
            return [], AlertState(rain_alerted=False)
        if state.rain_alerted:
            return [], state

        logger.info("Rain expected within %d hours", RAIN_INCOMING_LOOKAHEAD_HOURS)
        notification = ParkNotification.create(
            NotificationType.RAIN_INCOMING,
            "Rain incoming",
            f"Rain expected within {RAIN_INCOMING_LOOKAHEAD_HOURS} hours. Get your session in!",
            now,
        )
        return [notification], AlertState(rain_alerted=True)

    def check_parks_dried(
        self,
        previous: dict[str, DryEstimate],
        current: dict[str, DryEstimate],
        now: datetime,
    ) -> list[ParkNotification]:
        notifications = []
        for slug in newly_dried(previous, current):
            park = self.parks.get(slug)
            name = park.name if park else slug
            notifications.append(
                ParkNotification.create(
                    NotificationType.PARK_DRIED,
                    f"{name} should be dry now",
                    "Dry-out estimate reached. Go check it out!",
                    now,
                    park=slug,
                )
            )
        if notifications:
            logger.info("%d parks dried out", len(notifications))
        return notifications

    def rain_reset_notice(self, reset_slugs: list[str], now: datetime) -> list[ParkNotification]:
        if not reset_slugs:
            return []
        return [
            ParkNotification.create(
                NotificationType.RAIN_RESET,
                "Rain stopped",
                "Park conditions were reset. Be the first to report!",
                now,
            )
        ]
