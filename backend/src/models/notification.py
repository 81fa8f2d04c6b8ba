"""Notification feed data models.

Delivery (local Notification API or a push provider) happens elsewhere; the
backend only decides that something is worth announcing and appends it to a feed.
"""

from datetime import datetime
from enum import Enum

from pydantic import Field

from .base import RecordModel


class NotificationType(str, Enum):
    """Types of notifications the backend can raise."""

    RAIN_INCOMING = "rain_incoming"
    PARK_DRIED = "park_dried"
    RAIN_RESET = "rain_reset"


class ParkNotification(RecordModel):
    """One entry in the notification feed."""

    id: str
    type: NotificationType
    park: str = Field(default="", description="Park slug, empty for broadcasts")
    title: str
    message: str
    timestamp: datetime

    @classmethod
    def create(
        cls,
        notification_type: NotificationType,
        title: str,
        message: str,
        now: datetime,
        park: str = "",
    ) -> "ParkNotification":
        """Create a notification with a deterministic id."""
        ntype = NotificationType(notification_type).value
        return cls(
            id=f"notif-{int(now.timestamp() * 1000)}-{park or 'broadcast'}-{ntype}",
            type=notification_type,
            park=park,
            title=title,
            message=message,
            timestamp=now,
        )


class AlertState(RecordModel):
    """Debounce state carried between weather cycles."""

    rain_alerted: bool = False
