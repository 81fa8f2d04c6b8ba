"""Timestamp helpers.

Every core operation takes an explicit ``now``; only entry points call ``now_utc``.
"""

from datetime import UTC, date, datetime, timedelta


def now_utc() -> datetime:
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO-8601 string (``Z`` suffix allowed) or epoch seconds.

    Returns None for empty input; raises ValueError for garbage, including
    values outside the range ``datetime`` can represent.
    """
    if value is None or value == "":
        return None
    try:
        if isinstance(value, datetime):
            return ensure_utc(value)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return datetime.fromtimestamp(value, UTC)
        if isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            return ensure_utc(datetime.fromisoformat(text))
    except (OverflowError, OSError) as e:
        raise ValueError(f"Timestamp out of range: {value!r}") from e
    raise ValueError(f"Unsupported timestamp: {value!r}")


def hours_between(earlier: datetime, later: datetime) -> float:
    return (later - earlier).total_seconds() / 3600.0


def utc_day(dt: datetime) -> date:
    return ensure_utc(dt).date()


def archive_day_key(dt: datetime) -> str:
    """Archive partition key: UTC ``YYYY/MM/DD`` of the timestamp."""
    return utc_day(dt).strftime("%Y/%m/%d")


def is_yesterday(earlier: datetime, now: datetime) -> bool:
    return utc_day(earlier) == utc_day(now) - timedelta(days=1)
