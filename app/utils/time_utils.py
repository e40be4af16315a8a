from datetime import date, datetime, time, timezone
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from app.core.errors import MalformedRequest


def resolve_timezone(name: str) -> ZoneInfo:
    """Return the ZoneInfo for an IANA name, or raise MalformedRequest."""
    if not name or not isinstance(name, str):
        raise MalformedRequest("Timezone is required")
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        raise MalformedRequest(f"Unknown timezone: {name}")


def parse_hhmm(value: str) -> time:
    """Parse a strict "HH:mm" clock time."""
    if not isinstance(value, str) or len(value) != 5 or value[2] != ":":
        raise MalformedRequest(f"Invalid time {value!r}, expected HH:mm")
    try:
        return time(int(value[:2]), int(value[3:]))
    except ValueError:
        raise MalformedRequest(f"Invalid time {value!r}, expected HH:mm")


def parse_iso_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise MalformedRequest(f"Invalid date {value!r}, expected YYYY-MM-DD")


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes (as returned by Mongo) and normalise aware ones."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_mongo(dt: Optional[datetime]) -> Optional[datetime]:
    """Mongo stores naive UTC; strip tzinfo after converting."""
    if dt is None:
        return None
    return ensure_utc(dt).replace(tzinfo=None)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def day_of_week(day: date) -> int:
    # 0 = Sunday ... 6 = Saturday
    return day.isoweekday() % 7
