"""UTC time helpers shared by the scheduling services"""
from datetime import datetime, date, time, timedelta, timezone

from services.errors import InvalidTimestamp


def utc_now() -> datetime:
    """Current time as a naive UTC datetime. Only route handlers and jobs call this."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc(value: datetime) -> datetime:
    """
    Normalise a timestamp to naive UTC, the form stored in the database.

    Aware datetimes are converted; naive datetimes are assumed to be UTC already.
    """
    if not isinstance(value, datetime):
        raise TypeError(f"Expected datetime, got {type(value).__name__}")
    if value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    """Exclusive upper bound of a calendar day"""
    return start_of_day(day) + timedelta(days=1)


def parse_timestamp(raw: str) -> datetime:
    """
    Parse an ISO-8601 string (a trailing 'Z' is accepted) into naive UTC.

    Raises:
        InvalidTimestamp: If raw is not an ISO-8601 timestamp
    """
    if not isinstance(raw, str):
        raise InvalidTimestamp(f"Expected an ISO-8601 timestamp string, got {type(raw).__name__}")
    text = raw[:-1] + '+00:00' if raw.endswith('Z') else raw
    try:
        return to_utc(datetime.fromisoformat(text))
    except ValueError:
        raise InvalidTimestamp(f"Invalid timestamp: {raw!r}") from None
