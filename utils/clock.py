from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

DB_TS_FORMAT = "%Y-%m-%d %H:%M:%S"


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db_ts(value: Optional[datetime]) -> Optional[str]:
    """Format a timestamp the way the store compares them: UTC, second precision."""
    if value is None:
        return None
    return as_utc(value).strftime(DB_TS_FORMAT)


def from_db_ts(raw: Optional[str]) -> Optional[datetime]:
    if not raw:
        return None
    text = raw.strip().replace("T", " ")
    try:
        parsed = datetime.strptime(text[:19], DB_TS_FORMAT)
    except ValueError:
        parsed = datetime.fromisoformat(raw)
    return as_utc(parsed)


def parse_day(raw: Optional[str]) -> Optional[date]:
    if not raw:
        return None
    return date.fromisoformat(raw[:10])
