"""UTC time helpers shared by the store and the API layer.

Timestamps are stored as naive UTC text (``YYYY-MM-DD HH:MM:SS.ffffff``) so
that lexical order in SQL equals chronological order. The API speaks
ISO 8601 with a ``Z`` suffix.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

DB_FORMAT = "%Y-%m-%d %H:%M:%S.%f"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_db(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(DB_FORMAT)


def from_db(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    for fmt in (DB_FORMAT, "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    return parse_iso_datetime(value)


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO 8601 timestamp; naive values are taken as UTC.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("timestamp must be a non-empty string")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_iso_date(value: str) -> date:
    if not isinstance(value, str):
        raise ValueError("date must be a string")
    return date.fromisoformat(value.strip()[:10])


def to_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def db_to_iso(value: Optional[str]) -> Optional[str]:
    return to_iso(from_db(value))


def from_unix(seconds: Optional[int]) -> Optional[datetime]:
    if seconds is None:
        return None
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc)


def age_in_years(born: date, today: Optional[date] = None) -> int:
    today = today or utcnow().date()
    years = today.year - born.year
    if (today.month, today.day) < (born.month, born.day):
        years -= 1
    return years


def format_time_remaining(delta: timedelta) -> str:
    """Human readable countdown: "2d 4h", "5h 12m", "12m", or "Ended"."""
    total_seconds = int(delta.total_seconds())
    if total_seconds <= 0:
        return "Ended"
    days, rem = divmod(total_seconds, 86400)
    hours, rem = divmod(rem, 3600)
    minutes = rem // 60
    if days:
        return f"{days}d {hours}h"
    if hours:
        return f"{hours}h {minutes}m"
    if minutes:
        return f"{minutes}m"
    return "<1m"
