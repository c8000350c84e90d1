from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Optional


# Formats accepted for dates in imported rows, tried in order; first match wins.
IMPORT_DATE_FORMATS = (
    "%d-%m-%Y",
    "%m-%d-%Y",
    "%Y-%m-%d",
    "%m/%d/%Y",
    "%Y/%m/%d",
    "%m/%d/%y",
)


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 datetime string and normalize to UTC-naive datetime.

    - None / "" -> None
    - "YYYY-MM-DD" and "YYYY-MM-DDTHH:MM" (naive) are interpreted as UTC
    - "...Z" or "...+/-HH:MM" is converted to UTC and tzinfo is stripped
    """
    if value is None:
        return None
    s = value.strip()
    if not s:
        return None

    # Accept trailing Z
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)

    # Normalize to UTC-naive
    if dt.tzinfo is None:
        # interpret naive as UTC
        return dt.replace(tzinfo=None)

    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def as_datetime(value: Any) -> Optional[datetime]:
    """Coerce a date, datetime or ISO string to a UTC-naive datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            return value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        return parse_iso_datetime(value)
    raise TypeError(f"Cannot interpret {type(value).__name__} as a datetime")


def parse_import_date(raw: Any) -> Optional[datetime]:
    """
    Parse a date cell from an imported row.

    Accepts date/datetime objects as-is; strings are tried against
    IMPORT_DATE_FORMATS in order. Returns None when nothing matches.
    """
    if isinstance(raw, (date, datetime)):
        return as_datetime(raw)
    if not isinstance(raw, str):
        return None
    text = raw.strip()
    if not text:
        return None
    for fmt in IMPORT_DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def is_today_or_past(value: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when the calendar day of `value` is today or earlier."""
    if value is None:
        return False
    now = now or utcnow()
    return as_datetime(value).date() <= now.date()


def format_day(value: Optional[datetime]) -> str:
    """yyyy-MM-dd for exports; empty string for missing dates."""
    if value is None:
        return ""
    return as_datetime(value).strftime("%Y-%m-%d")
