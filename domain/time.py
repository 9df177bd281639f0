"""
Domain time utilities (pure).

Centralized timestamp validation and calendar helpers.

Business dates (sale date, payment date, installment due date) are plain
calendar dates. Audit timestamps (created_at, updated_at) are UTC datetimes.

Behavior and error messages must remain consistent across the domain model.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

from dateutil.relativedelta import relativedelta


def require_utc_timestamp(name: str, value: datetime) -> None:
    """
    Enforces the contract requirement that timestamps are UTC.

    Invariants:
    - Timestamps must be timezone-aware.
    - Timestamps must have UTC offset 0.
    """

    if value.tzinfo is None or value.utcoffset() is None:
        raise ValueError(f"{name} must be timezone-aware (UTC)")
    if value.utcoffset() != timedelta(0):
        raise ValueError(f"{name} must be a UTC timestamp (offset 0)")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def add_months(start: date, months: int) -> date:
    """
    Shift a calendar date by whole months.

    Days past the end of the target month are clamped to its last day
    (2024-01-31 + 1 month == 2024-02-29).
    """

    return start + relativedelta(months=months)


def to_iso_utc(dt: datetime, *, name: str) -> str:
    """Serialize a UTC datetime to ISO-8601 (timezone-aware, offset 0)."""

    require_utc_timestamp(name, dt)
    return dt.astimezone(timezone.utc).isoformat()


def parse_utc_datetime(value: Any) -> datetime:
    """
    Parse a Supabase timestamp into a timezone-aware UTC datetime.

    Supabase commonly returns ISO-8601 strings, sometimes with a trailing 'Z'.
    """

    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise TypeError(f"Unsupported timestamp type: {type(value)!r}")

    if dt.tzinfo is None or dt.utcoffset() is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_date(value: Any) -> date:
    """
    Parse a calendar date column.

    Accepts `date` objects and ISO strings; a full timestamp string keeps only
    its date part.
    """

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value[:10])
    raise TypeError(f"Unsupported date type: {type(value)!r}")


def parse_optional_date(value: Any) -> Optional[date]:
    if value in (None, ""):
        return None
    return parse_date(value)


__all__ = [
    "add_months",
    "parse_date",
    "parse_optional_date",
    "parse_utc_datetime",
    "require_utc_timestamp",
    "to_iso_utc",
    "utc_now",
]
