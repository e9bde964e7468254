from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional


# All timestamps are stored as naive UTC; the API speaks ISO-8601 with a trailing Z.

def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert aware datetimes to UTC and drop tzinfo; naive ones pass through."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Query-string and booking-payload timestamps to naive UTC.

    Blank input is None. Offsets ("+02:00", "Z") are honoured; a value
    without one is already UTC. Raises ValueError for anything else.
    """
    if value is None or not value.strip():
        return None
    raw = value.strip()
    if raw[-1] in "zZ":
        raw = f"{raw[:-1]}+00:00"
    return to_naive_utc(datetime.fromisoformat(raw))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Whole-second ISO-8601 in UTC, e.g. 2026-05-04T17:00:00Z."""
    if dt is None:
        return None
    return f"{to_naive_utc(dt).replace(microsecond=0).isoformat()}Z"


def duration_hours(start: datetime, end: datetime) -> Decimal:
    """Exact duration in hours (whole seconds)."""
    return Decimal(int((end - start).total_seconds())) / Decimal(3600)
