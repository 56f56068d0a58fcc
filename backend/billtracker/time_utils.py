"""
Timestamps are stored as naive UTC. Calendar dates (bill date, receive date,
tax deadlines) are Thai dates, so "today" for reporting is taken in Bangkok
time (UTC+7, no daylight saving).
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Optional

BANGKOK = timezone(timedelta(hours=7), "Asia/Bangkok")


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def bangkok_today() -> date:
    return datetime.now(BANGKOK).date()


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 with a trailing Z; naive input is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"


def to_iso_date(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value is not None else None
