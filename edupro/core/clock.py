"""Local calendar helpers. Attendance and homework rules count calendar days, not hours."""

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from edupro.core.config import settings


def local_now(tz_name: Optional[str] = None) -> datetime:
    return datetime.now(ZoneInfo(tz_name or settings.local_timezone))


def local_today(tz_name: Optional[str] = None) -> date:
    return local_now(tz_name).date()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def days_between(earlier: date, later: date) -> int:
    """Whole calendar days from ``earlier`` to ``later`` (negative when earlier is in the future)."""
    return (later - earlier).days
