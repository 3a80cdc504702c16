from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from ..config import get_settings


def utc_now_naive() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_today(tz_name: str | None = None) -> date:
    """Calendar date in the business timezone (APP_TIMEZONE unless overridden)."""
    zone = ZoneInfo(tz_name or get_settings().timezone)
    return datetime.now(zone).date()


def sunday_weekday(day: date) -> int:
    """Weekday number with 0=Sunday .. 6=Saturday."""
    return (day.weekday() + 1) % 7
