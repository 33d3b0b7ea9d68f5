"""
Time helpers.

Every datetime is stored in UTC. Naive values coming from clients are read in the
configured shop timezone; naive values coming back from the store are UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from app.core.config import get_settings


def local_zone() -> ZoneInfo:
    return ZoneInfo(get_settings().TIMEZONE)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize a stored datetime (naive means UTC) to an aware UTC datetime."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def from_client(value: datetime) -> datetime:
    """Normalize a client-supplied datetime (naive means local time) to UTC."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=local_zone())
    return value.astimezone(timezone.utc)


def to_local(value: datetime) -> datetime:
    return as_utc(value).astimezone(local_zone())


def local_day_bounds(day: date) -> tuple[datetime, datetime]:
    """UTC bounds of the 24 hours starting at local midnight of `day`."""
    start = datetime.combine(day, time.min, tzinfo=local_zone()).astimezone(timezone.utc)
    return start, start + timedelta(days=1)


MONTH_NAMES = (
    "January",
    "February",
    "March",
    "April",
    "May",
    "June",
    "July",
    "August",
    "September",
    "October",
    "November",
    "December",
)


def format_long_date(value: datetime) -> str:
    """Long date in shop time (15 March 2030), independent of the process locale."""
    local = to_local(value)
    return f"{local.day} {MONTH_NAMES[local.month - 1]} {local.year}"


def format_hour(value: datetime) -> str:
    return to_local(value).strftime("%H:%M")
