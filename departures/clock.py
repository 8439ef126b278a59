"""Local wall-clock formatting used in every sheet (dd.mm.yyyy, HH:MM:SS)."""

from datetime import datetime
from zoneinfo import ZoneInfo

from config import LOCAL_TIMEZONE

DATE_FORMAT = "%d.%m.%Y"
TIME_FORMAT = "%H:%M:%S"


def local_now(tz: str = LOCAL_TIMEZONE) -> datetime:
    return datetime.now(ZoneInfo(tz))


def format_date(dt: datetime) -> str:
    return dt.strftime(DATE_FORMAT)


def format_time(dt: datetime) -> str:
    return dt.strftime(TIME_FORMAT)


def format_timestamp(dt: datetime) -> str:
    return f"{format_date(dt)} {format_time(dt)}"


def normalize_date(value: str) -> str:
    """Strip whitespace and the trailing dot some locales append ('01.01.2024.')."""
    return value.strip().rstrip(".")
