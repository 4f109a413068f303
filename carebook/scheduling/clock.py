import datetime as dt
from collections.abc import Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from loguru import logger


def resolve_timezone(name: str) -> dt.tzinfo:
    """Resolve a clinic timezone name, falling back to UTC if it is unknown."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid clinic timezone '{}'; defaulting to UTC", name)
        return dt.timezone.utc


def clinic_today(timezone_name: str) -> Callable[[], dt.date]:
    """Build a ``today()`` callable that reads the wall clock in the clinic's timezone.

    Template times and bookings are both in the doctor's local time, so
    "today" must be computed there too, not in the server's timezone.
    """
    tz = resolve_timezone(timezone_name)

    def today() -> dt.date:
        return dt.datetime.now(tz).date()

    return today
