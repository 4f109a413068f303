"""Canonical parsing and formatting of wire dates (``YYYY-MM-DD``) and times (``HH:MM``).

Every date or time that enters the scheduling logic from user input or a
remote payload goes through :func:`normalize_date` / :func:`normalize_time`
first. Nothing is coerced: a value either matches the wire format exactly or
is rejected with :class:`~carebook.domain.exceptions.ValidationError`.
"""

import datetime as dt
import re

from carebook.domain.exceptions import ValidationError

_TIME_RE = re.compile(r"^(\d{2}):(\d{2})(?::(\d{2}))?$")
_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MINUTES_PER_DAY = 24 * 60


def normalize_time(raw: object, field_name: str = "time") -> dt.time:
    """Parse ``HH:MM`` (or ``HH:MM:SS``, seconds dropped) into a minute-precision time."""
    if not isinstance(raw, str):
        raise ValidationError(
            f"Invalid {field_name}: expected a string in HH:MM format",
            {field_name: "must be a string in HH:MM format"},
        )

    match = _TIME_RE.match(raw)
    if not match:
        raise ValidationError(
            f"Invalid {field_name}: '{raw}'. Expected HH:MM",
            {field_name: f"'{raw}' is not in HH:MM format"},
        )

    hour, minute, second = int(match.group(1)), int(match.group(2)), match.group(3)
    if hour > 23 or minute > 59 or (second is not None and int(second) > 59):
        raise ValidationError(
            f"Invalid {field_name}: '{raw}' is out of range",
            {field_name: f"'{raw}' is not a valid time of day"},
        )
    return dt.time(hour, minute)


def normalize_date(raw: object, field_name: str = "date") -> dt.date:
    """Parse a strict ``YYYY-MM-DD`` string into a calendar date."""
    if not isinstance(raw, str):
        raise ValidationError(
            f"Invalid {field_name}: expected a string in YYYY-MM-DD format",
            {field_name: "must be a string in YYYY-MM-DD format"},
        )

    if not _DATE_RE.match(raw):
        raise ValidationError(
            f"Invalid {field_name}: '{raw}'. Expected YYYY-MM-DD",
            {field_name: f"'{raw}' is not in YYYY-MM-DD format"},
        )

    try:
        return dt.date.fromisoformat(raw)
    except ValueError as exc:
        raise ValidationError(
            f"Invalid {field_name}: '{raw}' is not a calendar date",
            {field_name: f"'{raw}' is not a calendar date"},
        ) from exc


def format_time(value: dt.time) -> str:
    return value.strftime("%H:%M")


def format_date(value: dt.date) -> str:
    return value.strftime("%Y-%m-%d")


def to_minutes(value: dt.time) -> int:
    """Minutes since midnight, e.g. ``time(9, 30)`` → ``570``."""
    return value.hour * 60 + value.minute


def from_minutes(minutes: int) -> dt.time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return dt.time(minutes // 60, minutes % 60)
