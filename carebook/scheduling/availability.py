import datetime as dt
from collections.abc import Collection

from carebook.domain.exceptions import ValidationError
from carebook.domain.models import CandidateDate, WeeklyAvailabilityTemplate, Weekday
from carebook.scheduling.normalizer import format_date

# Upper bound on any requested window, in days.
MAX_WINDOW_DAYS = 366


def resolve_candidate_dates(
    template: WeeklyAvailabilityTemplate,
    blocked_dates: Collection[str],
    window_start: dt.date,
    window_length: int,
    *,
    earliest_bookable: dt.date | None = None,
    latest_bookable: dt.date | None = None,
) -> list[CandidateDate]:
    """Expand a look-ahead window into dates flagged as selectable or not.

    A date is selectable when its weekday has at least one available interval,
    its ``YYYY-MM-DD`` form is not in ``blocked_dates`` and it lies between
    ``earliest_bookable`` and ``latest_bookable``. Every date of the window
    is returned so callers can render unavailable days as disabled instead
    of hiding them. Windows longer than ``MAX_WINDOW_DAYS`` are rejected.

    Blocked dates are matched by exact string equality against the
    canonical form; ``"2026-10-2"`` never blocks ``"2026-10-20"``.
    """
    if isinstance(blocked_dates, str):
        raise ValidationError(
            "Blocked dates must be a collection of YYYY-MM-DD strings, not a single string",
            {"blockedDates": "must be a list of dates"},
        )
    if window_length < 0:
        raise ValidationError(
            f"Window length must not be negative, got {window_length}",
            {"windowLength": "must be zero or greater"},
        )
    if window_length > MAX_WINDOW_DAYS:
        raise ValidationError(
            f"Window length must be at most {MAX_WINDOW_DAYS} days, got {window_length}",
            {"windowLength": f"must be {MAX_WINDOW_DAYS} or fewer"},
        )
    try:
        window_start + dt.timedelta(days=max(window_length - 1, 0))
    except OverflowError as exc:
        raise ValidationError(
            f"Window starting {format_date(window_start)} runs past the last calendar date",
            {"windowStart": "is too late for the requested window"},
        ) from exc

    blocked = frozenset(blocked_dates)
    candidates: list[CandidateDate] = []
    for offset in range(window_length):
        day = window_start + dt.timedelta(days=offset)
        weekday = Weekday.of(day)
        candidates.append(
            CandidateDate(
                date=day,
                weekday=weekday,
                selectable=is_bookable_date(
                    day,
                    template,
                    blocked,
                    earliest_bookable=earliest_bookable,
                    latest_bookable=latest_bookable,
                ),
            )
        )
    return candidates


def is_bookable_date(
    day: dt.date,
    template: WeeklyAvailabilityTemplate,
    blocked_dates: Collection[str],
    *,
    earliest_bookable: dt.date | None = None,
    latest_bookable: dt.date | None = None,
) -> bool:
    """Single-date form of the selectability rule used by :func:`resolve_candidate_dates`."""
    if earliest_bookable is not None and day < earliest_bookable:
        return False
    if latest_bookable is not None and day > latest_bookable:
        return False
    if not any(i.is_available for i in template.intervals_for(Weekday.of(day))):
        return False
    return format_date(day) not in blocked_dates
