import datetime as dt
from collections.abc import Iterable, Sequence

from carebook.domain.exceptions import ValidationError
from carebook.domain.models import Appointment, TimeSlot, WorkingInterval
from carebook.scheduling.normalizer import from_minutes, to_minutes


def generate_slots(
    date: dt.date,
    working_intervals: Sequence[WorkingInterval],
    booked: Iterable[Appointment],
    slot_duration: int | None = None,
) -> list[TimeSlot]:
    """Return the free, bookable slots for ``date``, sorted by start time.

    Working intervals switched off with ``is_available`` are skipped. Only
    appointments on ``date`` that still occupy their slot (anything not
    CANCELED) count as booked.

    With ``slot_duration`` (minutes), the free time left in each working
    interval after removing booked intervals is cut into contiguous slots of
    that size, starting at the beginning of every free segment; a remainder
    shorter than one slot is not offered. Without it, each working interval
    is offered verbatim as a single slot unless something booked overlaps it.
    """
    if slot_duration is not None and slot_duration <= 0:
        raise ValidationError(
            f"Slot duration must be positive, got {slot_duration}",
            {"slotDuration": "must be a positive number of minutes"},
        )

    busy = sorted(
        (to_minutes(a.start_time), to_minutes(a.end_time))
        for a in booked
        if a.date == date and a.occupies_slot
    )

    slots: list[TimeSlot] = []
    for interval in working_intervals:
        if not interval.is_available:
            continue
        start, end = to_minutes(interval.start), to_minutes(interval.end)

        if slot_duration is None:
            if not any(b_start < end and start < b_end for b_start, b_end in busy):
                slots.append(TimeSlot(start=interval.start, end=interval.end))
            continue

        for free_start, free_end in _subtract(start, end, busy):
            cursor = free_start
            while cursor + slot_duration <= free_end:
                slots.append(
                    TimeSlot(start=from_minutes(cursor), end=from_minutes(cursor + slot_duration))
                )
                cursor += slot_duration

    slots.sort(key=lambda s: s.start)
    return slots


def _subtract(start: int, end: int, busy: list[tuple[int, int]]) -> list[tuple[int, int]]:
    """Remove ``busy`` (sorted by start) from ``[start, end)``; returns the free segments."""
    segments: list[tuple[int, int]] = []
    cursor = start
    for b_start, b_end in busy:
        if b_end <= cursor or b_start >= end:
            continue
        if b_start > cursor:
            segments.append((cursor, b_start))
        cursor = max(cursor, b_end)
        if cursor >= end:
            break
    if cursor < end:
        segments.append((cursor, end))
    return segments
