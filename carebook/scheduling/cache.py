import datetime as dt
import time
from collections import OrderedDict
from collections.abc import Callable

from loguru import logger

from carebook.domain.exceptions import SlotUnavailableError
from carebook.domain.models import Appointment, BookingRequest, CandidateDate, TimeSlot
from carebook.scheduling.normalizer import normalize_date
from carebook.scheduling.ports import AbstractSchedulingService

DEFAULT_TTL_SECONDS: float = 15.0
DEFAULT_MAX_ENTRIES: int = 256

_Key = tuple[str, dt.date]


class CachedSchedulingService(AbstractSchedulingService):
    """Caches ``get_available_slots`` results in front of another scheduling service.

    Entries live for ``ttl_seconds`` and at most ``max_entries`` are kept,
    evicting the least recently used. Bookings are never answered from the
    cache: ``book_appointment`` always reaches the wrapped service, and any
    booking outcome or status change drops the affected ``(doctor, date)``
    entry so the next read is live.
    """

    def __init__(
        self,
        inner: AbstractSchedulingService,
        *,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._inner = inner
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[_Key, tuple[float, tuple[TimeSlot, ...]]] = OrderedDict()
        # Bumped on every invalidation; a read only stores its result if the
        # generation it started under is still current.
        self._generations: dict[_Key, int] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get_candidate_dates(
        self,
        doctor_id: str,
        window_start: dt.date | str | None = None,
        window_length: int | None = None,
    ) -> list[CandidateDate]:
        return await self._inner.get_candidate_dates(doctor_id, window_start, window_length)

    async def get_available_slots(self, doctor_id: str, date: dt.date | str) -> list[TimeSlot]:
        day = normalize_date(date) if isinstance(date, str) else date
        key = (doctor_id, day)
        now = self._clock()

        cached = self._entries.get(key)
        if cached is not None:
            expires_at, slots = cached
            if now < expires_at:
                self._entries.move_to_end(key)
                logger.debug("Slot cache hit for doctor {} on {}", doctor_id, day)
                return list(slots)
            del self._entries[key]

        generation = self._generations.get(key, 0)
        fresh = await self._inner.get_available_slots(doctor_id, day)
        if self._generations.get(key, 0) != generation:
            logger.debug(
                "Not caching slot read for doctor {} on {}: invalidated in flight", doctor_id, day
            )
            return fresh
        self._entries[key] = (now + self._ttl, tuple(fresh))
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)
        return fresh

    async def book_appointment(self, request: BookingRequest) -> Appointment:
        try:
            appointment = await self._inner.book_appointment(request)
        except SlotUnavailableError as exc:
            if exc.date is not None:
                self.invalidate(request.doctor_id, normalize_date(exc.date))
            raise
        self.invalidate(appointment.doctor_id, appointment.date)
        return appointment

    async def confirm_appointment(self, appointment_id: str) -> Appointment:
        return self._invalidated(await self._inner.confirm_appointment(appointment_id))

    async def complete_appointment(self, appointment_id: str) -> Appointment:
        return self._invalidated(await self._inner.complete_appointment(appointment_id))

    async def cancel_appointment(self, appointment_id: str) -> Appointment:
        return self._invalidated(await self._inner.cancel_appointment(appointment_id))

    async def close(self) -> None:
        self.clear()
        await self._inner.close()

    def invalidate(self, doctor_id: str, date: dt.date) -> None:
        key = (doctor_id, date)
        self._generations[key] = self._generations.get(key, 0) + 1
        if self._entries.pop(key, None) is not None:
            logger.debug("Slot cache invalidated for doctor {} on {}", doctor_id, date)

    def clear(self) -> None:
        self._entries.clear()

    def _invalidated(self, appointment: Appointment) -> Appointment:
        self.invalidate(appointment.doctor_id, appointment.date)
        return appointment
