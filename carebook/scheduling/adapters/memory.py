import asyncio
import datetime as dt
import itertools
from collections.abc import Callable

from carebook.domain.exceptions import AppointmentError, SlotUnavailableError
from carebook.domain.models import (
    Appointment,
    AppointmentStatus,
    CurrentUser,
    DoctorAvailability,
    NewAppointment,
)
from carebook.scheduling.normalizer import format_date, format_time


class InMemoryAvailabilityProvider:
    """Availability provider backed by a dict of ``doctor_id → DoctorAvailability``.

    Set ``error`` to make the next lookups raise.
    """

    def __init__(self, availabilities: dict[str, DoctorAvailability] | None = None) -> None:
        self.availabilities: dict[str, DoctorAvailability] = dict(availabilities or {})
        self.lookups: list[str] = []
        self.error: Exception | None = None

    def set(self, availability: DoctorAvailability) -> None:
        self.availabilities[availability.doctor_id] = availability

    async def get_availability(self, doctor_id: str) -> DoctorAvailability:
        if self.error:
            raise self.error
        self.lookups.append(doctor_id)
        return self.availabilities.get(doctor_id) or DoctorAvailability(doctor_id=doctor_id)


class InMemoryAppointmentRepository:
    """Appointment store kept in process memory.

    Inserts are serialized behind an ``asyncio.Lock`` and refuse any
    appointment overlapping a non-canceled one of the same doctor on the
    same date, which makes ``insert_if_slot_free`` the final arbiter between
    concurrent bookings.

    Reads yield to the event loop once so that concurrent callers interleave
    the way they would against a remote store. Set ``list_error``,
    ``insert_error`` etc. to make the corresponding method raise.
    """

    def __init__(self, appointments: list[Appointment] | None = None) -> None:
        self.appointments: dict[str, Appointment] = {
            a.appointment_id: a for a in appointments or []
        }
        self.closed: bool = False
        self._ids = itertools.count(len(self.appointments) + 1)
        self._lock = asyncio.Lock()

        self.list_error: Exception | None = None
        self.insert_error: Exception | None = None
        self.update_error: Exception | None = None

    async def list_active_for_doctor(self, doctor_id: str, date: dt.date) -> list[Appointment]:
        if self.list_error:
            raise self.list_error
        await asyncio.sleep(0)
        return self._active(lambda a: a.doctor_id == doctor_id and a.date == date)

    async def list_active_for_patient(self, patient_id: str, date: dt.date) -> list[Appointment]:
        if self.list_error:
            raise self.list_error
        await asyncio.sleep(0)
        return self._active(lambda a: a.patient_id == patient_id and a.date == date)

    async def get(self, appointment_id: str) -> Appointment | None:
        return self.appointments.get(appointment_id)

    async def insert_if_slot_free(self, appointment: NewAppointment) -> Appointment:
        if self.insert_error:
            raise self.insert_error

        async with self._lock:
            taken = any(
                a.doctor_id == appointment.doctor_id
                and a.date == appointment.date
                and a.occupies_slot
                and a.overlaps(appointment.start_time, appointment.end_time)
                for a in self.appointments.values()
            )
            if taken:
                start, end = format_time(appointment.start_time), format_time(appointment.end_time)
                raise SlotUnavailableError(
                    doctor_id=appointment.doctor_id,
                    date=format_date(appointment.date),
                    slot=f"{start}-{end}",
                )

            created = Appointment(
                appointment_id=f"appt-{next(self._ids)}",
                created_at=dt.datetime.now(dt.timezone.utc),
                **appointment.model_dump(),
            )
            self.appointments[created.appointment_id] = created
            return created

    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        if self.update_error:
            raise self.update_error

        async with self._lock:
            current = self.appointments.get(appointment_id)
            if current is None:
                raise AppointmentError(
                    "NOT_FOUND", "Appointment not found", appointment_id=appointment_id
                )
            updated = current.model_copy(update={"status": status})
            self.appointments[appointment_id] = updated
            return updated

    async def close(self) -> None:
        self.closed = True

    def _active(self, predicate: Callable[[Appointment], bool]) -> list[Appointment]:
        matches = [a for a in self.appointments.values() if a.occupies_slot and predicate(a)]
        return sorted(matches, key=lambda a: (a.date, a.start_time))


class StaticIdentityProvider:
    """Identity provider that always reports the same user (or nobody)."""

    def __init__(self, user: CurrentUser | None = None) -> None:
        self.user = user

    async def current_user(self) -> CurrentUser | None:
        return self.user
