import datetime as dt
from abc import ABC, abstractmethod
from typing import Protocol

from carebook.domain.models import (
    Appointment,
    AppointmentStatus,
    BookingRequest,
    CandidateDate,
    CurrentUser,
    DoctorAvailability,
    NewAppointment,
    TimeSlot,
)


class AbstractSchedulingService(ABC):
    """Abstract base class for the scheduling operations offered to callers."""

    @abstractmethod
    async def get_candidate_dates(
        self,
        doctor_id: str,
        window_start: dt.date | str | None = None,
        window_length: int | None = None,
    ) -> list[CandidateDate]:
        """List the dates of a look-ahead window and whether each can be booked.

        Args:
            doctor_id: The doctor whose schedule to resolve.
            window_start: First date of the window, or None for tomorrow.
            window_length: Number of days, or None for the configured look-ahead.

        Returns:
            One entry per date in the window, in calendar order.

        Raises:
            ValidationError: If the window arguments are malformed.
            ApiError: If availability cannot be fetched.
        """

    @abstractmethod
    async def get_available_slots(self, doctor_id: str, date: dt.date | str) -> list[TimeSlot]:
        """List the free slots for a doctor on a date.

        This is a non-authoritative read: a slot listed here may be taken
        before the patient submits.

        Returns:
            Free slots sorted by start time. Empty if nothing is free.

        Raises:
            ValidationError: If ``date`` is malformed.
            ApiError: If availability or appointments cannot be fetched.
        """

    @abstractmethod
    async def book_appointment(self, request: BookingRequest) -> Appointment:
        """Re-verify and commit a booking for the signed-in patient.

        Raises:
            AuthError: If nobody is signed in or the patient id is not theirs.
            ValidationError: If the date or times are malformed or inverted.
            AppointmentError: If a domain rule rejects the booking.
            SlotUnavailableError: If the slot is no longer free.
            ApiError: If the store is unreachable.
        """

    @abstractmethod
    async def confirm_appointment(self, appointment_id: str) -> Appointment:
        """Move a PENDING appointment to CONFIRMED."""

    @abstractmethod
    async def complete_appointment(self, appointment_id: str) -> Appointment:
        """Mark a PENDING or CONFIRMED appointment COMPLETED."""

    @abstractmethod
    async def cancel_appointment(self, appointment_id: str) -> Appointment:
        """Cancel a PENDING or CONFIRMED appointment, freeing its slot."""

    @abstractmethod
    async def close(self) -> None:
        """Release resources held by this service."""


class AvailabilityProviderProtocol(Protocol):
    """Source of doctors' weekly schedules and blocked dates."""

    async def get_availability(self, doctor_id: str) -> DoctorAvailability:
        """Return the doctor's schedule; an unknown doctor has an empty one."""
        ...


class AppointmentRepositoryProtocol(Protocol):
    """Persistent appointment store."""

    async def list_active_for_doctor(self, doctor_id: str, date: dt.date) -> list[Appointment]:
        """List the doctor's non-canceled appointments on a date."""
        ...

    async def list_active_for_patient(self, patient_id: str, date: dt.date) -> list[Appointment]:
        """List the patient's non-canceled appointments on a date."""
        ...

    async def get(self, appointment_id: str) -> Appointment | None:
        """Fetch one appointment, or None if it does not exist."""
        ...

    async def insert_if_slot_free(self, appointment: NewAppointment) -> Appointment:
        """Atomically insert unless a non-canceled appointment of the same doctor overlaps.

        Raises:
            SlotUnavailableError: If the slot was taken first.
        """
        ...

    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        """Persist a status transition and return the updated appointment."""
        ...

    async def close(self) -> None:
        """Release resources."""
        ...


class IdentityProviderProtocol(Protocol):
    """Session lookup for the user making the current request."""

    async def current_user(self) -> CurrentUser | None:
        """Return the signed-in user, or None when the request is anonymous."""
        ...
