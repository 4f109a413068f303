import datetime as dt
from collections.abc import Callable
from typing import Any

import pytest

from carebook.domain.models import (
    Appointment,
    AppointmentStatus,
    AppointmentType,
    BookingRequest,
    CurrentUser,
    DoctorAvailability,
    UserRole,
)
from carebook.scheduling.adapters.memory import (
    InMemoryAppointmentRepository,
    InMemoryAvailabilityProvider,
    StaticIdentityProvider,
)
from carebook.scheduling.service import SchedulingService

TODAY = dt.date(2026, 10, 19)  # a Monday
NEXT_MONDAY = dt.date(2026, 10, 26)
DOCTOR_ID = "doc-1"
PATIENT_ID = "pat-1"


@pytest.fixture
def availability() -> InMemoryAvailabilityProvider:
    provider = InMemoryAvailabilityProvider()
    provider.set(
        DoctorAvailability(
            doctor_id=DOCTOR_ID,
            weekly_schedule={"monday": [{"start": "09:00", "end": "12:00"}]},
        )
    )
    return provider


@pytest.fixture
def repository() -> InMemoryAppointmentRepository:
    return InMemoryAppointmentRepository()


@pytest.fixture
def identity() -> StaticIdentityProvider:
    return StaticIdentityProvider(CurrentUser(user_id=PATIENT_ID, role=UserRole.PATIENT))


@pytest.fixture
def service(
    availability: InMemoryAvailabilityProvider,
    repository: InMemoryAppointmentRepository,
    identity: StaticIdentityProvider,
) -> SchedulingService:
    return SchedulingService(availability, repository, identity, today=lambda: TODAY)


@pytest.fixture
def make_request() -> Callable[..., BookingRequest]:
    """Build a booking request for 09:00-09:30 next Monday, with overrides."""

    def _make(**overrides: Any) -> BookingRequest:
        fields: dict[str, Any] = {
            "doctor_id": DOCTOR_ID,
            "patient_id": PATIENT_ID,
            "date": "2026-10-26",
            "start_time": "09:00",
            "end_time": "09:30",
            "appointment_type": AppointmentType.IN_PERSON,
        }
        fields.update(overrides)
        return BookingRequest(**fields)

    return _make


@pytest.fixture
def make_appointment() -> Callable[..., Appointment]:
    """Build a persisted CONFIRMED appointment next Monday, with overrides."""
    counter = iter(range(1000, 2000))

    def _make(start: str, end: str, **overrides: Any) -> Appointment:
        fields: dict[str, Any] = {
            "appointment_id": f"seed-{next(counter)}",
            "doctor_id": DOCTOR_ID,
            "patient_id": "pat-other",
            "date": NEXT_MONDAY,
            "start_time": start,
            "end_time": end,
            "status": AppointmentStatus.CONFIRMED,
            "appointment_type": AppointmentType.IN_PERSON,
        }
        fields.update(overrides)
        return Appointment(**fields)

    return _make
