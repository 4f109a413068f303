"""Version ``v1`` of the scheduling wire contract.

Every payload, in either direction, is a JSON object carrying
``"version": "v1"``. Parsers accept exactly one shape per message and raise
:class:`~carebook.domain.exceptions.ValidationError` with a field map for
anything else; there is no best-effort extraction from alternative shapes.
"""

from collections.abc import Sequence
from typing import Any, TypeVar

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from carebook.domain.exceptions import ValidationError
from carebook.domain.models import (
    Appointment,
    BookingRequest,
    CandidateDate,
    CurrentUser,
    DoctorAvailability,
    NewAppointment,
    TimeSlot,
    WireModel,
)
from carebook.scheduling.availability import MAX_WINDOW_DAYS

CONTRACT_VERSION = "v1"

_M = TypeVar("_M", bound=BaseModel)


class CandidateDatesQuery(WireModel):
    doctor_id: str = Field(min_length=1)
    window_start: str | None = None
    window_length: int | None = Field(default=None, ge=0, le=MAX_WINDOW_DAYS)


class SlotQuery(WireModel):
    doctor_id: str = Field(min_length=1)
    date: str


class AppointmentReference(WireModel):
    appointment_id: str = Field(min_length=1)


def envelope(**fields: Any) -> dict[str, Any]:
    """Wrap response fields in a versioned envelope."""
    return {"version": CONTRACT_VERSION, **fields}


def _unwrap(payload: object, what: str) -> dict[str, Any]:
    if not isinstance(payload, dict):
        raise ValidationError(
            f"The {what} payload must be a JSON object", {"payload": "must be an object"}
        )
    version = payload.get("version")
    if version != CONTRACT_VERSION:
        raise ValidationError(
            f"Unsupported {what} contract version: {version!r}",
            {"version": f"must be '{CONTRACT_VERSION}'"},
        )
    body = dict(payload)
    del body["version"]
    return body


def _field_errors(exc: PydanticValidationError) -> dict[str, str]:
    fields: dict[str, str] = {}
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "payload"
        fields.setdefault(location, error["msg"])
    return fields


def _validate(model: type[_M], data: object, what: str) -> _M:
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid {what}", _field_errors(exc)) from exc


def _member(body: dict[str, Any], key: str, what: str) -> object:
    if set(body) != {key}:
        unexpected = sorted(set(body) - {key})
        raise ValidationError(
            f"The {what} payload must contain exactly '{key}'",
            {name: "unexpected field" for name in unexpected} or {key: "Field required"},
        )
    return body[key]


# Requests


def parse_booking_request(payload: object) -> BookingRequest:
    return _validate(BookingRequest, _unwrap(payload, "booking request"), "booking request")


def parse_candidate_dates_query(payload: object) -> CandidateDatesQuery:
    body = _unwrap(payload, "candidate dates query")
    return _validate(CandidateDatesQuery, body, "candidate dates query")


def parse_slot_query(payload: object) -> SlotQuery:
    return _validate(SlotQuery, _unwrap(payload, "slot query"), "slot query")


def parse_appointment_reference(payload: object) -> AppointmentReference:
    body = _unwrap(payload, "appointment reference")
    return _validate(AppointmentReference, body, "appointment reference")


# Remote responses


def parse_availability(payload: object) -> DoctorAvailability:
    body = _unwrap(payload, "availability")
    return _validate(DoctorAvailability, body, "availability")


def parse_appointment(payload: object) -> Appointment:
    body = _unwrap(payload, "appointment")
    return _validate(Appointment, _member(body, "appointment", "appointment"), "appointment")


def parse_appointment_list(payload: object) -> list[Appointment]:
    body = _unwrap(payload, "appointment list")
    items = _member(body, "appointments", "appointment list")
    if not isinstance(items, list):
        raise ValidationError(
            "The appointment list must be a JSON array", {"appointments": "must be a list"}
        )
    return [_validate(Appointment, item, "appointment") for item in items]


def parse_current_user(payload: object) -> CurrentUser:
    body = _unwrap(payload, "session")
    return _validate(CurrentUser, _member(body, "user", "session"), "session")


# Dumpers


def dump_appointment(appointment: Appointment | NewAppointment) -> dict[str, Any]:
    return appointment.model_dump(mode="json", by_alias=True, exclude_none=True)


def dump_slots(slots: Sequence[TimeSlot]) -> list[dict[str, Any]]:
    return [slot.model_dump(mode="json", by_alias=True) for slot in slots]


def dump_candidate_dates(candidates: Sequence[CandidateDate]) -> list[dict[str, Any]]:
    return [candidate.model_dump(mode="json", by_alias=True) for candidate in candidates]


def dump_availability(availability: DoctorAvailability) -> dict[str, Any]:
    schedule = availability.weekly_schedule
    return envelope(
        doctorId=availability.doctor_id,
        weeklySchedule={
            weekday.value: [i.model_dump(mode="json", by_alias=True) for i in intervals]
            for weekday, intervals in schedule.days.items()
        },
        blockedDates=sorted(availability.blocked_dates),
    )
