from typing import Any

from loguru import logger

from carebook.contract import (
    dump_appointment,
    dump_candidate_dates,
    dump_slots,
    envelope,
    parse_appointment_reference,
    parse_booking_request,
    parse_candidate_dates_query,
    parse_slot_query,
)
from carebook.domain.exceptions import (
    ApiError,
    AppointmentError,
    AuthError,
    SchedulingError,
    SlotUnavailableError,
    ValidationError,
)
from carebook.scheduling.ports import AbstractSchedulingService

INVALID_INPUT_MESSAGE = (
    "Some of the details you entered are invalid. Please correct them and try again."
)
SLOT_GONE_MESSAGE = "That time slot is no longer available. Please pick another time."
SERVICE_DOWN_MESSAGE = (
    "The scheduling service is temporarily unavailable. Please try again in a moment."
)
UNEXPECTED_MESSAGE = "Something went wrong on our side. Please try again."


def error_response(exc: SchedulingError) -> dict[str, Any]:
    """Translate a scheduling error into a versioned failure payload.

    Each error kind keeps its own user-facing message: invalid input, a slot
    that is gone, a rule or permission problem, and a service outage must
    stay distinguishable to the patient.
    """
    fields: dict[str, str] = {}
    if isinstance(exc, ValidationError):
        kind, message, fields = "validation", INVALID_INPUT_MESSAGE, exc.fields
    elif isinstance(exc, SlotUnavailableError):
        kind, message = "slot_unavailable", SLOT_GONE_MESSAGE
    elif isinstance(exc, AuthError):
        kind, message = "auth", exc.message
    elif isinstance(exc, AppointmentError):
        kind, message = "appointment", exc.message
    elif isinstance(exc, ApiError):
        kind, message = "service_unavailable", SERVICE_DOWN_MESSAGE
    else:
        kind, message = "scheduling", exc.message

    return envelope(
        success=False,
        error={
            "kind": kind,
            "code": exc.code,
            "message": message,
            "retryable": exc.retryable,
            "fields": dict(fields),
        },
    )


def _unexpected_response() -> dict[str, Any]:
    return envelope(
        success=False,
        error={
            "kind": "internal",
            "code": "INTERNAL_ERROR",
            "message": UNEXPECTED_MESSAGE,
            "retryable": True,
            "fields": {},
        },
    )


class SchedulingHandlers:
    """Entry points that take and return contract ``v1`` payloads.

    Handlers never raise: every outcome, including failures, is a versioned
    response dict with ``success`` set accordingly.
    """

    def __init__(self, service: AbstractSchedulingService) -> None:
        self._service = service

    async def handle_get_candidate_dates(self, payload: object) -> dict[str, Any]:
        try:
            query = parse_candidate_dates_query(payload)
            candidates = await self._service.get_candidate_dates(
                query.doctor_id, query.window_start, query.window_length
            )
        except SchedulingError as exc:
            return error_response(exc)
        except Exception:
            logger.exception("Unexpected error in get_candidate_dates")
            return _unexpected_response()

        return envelope(success=True, dates=dump_candidate_dates(candidates))

    async def handle_get_available_slots(self, payload: object) -> dict[str, Any]:
        try:
            query = parse_slot_query(payload)
            slots = await self._service.get_available_slots(query.doctor_id, query.date)
        except SchedulingError as exc:
            return error_response(exc)
        except Exception:
            logger.exception("Unexpected error in get_available_slots")
            return _unexpected_response()

        return envelope(
            success=True, doctorId=query.doctor_id, date=query.date, slots=dump_slots(slots)
        )

    async def handle_book_appointment(self, payload: object) -> dict[str, Any]:
        logger.debug("Handling book_appointment request")
        try:
            request = parse_booking_request(payload)
            appointment = await self._service.book_appointment(request)
        except SchedulingError as exc:
            return error_response(exc)
        except Exception:
            logger.exception("Unexpected error in book_appointment")
            return _unexpected_response()

        return envelope(
            success=True,
            appointment=dump_appointment(appointment),
            message="Appointment successfully booked.",
        )

    async def handle_cancel_appointment(self, payload: object) -> dict[str, Any]:
        try:
            reference = parse_appointment_reference(payload)
            appointment = await self._service.cancel_appointment(reference.appointment_id)
        except SchedulingError as exc:
            return error_response(exc)
        except Exception:
            logger.exception("Unexpected error in cancel_appointment")
            return _unexpected_response()

        return envelope(
            success=True,
            appointment=dump_appointment(appointment),
            message="Appointment canceled.",
        )
