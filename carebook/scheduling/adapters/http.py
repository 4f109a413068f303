import datetime as dt
from typing import Any
from urllib.parse import quote

import httpx
from loguru import logger

from carebook.contract import (
    dump_appointment,
    envelope,
    parse_appointment,
    parse_appointment_list,
    parse_availability,
    parse_current_user,
)
from carebook.domain.exceptions import (
    ApiError,
    AppointmentError,
    AuthError,
    SlotUnavailableError,
    ValidationError,
)
from carebook.domain.models import (
    Appointment,
    AppointmentStatus,
    CurrentUser,
    DoctorAvailability,
    NewAppointment,
)
from carebook.scheduling.normalizer import format_date, format_time


class RemoteSchedulingClient:
    """Availability provider, appointment store and session lookup over the clinic REST API.

    Speaks contract ``v1`` (see :mod:`carebook.contract`). The server owns the
    ``(doctor, date, start)`` uniqueness constraint and answers a losing
    insert with ``409 Conflict``.
    """

    def __init__(
        self,
        api_url: str,
        *,
        token: str = "",
        timeout: float = 10.0,
    ) -> None:
        self._api_url = api_url.rstrip("/")
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(base_url=self._api_url, headers=headers, timeout=timeout)

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> httpx.Response:
        try:
            return await self._client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as exc:
            # The outcome is unknown; callers must re-query rather than replay writes.
            raise ApiError(f"Scheduling API timed out: {method} {path}") from exc
        except httpx.HTTPError as exc:
            raise ApiError(f"Scheduling API request failed: {exc}") from exc

    def _raise_for_status(self, resp: httpx.Response) -> None:
        status = resp.status_code
        if status < 400:
            return
        if status == 401:
            raise AuthError("Your session has expired. Please sign in again.")
        if status == 403:
            raise AuthError("You are not allowed to perform this action", code="NOT_AUTHORIZED")
        logger.warning(
            "Scheduling API error: {} {} -> {}", resp.request.method, resp.request.url.path, status
        )
        raise ApiError(f"Scheduling API returned HTTP {status}", status_code=status)

    def _json(self, resp: httpx.Response) -> object:
        self._raise_for_status(resp)
        try:
            return resp.json()
        except ValueError as exc:
            raise ValidationError(
                "Scheduling API returned a non-JSON response", {"payload": "is not valid JSON"}
            ) from exc

    async def get_availability(self, doctor_id: str) -> DoctorAvailability:
        resp = await self._request("GET", f"/doctors/{quote(doctor_id, safe='')}/availability")
        availability = parse_availability(self._json(resp))
        if availability.doctor_id != doctor_id:
            raise ValidationError(
                f"Availability returned for doctor {availability.doctor_id}, expected {doctor_id}",
                {"doctorId": "does not match the requested doctor"},
            )
        return availability

    async def list_active_for_doctor(self, doctor_id: str, date: dt.date) -> list[Appointment]:
        resp = await self._request(
            "GET",
            f"/doctors/{quote(doctor_id, safe='')}/appointments",
            params={"date": format_date(date)},
        )
        appointments = parse_appointment_list(self._json(resp))
        return [a for a in appointments if a.occupies_slot and a.date == date]

    async def list_active_for_patient(self, patient_id: str, date: dt.date) -> list[Appointment]:
        resp = await self._request(
            "GET",
            f"/patients/{quote(patient_id, safe='')}/appointments",
            params={"date": format_date(date)},
        )
        appointments = parse_appointment_list(self._json(resp))
        return [a for a in appointments if a.occupies_slot and a.date == date]

    async def get(self, appointment_id: str) -> Appointment | None:
        resp = await self._request("GET", f"/appointments/{quote(appointment_id, safe='')}")
        if resp.status_code == 404:
            return None
        return parse_appointment(self._json(resp))

    async def insert_if_slot_free(self, appointment: NewAppointment) -> Appointment:
        resp = await self._request(
            "POST", "/appointments", json=envelope(appointment=dump_appointment(appointment))
        )
        if resp.status_code == 409:
            start, end = format_time(appointment.start_time), format_time(appointment.end_time)
            raise SlotUnavailableError(
                doctor_id=appointment.doctor_id,
                date=format_date(appointment.date),
                slot=f"{start}-{end}",
            )
        return parse_appointment(self._json(resp))

    async def update_status(self, appointment_id: str, status: AppointmentStatus) -> Appointment:
        resp = await self._request(
            "PATCH",
            f"/appointments/{quote(appointment_id, safe='')}",
            json=envelope(status=status.value),
        )
        if resp.status_code == 404:
            raise AppointmentError(
                "NOT_FOUND", "Appointment not found", appointment_id=appointment_id
            )
        if resp.status_code == 409:
            raise AppointmentError(
                "INVALID_STATUS_TRANSITION",
                f"Appointment can no longer be marked {status.value}",
                appointment_id=appointment_id,
            )
        return parse_appointment(self._json(resp))

    async def current_user(self) -> CurrentUser | None:
        resp = await self._request("GET", "/session")
        if resp.status_code == 401:
            return None
        return parse_current_user(self._json(resp))

    async def health_check(self) -> bool:
        try:
            resp = await self._request("GET", "/health")
            self._raise_for_status(resp)
            return True
        except (ApiError, AuthError) as exc:
            logger.warning("Scheduling API health check failed: {}", exc)
            return False

    async def close(self) -> None:
        await self._client.aclose()
        logger.info("Scheduling API client closed")
