import datetime as dt
from collections.abc import Callable

from loguru import logger

from carebook.domain.exceptions import (
    ApiError,
    AppointmentError,
    AuthError,
    SchedulingError,
    SlotUnavailableError,
    ValidationError,
)
from carebook.domain.models import (
    Appointment,
    AppointmentStatus,
    BookingPolicy,
    BookingRequest,
    CandidateDate,
    CurrentUser,
    DoctorAvailability,
    NewAppointment,
    TimeSlot,
    UserRole,
    Weekday,
)
from carebook.scheduling.availability import is_bookable_date, resolve_candidate_dates
from carebook.scheduling.normalizer import format_date, normalize_date, normalize_time
from carebook.scheduling.ports import (
    AbstractSchedulingService,
    AppointmentRepositoryProtocol,
    AvailabilityProviderProtocol,
    IdentityProviderProtocol,
)
from carebook.scheduling.slots import generate_slots

_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED}
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELED: frozenset(),
}

_TRANSITION_ACTIONS: dict[AppointmentStatus, str] = {
    AppointmentStatus.CONFIRMED: "confirm",
    AppointmentStatus.COMPLETED: "complete",
    AppointmentStatus.CANCELED: "cancel",
}


class SchedulingService(AbstractSchedulingService):
    """Scheduling core: resolves availability, lists free slots and commits bookings.

    Holds no cached state; every query is computed from the collaborators'
    current data. Wrap it in ``CachedSchedulingService`` for slot caching.
    """

    def __init__(
        self,
        availability: AvailabilityProviderProtocol,
        appointments: AppointmentRepositoryProtocol,
        identity: IdentityProviderProtocol,
        *,
        policy: BookingPolicy | None = None,
        today: Callable[[], dt.date] = dt.date.today,
    ) -> None:
        self._availability = availability
        self._appointments = appointments
        self._identity = identity
        self._policy = policy or BookingPolicy()
        self._today = today

    @property
    def policy(self) -> BookingPolicy:
        return self._policy

    # Booking opens tomorrow; today is never bookable.
    def _earliest_bookable(self) -> dt.date:
        return self._today() + dt.timedelta(days=1)

    def _latest_bookable(self) -> dt.date:
        return self._earliest_bookable() + dt.timedelta(days=self._policy.look_ahead_days - 1)

    async def get_candidate_dates(
        self,
        doctor_id: str,
        window_start: dt.date | str | None = None,
        window_length: int | None = None,
    ) -> list[CandidateDate]:
        earliest = self._earliest_bookable()
        if window_start is None:
            start = earliest
        elif isinstance(window_start, str):
            start = normalize_date(window_start, "windowStart")
        else:
            start = window_start
        length = self._policy.look_ahead_days if window_length is None else window_length

        availability = await self._fetch_availability(doctor_id)
        candidates = resolve_candidate_dates(
            availability.weekly_schedule,
            availability.blocked_dates,
            start,
            length,
            earliest_bookable=earliest,
            latest_bookable=self._latest_bookable(),
        )

        logger.info(
            "Resolved {} candidate date(s) for doctor {} from {} ({} selectable)",
            len(candidates),
            doctor_id,
            start,
            sum(1 for c in candidates if c.selectable),
        )
        return candidates

    async def get_available_slots(self, doctor_id: str, date: dt.date | str) -> list[TimeSlot]:
        day = normalize_date(date) if isinstance(date, str) else date
        availability = await self._fetch_availability(doctor_id)
        slots = await self._free_slots(doctor_id, availability, day)
        logger.debug("Doctor {} has {} free slot(s) on {}", doctor_id, len(slots), day)
        return slots

    async def book_appointment(self, request: BookingRequest) -> Appointment:
        """Run the booking transaction; see ``AbstractSchedulingService``."""
        user = await self._require_user()
        if user.role != UserRole.PATIENT:
            raise AppointmentError("PATIENT_ONLY", "Only patients can book appointments")
        if user.user_id != request.patient_id:
            raise AuthError(
                "You can only book appointments for yourself", code="PATIENT_MISMATCH"
            )

        date, start, end = self._validate_fields(request)
        slot_label = TimeSlot(start=start, end=end).label()
        logger.info(
            "Booking request: doctor={}, date={}, slot={}",
            request.doctor_id,
            date,
            slot_label,
        )

        await self._check_patient_rules(request.patient_id, date, start, end)

        # Re-verify against current state immediately before the write.
        availability = await self._fetch_availability(request.doctor_id)
        free = await self._free_slots(request.doctor_id, availability, date)
        if TimeSlot(start=start, end=end) not in free:
            logger.warning(
                "Slot {} on {} is no longer free for doctor {}",
                slot_label,
                date,
                request.doctor_id,
            )
            raise SlotUnavailableError(
                doctor_id=request.doctor_id, date=format_date(date), slot=slot_label
            )

        new_appointment = NewAppointment(
            doctor_id=request.doctor_id,
            patient_id=request.patient_id,
            date=date,
            start_time=start,
            end_time=end,
            status=self._policy.initial_status,
            appointment_type=request.appointment_type,
            reason=request.reason,
        )
        try:
            appointment = await self._appointments.insert_if_slot_free(new_appointment)
        except SlotUnavailableError:
            logger.warning(
                "Lost booking race for doctor {} at {} {}", request.doctor_id, date, slot_label
            )
            raise
        except SchedulingError:
            raise
        except Exception as exc:
            raise ApiError(f"Appointment insert failed: {exc}") from exc

        logger.info(
            "Appointment booked: id={}, status={}",
            appointment.appointment_id,
            appointment.status.value,
        )
        return appointment

    async def confirm_appointment(self, appointment_id: str) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.CONFIRMED)

    async def complete_appointment(self, appointment_id: str) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.COMPLETED)

    async def cancel_appointment(self, appointment_id: str) -> Appointment:
        return await self._transition(appointment_id, AppointmentStatus.CANCELED)

    async def close(self) -> None:
        await self._appointments.close()

    def _validate_fields(self, request: BookingRequest) -> tuple[dt.date, dt.time, dt.time]:
        errors: dict[str, str] = {}
        date: dt.date | None = None
        start: dt.time | None = None
        end: dt.time | None = None

        try:
            date = normalize_date(request.date, "date")
        except ValidationError as exc:
            errors.update(exc.fields)
        try:
            start = normalize_time(request.start_time, "startTime")
        except ValidationError as exc:
            errors.update(exc.fields)
        try:
            end = normalize_time(request.end_time, "endTime")
        except ValidationError as exc:
            errors.update(exc.fields)

        if start is not None and end is not None and start >= end:
            errors["endTime"] = "must be after the start time"

        if errors or date is None or start is None or end is None:
            logger.warning("Rejected booking request with invalid fields: {}", sorted(errors))
            raise ValidationError("Some booking details are invalid", errors)
        return date, start, end

    async def _check_patient_rules(
        self, patient_id: str, date: dt.date, start: dt.time, end: dt.time
    ) -> None:
        try:
            existing = await self._appointments.list_active_for_patient(patient_id, date)
        except SchedulingError:
            raise
        except Exception as exc:
            raise ApiError(f"Patient appointment lookup failed: {exc}") from exc

        existing = [a for a in existing if a.occupies_slot]
        limit = self._policy.max_daily_bookings_per_patient
        if limit is not None and len(existing) >= limit:
            raise AppointmentError(
                "DAILY_LIMIT_EXCEEDED",
                f"You can book at most {limit} appointment(s) per day",
            )

        clash = next((a for a in existing if a.overlaps(start, end)), None)
        if clash is not None:
            raise AppointmentError(
                "PATIENT_DOUBLE_BOOKED",
                "You already have an appointment at this time",
                appointment_id=clash.appointment_id,
            )

    async def _free_slots(
        self, doctor_id: str, availability: DoctorAvailability, day: dt.date
    ) -> list[TimeSlot]:
        template = availability.weekly_schedule
        if not is_bookable_date(
            day,
            template,
            availability.blocked_dates,
            earliest_bookable=self._earliest_bookable(),
            latest_bookable=self._latest_bookable(),
        ):
            return []

        try:
            booked = await self._appointments.list_active_for_doctor(doctor_id, day)
        except SchedulingError:
            raise
        except Exception as exc:
            raise ApiError(f"Appointment lookup failed: {exc}") from exc

        return generate_slots(
            day,
            template.intervals_for(Weekday.of(day)),
            booked,
            self._policy.slot_duration_minutes,
        )

    async def _fetch_availability(self, doctor_id: str) -> DoctorAvailability:
        try:
            return await self._availability.get_availability(doctor_id)
        except SchedulingError:
            raise
        except Exception as exc:
            raise ApiError(f"Availability lookup failed: {exc}") from exc

    async def _require_user(self) -> CurrentUser:
        try:
            user = await self._identity.current_user()
        except SchedulingError:
            raise
        except Exception as exc:
            raise ApiError(f"Session lookup failed: {exc}") from exc

        if user is None:
            raise AuthError("Please sign in to continue")
        return user

    async def _transition(self, appointment_id: str, target: AppointmentStatus) -> Appointment:
        user = await self._require_user()
        try:
            appointment = await self._appointments.get(appointment_id)
        except SchedulingError:
            raise
        except Exception as exc:
            raise ApiError(f"Appointment lookup failed: {exc}") from exc

        if appointment is None:
            raise AppointmentError(
                "NOT_FOUND", "Appointment not found", appointment_id=appointment_id
            )

        if not _may_transition(user, appointment, target):
            logger.warning(
                "User {} may not mark appointment {} as {}",
                user.user_id,
                appointment_id,
                target.value,
            )
            raise AuthError(
                f"You are not allowed to {_TRANSITION_ACTIONS[target]} this appointment",
                code="NOT_AUTHORIZED",
            )

        if target not in _TRANSITIONS[appointment.status]:
            raise AppointmentError(
                "INVALID_STATUS_TRANSITION",
                f"Cannot {_TRANSITION_ACTIONS[target]} an appointment "
                f"in status '{appointment.status.value}'",
                appointment_id=appointment_id,
            )

        try:
            updated = await self._appointments.update_status(appointment_id, target)
        except SchedulingError:
            raise
        except Exception as exc:
            raise ApiError(f"Appointment update failed: {exc}") from exc

        logger.info(
            "Appointment {} {} -> {}", appointment_id, appointment.status.value, target.value
        )
        return updated


def _may_transition(user: CurrentUser, appointment: Appointment, target: AppointmentStatus) -> bool:
    if user.role == UserRole.ADMIN:
        return True
    if user.role == UserRole.DOCTOR:
        return user.user_id == appointment.doctor_id
    # Patients may only cancel their own appointments.
    return target == AppointmentStatus.CANCELED and user.user_id == appointment.patient_id
