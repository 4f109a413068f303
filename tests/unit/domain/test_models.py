import datetime as dt

import pytest
from pydantic import ValidationError as PydanticValidationError

from carebook.domain.exceptions import (
    ApiError,
    AppointmentError,
    AuthError,
    SchedulingError,
    SlotUnavailableError,
    ValidationError,
)
from carebook.domain.models import (
    AppointmentStatus,
    BookingPolicy,
    BookingRequest,
    DoctorAvailability,
    TimeSlot,
    WeeklyAvailabilityTemplate,
    Weekday,
    WorkingInterval,
)


class TestWeekday:
    @pytest.mark.parametrize(
        ("date", "expected"),
        [
            (dt.date(2026, 10, 25), Weekday.SUNDAY),
            (dt.date(2026, 10, 26), Weekday.MONDAY),
            (dt.date(2026, 10, 31), Weekday.SATURDAY),
        ],
    )
    def test_of(self, date: dt.date, expected: Weekday) -> None:
        assert Weekday.of(date) == expected


class TestIntervals:
    def test_parses_wire_times(self) -> None:
        interval = WorkingInterval.model_validate({"start": "09:00", "end": "12:00:30"})

        assert interval.start == dt.time(9, 0)
        assert interval.end == dt.time(12, 0)
        assert interval.duration_minutes == 180

    @pytest.mark.parametrize(("start", "end"), [("10:00", "09:00"), ("10:00", "10:00")])
    def test_start_must_precede_end(self, start: str, end: str) -> None:
        with pytest.raises(PydanticValidationError):
            TimeSlot(start=start, end=end)

    def test_rejects_unpadded_time(self) -> None:
        with pytest.raises(PydanticValidationError):
            TimeSlot(start="9:00", end="09:30")

    def test_working_interval_available_by_default(self) -> None:
        interval = WorkingInterval(start="09:00", end="10:00")

        assert interval.is_available is True
        assert interval.model_dump(mode="json", by_alias=True)["isAvailable"] is True

    def test_serializes_to_wire_strings(self) -> None:
        slot = TimeSlot(start="09:00", end="09:30")

        assert slot.model_dump(mode="json") == {"start": "09:00", "end": "09:30"}

    def test_overlap_is_half_open(self) -> None:
        slot = TimeSlot(start="09:00", end="09:30")

        assert slot.overlaps(dt.time(9, 15), dt.time(9, 45)) is True
        assert slot.overlaps(dt.time(9, 30), dt.time(10, 0)) is False


class TestWeeklyAvailabilityTemplate:
    def test_accepts_bare_weekday_mapping(self) -> None:
        template = WeeklyAvailabilityTemplate.model_validate(
            {"tuesday": [{"start": "14:00", "end": "16:00"}, {"start": "09:00", "end": "11:00"}]}
        )

        labels = [i.label() for i in template.intervals_for(Weekday.TUESDAY)]
        assert labels == ["09:00-11:00", "14:00-16:00"]
        assert template.intervals_for(Weekday.MONDAY) == ()

    def test_rejects_overlapping_intervals(self) -> None:
        with pytest.raises(PydanticValidationError, match="overlap"):
            WeeklyAvailabilityTemplate.model_validate(
                {"monday": [{"start": "09:00", "end": "11:00"}, {"start": "10:30", "end": "12:00"}]}
            )

    def test_rejects_unknown_weekday(self) -> None:
        with pytest.raises(PydanticValidationError):
            WeeklyAvailabilityTemplate.model_validate({"funday": []})


class TestDoctorAvailability:
    def test_canonicalizes_blocked_dates(self) -> None:
        availability = DoctorAvailability(
            doctor_id="doc-1", blocked_dates=["2026-10-26", dt.date(2026, 11, 2)]
        )

        assert availability.blocked_dates == frozenset({"2026-10-26", "2026-11-02"})

    @pytest.mark.parametrize("blocked", ["2026-10-26", ["26/10/2026"]], ids=["bare-str", "bad"])
    def test_rejects_bad_blocked_dates(self, blocked: object) -> None:
        with pytest.raises(PydanticValidationError):
            DoctorAvailability(doctor_id="doc-1", blocked_dates=blocked)


class TestBookingRequest:
    def test_accepts_camel_case_wire_names(self) -> None:
        request = BookingRequest.model_validate(
            {
                "doctorId": "doc-1",
                "patientId": "pat-1",
                "date": "2026-10-26",
                "startTime": "09:00",
                "endTime": "09:30",
                "appointmentType": "VIDEO",
                "reason": "  follow-up  ",
            }
        )

        assert request.doctor_id == "doc-1"
        assert request.reason == "follow-up"

    def test_blank_reason_becomes_none(self) -> None:
        request = BookingRequest(
            doctor_id="doc-1",
            patient_id="pat-1",
            date="2026-10-26",
            start_time="09:00",
            end_time="09:30",
            appointment_type="IN_PERSON",
            reason="   ",
        )

        assert request.reason is None

    def test_rejects_overlong_reason(self) -> None:
        with pytest.raises(PydanticValidationError, match="500 characters"):
            BookingRequest(
                doctor_id="doc-1",
                patient_id="pat-1",
                date="2026-10-26",
                start_time="09:00",
                end_time="09:30",
                appointment_type="IN_PERSON",
                reason="x" * 501,
            )

    def test_rejects_unknown_fields(self) -> None:
        with pytest.raises(PydanticValidationError):
            BookingRequest.model_validate(
                {
                    "doctorId": "doc-1",
                    "patientId": "pat-1",
                    "date": "2026-10-26",
                    "startTime": "09:00",
                    "endTime": "09:30",
                    "appointmentType": "VIDEO",
                    "slot": "09:00-09:30",
                }
            )


class TestBookingPolicy:
    def test_defaults(self) -> None:
        policy = BookingPolicy()

        assert policy.slot_duration_minutes == 30
        assert policy.look_ahead_days == 14
        assert policy.initial_status == AppointmentStatus.PENDING

    @pytest.mark.parametrize("status", [AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED])
    def test_rejects_terminal_initial_status(self, status: AppointmentStatus) -> None:
        with pytest.raises(PydanticValidationError):
            BookingPolicy(initial_status=status)


class TestErrors:
    @pytest.mark.parametrize(
        ("error", "code", "retryable"),
        [
            (ValidationError("bad", {"date": "bad"}), "INVALID_INPUT", False),
            (AuthError("sign in"), "NOT_AUTHENTICATED", False),
            (SlotUnavailableError(), "SLOT_UNAVAILABLE", True),
            (AppointmentError("PATIENT_DOUBLE_BOOKED"), "PATIENT_DOUBLE_BOOKED", False),
            (AppointmentError("DAILY_LIMIT_EXCEEDED"), "DAILY_LIMIT_EXCEEDED", True),
            (ApiError("down", status_code=502), "API_UNAVAILABLE", True),
        ],
        ids=["validation", "auth", "slot", "double-booked", "daily-limit", "api"],
    )
    def test_codes_and_retryability(
        self, error: SchedulingError, code: str, retryable: bool
    ) -> None:
        assert error.code == code
        assert error.retryable is retryable

    def test_kinds_are_distinct(self) -> None:
        assert not isinstance(SlotUnavailableError(), AppointmentError)
        assert not isinstance(ApiError("down"), AppointmentError)

    def test_appointment_error_default_message(self) -> None:
        assert str(AppointmentError("NOT_FOUND")) == "Not found"
