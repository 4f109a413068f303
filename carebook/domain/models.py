import datetime as dt
from enum import Enum
from typing import Annotated, Self

from pydantic import (
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PlainSerializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from carebook.domain.exceptions import ValidationError
from carebook.scheduling.normalizer import (
    format_date,
    format_time,
    normalize_date,
    normalize_time,
    to_minutes,
)

MAX_REASON_LENGTH = 500


def _coerce_time(value: object) -> dt.time:
    if isinstance(value, dt.time):
        return value.replace(second=0, microsecond=0)
    try:
        return normalize_time(value)
    except ValidationError as exc:
        raise ValueError(exc.message) from exc


def _coerce_date(value: object) -> dt.date:
    if isinstance(value, dt.date) and not isinstance(value, dt.datetime):
        return value
    try:
        return normalize_date(value)
    except ValidationError as exc:
        raise ValueError(exc.message) from exc


TimeOfDay = Annotated[
    dt.time,
    BeforeValidator(_coerce_time),
    PlainSerializer(format_time, return_type=str, when_used="json"),
]

CalendarDate = Annotated[
    dt.date,
    BeforeValidator(_coerce_date),
    PlainSerializer(format_date, return_type=str, when_used="json"),
]


class WireModel(BaseModel):
    """Frozen model with camelCase wire names and snake_case attributes."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class Weekday(str, Enum):
    """Days of the week, in the Sunday-first order used by weekly schedules."""

    SUNDAY = "sunday"
    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"

    @classmethod
    def of(cls, date: dt.date) -> "Weekday":
        # date.weekday() is Monday-first
        return list(cls)[(date.weekday() + 1) % 7]


class AppointmentStatus(str, Enum):
    """Lifecycle states of an appointment."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELED = "CANCELED"


class AppointmentType(str, Enum):
    IN_PERSON = "IN_PERSON"
    VIDEO = "VIDEO"


class UserRole(str, Enum):
    PATIENT = "PATIENT"
    DOCTOR = "DOCTOR"
    ADMIN = "ADMIN"


class _Interval(WireModel):
    start: TimeOfDay
    end: TimeOfDay

    @model_validator(mode="after")
    def _check_order(self) -> Self:
        if self.start >= self.end:
            raise ValueError(
                f"start {format_time(self.start)} must be before end {format_time(self.end)}"
            )
        return self

    @property
    def duration_minutes(self) -> int:
        return to_minutes(self.end) - to_minutes(self.start)

    def overlaps(self, start: dt.time, end: dt.time) -> bool:
        return self.start < end and start < self.end

    def label(self) -> str:
        return f"{format_time(self.start)}-{format_time(self.end)}"


class WorkingInterval(_Interval):
    """One block of working time within a weekday.

    A block with ``is_available`` false is kept in the schedule but offers
    no slots, so a doctor can switch it off without deleting it.
    """

    is_available: bool = True


class TimeSlot(_Interval):
    """A concrete, bookable start/end pair on a given date."""


class WeeklyAvailabilityTemplate(WireModel):
    """A doctor's recurring schedule: weekday → ordered, non-overlapping intervals."""

    days: dict[Weekday, tuple[WorkingInterval, ...]] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_mapping(cls, data: object) -> object:
        # The wire form is the weekday mapping itself, without a "days" wrapper.
        if isinstance(data, dict) and "days" not in data:
            return {"days": data}
        return data

    @field_validator("days")
    @classmethod
    def _sort_and_check_overlap(
        cls, days: dict[Weekday, tuple[WorkingInterval, ...]]
    ) -> dict[Weekday, tuple[WorkingInterval, ...]]:
        ordered: dict[Weekday, tuple[WorkingInterval, ...]] = {}
        for weekday, intervals in days.items():
            sorted_intervals = tuple(sorted(intervals, key=lambda i: i.start))
            for previous, current in zip(sorted_intervals, sorted_intervals[1:]):
                if current.start < previous.end:
                    raise ValueError(
                        f"{weekday.value} intervals {previous.label()} and "
                        f"{current.label()} overlap"
                    )
            ordered[weekday] = sorted_intervals
        return ordered

    def intervals_for(self, weekday: Weekday) -> tuple[WorkingInterval, ...]:
        return self.days.get(weekday, ())


class DoctorAvailability(WireModel):
    """Weekly schedule plus fully blocked dates, as supplied by the availability provider."""

    doctor_id: str = Field(min_length=1)
    weekly_schedule: WeeklyAvailabilityTemplate = Field(
        default_factory=WeeklyAvailabilityTemplate
    )
    blocked_dates: frozenset[str] = frozenset()

    @field_validator("blocked_dates", mode="before")
    @classmethod
    def _canonicalize_blocked_dates(cls, value: object) -> frozenset[str]:
        if isinstance(value, str) or not isinstance(value, (list, tuple, set, frozenset)):
            raise ValueError("blocked dates must be a list of YYYY-MM-DD strings")
        return frozenset(format_date(_coerce_date(item)) for item in value)


class CandidateDate(WireModel):
    """A date within the look-ahead window and whether it can be booked."""

    date: CalendarDate
    weekday: Weekday
    selectable: bool


class NewAppointment(WireModel):
    """An appointment that has not been persisted yet."""

    doctor_id: str = Field(min_length=1)
    patient_id: str = Field(min_length=1)
    date: CalendarDate
    start_time: TimeOfDay
    end_time: TimeOfDay
    status: AppointmentStatus = AppointmentStatus.PENDING
    appointment_type: AppointmentType
    reason: str | None = None


class Appointment(NewAppointment):
    """A persisted appointment."""

    appointment_id: str = Field(min_length=1)
    created_at: dt.datetime | None = None

    @property
    def occupies_slot(self) -> bool:
        return self.status != AppointmentStatus.CANCELED

    def overlaps(self, start: dt.time, end: dt.time) -> bool:
        return self.start_time < end and start < self.end_time


class BookingRequest(WireModel):
    """A patient's booking request as received on the wire.

    Date and times stay raw strings here; the booking transaction validates
    them only after the identity check has passed.
    """

    doctor_id: str = Field(min_length=1)
    patient_id: str = Field(min_length=1)
    date: str
    start_time: str
    end_time: str
    appointment_type: AppointmentType
    reason: str | None = None

    @field_validator("reason")
    @classmethod
    def _clean_reason(cls, value: str | None) -> str | None:
        if value is None:
            return None
        value = value.strip()
        if not value:
            return None
        if len(value) > MAX_REASON_LENGTH:
            raise ValueError(f"reason must be {MAX_REASON_LENGTH} characters or fewer")
        return value


class CurrentUser(WireModel):
    """The signed-in user, as reported by the identity provider."""

    user_id: str = Field(min_length=1)
    role: UserRole


class BookingPolicy(BaseModel):
    """Tunable scheduling rules."""

    model_config = ConfigDict(frozen=True)

    slot_duration_minutes: int | None = Field(default=30, gt=0)
    look_ahead_days: int = Field(default=14, gt=0)
    initial_status: AppointmentStatus = AppointmentStatus.PENDING
    max_daily_bookings_per_patient: int | None = Field(default=3, gt=0)

    @field_validator("initial_status")
    @classmethod
    def _bookable_status(cls, value: AppointmentStatus) -> AppointmentStatus:
        if value not in (AppointmentStatus.PENDING, AppointmentStatus.CONFIRMED):
            raise ValueError("new appointments must start as PENDING or CONFIRMED")
        return value
