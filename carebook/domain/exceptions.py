class SchedulingError(Exception):
    """Base exception for all scheduling errors."""

    default_code: str = "SCHEDULING_ERROR"
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        retryable: bool | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.retryable = self.default_retryable if retryable is None else retryable
        super().__init__(message)


class ValidationError(SchedulingError):
    """Raised when input fields are missing or malformed.

    ``fields`` maps each offending wire field name to a human-readable
    reason so callers can highlight exactly what needs correcting.
    """

    default_code = "INVALID_INPUT"

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        self.fields: dict[str, str] = dict(fields or {})
        super().__init__(message)


class AuthError(SchedulingError):
    """Raised when the caller is not signed in or may not perform the action."""

    default_code = "NOT_AUTHENTICATED"


class SlotUnavailableError(SchedulingError):
    """Raised when the requested slot is gone, typically after losing a booking race."""

    default_code = "SLOT_UNAVAILABLE"
    default_retryable = True

    def __init__(
        self,
        reason: str = "This appointment slot is no longer available",
        *,
        doctor_id: str | None = None,
        date: str | None = None,
        slot: str | None = None,
    ) -> None:
        self.doctor_id = doctor_id
        self.date = date
        self.slot = slot
        super().__init__(reason)


_RETRYABLE_APPOINTMENT_CODES = frozenset({"DAILY_LIMIT_EXCEEDED"})


class AppointmentError(SchedulingError):
    """Raised when a domain rule rejects an appointment operation."""

    default_code = "APPOINTMENT_ERROR"

    def __init__(
        self,
        code: str,
        reason: str | None = None,
        *,
        appointment_id: str | None = None,
    ) -> None:
        self.appointment_id = appointment_id
        super().__init__(
            reason or code.replace("_", " ").capitalize(),
            code=code,
            retryable=code in _RETRYABLE_APPOINTMENT_CODES,
        )


class ApiError(SchedulingError):
    """Raised when the backing store or remote API is unreachable or failing."""

    default_code = "API_UNAVAILABLE"
    default_retryable = True

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
