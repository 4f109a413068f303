from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from carebook.domain.models import AppointmentStatus, BookingPolicy


class StoreAdapter(Enum):
    MEMORY = "memory"
    HTTP = "http"


class SchedulingConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="SCHEDULING_", env_file=".env", extra="ignore", env_parse_none_str="none"
    )

    look_ahead_days: int = Field(default=14, gt=0)
    # "none" switches to one slot per working interval
    slot_duration_minutes: int | None = Field(default=30, gt=0)
    initial_status: AppointmentStatus = AppointmentStatus.PENDING
    max_daily_bookings_per_patient: int | None = Field(default=3, gt=0)
    slot_cache_ttl_seconds: float = Field(default=15.0, ge=0)
    slot_cache_max_entries: int = Field(default=256, gt=0)

    def to_policy(self) -> BookingPolicy:
        return BookingPolicy(
            slot_duration_minutes=self.slot_duration_minutes,
            look_ahead_days=self.look_ahead_days,
            initial_status=self.initial_status,
            max_daily_bookings_per_patient=self.max_daily_bookings_per_patient,
        )


class ApiConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CAREBOOK_API_", env_file=".env", extra="ignore")

    base_url: str = "http://localhost:8080/api/v1"
    token: str = ""
    timeout_seconds: float = Field(default=10.0, gt=0)
    adapter: StoreAdapter = StoreAdapter.MEMORY


class AppConfig(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    clinic_timezone: str = "UTC"
    scheduling: SchedulingConfig = Field(default_factory=lambda: SchedulingConfig())
    api: ApiConfig = Field(default_factory=lambda: ApiConfig())
