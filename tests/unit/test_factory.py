import datetime as dt

import pytest

from carebook.config import ApiConfig, AppConfig, SchedulingConfig, StoreAdapter
from carebook.domain.models import AppointmentStatus
from carebook.scheduling.cache import CachedSchedulingService
from carebook.scheduling.clock import clinic_today, resolve_timezone
from carebook.scheduling.factory import build_scheduling_service
from carebook.scheduling.service import SchedulingService


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "SCHEDULING_LOOK_AHEAD_DAYS",
        "SCHEDULING_SLOT_DURATION_MINUTES",
        "SCHEDULING_INITIAL_STATUS",
        "SCHEDULING_SLOT_CACHE_TTL_SECONDS",
        "CAREBOOK_API_ADAPTER",
        "CAREBOOK_API_BASE_URL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestSchedulingConfig:
    def test_defaults(self) -> None:
        policy = SchedulingConfig(_env_file=None).to_policy()

        assert policy.look_ahead_days == 14
        assert policy.slot_duration_minutes == 30
        assert policy.initial_status == AppointmentStatus.PENDING

    def test_reads_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("SCHEDULING_LOOK_AHEAD_DAYS", "7")
        monkeypatch.setenv("SCHEDULING_SLOT_DURATION_MINUTES", "none")
        monkeypatch.setenv("SCHEDULING_INITIAL_STATUS", "CONFIRMED")

        policy = SchedulingConfig(_env_file=None).to_policy()

        assert policy.look_ahead_days == 7
        assert policy.slot_duration_minutes is None
        assert policy.initial_status == AppointmentStatus.CONFIRMED

    def test_rejects_terminal_initial_status(self) -> None:
        config = SchedulingConfig(_env_file=None, initial_status=AppointmentStatus.CANCELED)

        with pytest.raises(ValueError):
            config.to_policy()


class TestApiConfig:
    def test_adapter_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("CAREBOOK_API_ADAPTER", "http")

        assert ApiConfig(_env_file=None).adapter == StoreAdapter.HTTP


class TestBuildSchedulingService:
    def test_memory_with_cache_by_default(self) -> None:
        service = build_scheduling_service(AppConfig(_env_file=None))

        assert isinstance(service, CachedSchedulingService)

    def test_cache_disabled_with_zero_ttl(self) -> None:
        config = AppConfig(
            _env_file=None,
            scheduling=SchedulingConfig(_env_file=None, slot_cache_ttl_seconds=0),
        )

        service = build_scheduling_service(config)

        assert isinstance(service, SchedulingService)
        assert service.policy.look_ahead_days == 14

    @pytest.mark.asyncio
    async def test_http_adapter(self) -> None:
        config = AppConfig(
            _env_file=None,
            scheduling=SchedulingConfig(_env_file=None, slot_cache_ttl_seconds=0),
            api=ApiConfig(
                _env_file=None, adapter=StoreAdapter.HTTP, base_url="https://api.carebook.test"
            ),
        )

        service = build_scheduling_service(config)

        assert isinstance(service, SchedulingService)
        await service.close()


class TestClock:
    def test_unknown_timezone_falls_back_to_utc(self) -> None:
        assert resolve_timezone("Mars/Olympus_Mons") == dt.timezone.utc

    def test_clinic_today_returns_a_date(self) -> None:
        today = clinic_today("UTC")()

        assert today == dt.datetime.now(dt.timezone.utc).date()
