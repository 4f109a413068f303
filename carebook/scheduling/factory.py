from typing import Callable

from loguru import logger

from carebook.config import AppConfig, StoreAdapter
from carebook.scheduling.adapters.http import RemoteSchedulingClient
from carebook.scheduling.adapters.memory import (
    InMemoryAppointmentRepository,
    InMemoryAvailabilityProvider,
    StaticIdentityProvider,
)
from carebook.scheduling.cache import CachedSchedulingService
from carebook.scheduling.clock import clinic_today
from carebook.scheduling.ports import AbstractSchedulingService
from carebook.scheduling.service import SchedulingService


def _build_memory(config: AppConfig) -> SchedulingService:
    return SchedulingService(
        availability=InMemoryAvailabilityProvider(),
        appointments=InMemoryAppointmentRepository(),
        identity=StaticIdentityProvider(),
        policy=config.scheduling.to_policy(),
        today=clinic_today(config.clinic_timezone),
    )


def _build_http(config: AppConfig) -> SchedulingService:
    client = RemoteSchedulingClient(
        api_url=config.api.base_url,
        token=config.api.token,
        timeout=config.api.timeout_seconds,
    )
    return SchedulingService(
        availability=client,
        appointments=client,
        identity=client,
        policy=config.scheduling.to_policy(),
        today=clinic_today(config.clinic_timezone),
    )


_BUILDERS: dict[StoreAdapter, Callable[[AppConfig], SchedulingService]] = {
    StoreAdapter.MEMORY: _build_memory,
    StoreAdapter.HTTP: _build_http,
}


def build_scheduling_service(config: AppConfig) -> AbstractSchedulingService:
    """Build the scheduling service for the configured store, with slot caching if enabled."""
    adapter = config.api.adapter
    logger.info("Building scheduling service with adapter: {}", adapter.value)
    service = _BUILDERS[adapter](config)

    ttl = config.scheduling.slot_cache_ttl_seconds
    if ttl <= 0:
        return service
    return CachedSchedulingService(
        service,
        ttl_seconds=ttl,
        max_entries=config.scheduling.slot_cache_max_entries,
    )
