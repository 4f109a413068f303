"""Integration tests for the REST scheduling adapter.

These tests run against a live scheduling API and require:
  - CAREBOOK_API_BASE_URL + CAREBOOK_API_TOKEN set in .env (or env vars)
  - CAREBOOK_TEST_DOCTOR_ID naming a doctor that exists on that API

Run explicitly with::

    uv run pytest -m integration
"""

import datetime as dt
import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from dotenv import load_dotenv

from carebook.scheduling.adapters.http import RemoteSchedulingClient

load_dotenv(override=True)

_API_URL = os.environ.get("CAREBOOK_API_BASE_URL", "")
_TOKEN = os.environ.get("CAREBOOK_API_TOKEN", "")
_DOCTOR_ID = os.environ.get("CAREBOOK_TEST_DOCTOR_ID", "")

_has_credentials = bool(_API_URL) and bool(_TOKEN) and bool(_DOCTOR_ID)

pytestmark = [
    pytest.mark.integration,
    pytest.mark.asyncio,
    pytest.mark.skipif(
        not _has_credentials,
        reason="CAREBOOK_API_BASE_URL + CAREBOOK_API_TOKEN + CAREBOOK_TEST_DOCTOR_ID must be set",
    ),
]


@pytest_asyncio.fixture
async def client() -> AsyncGenerator[RemoteSchedulingClient]:
    c = RemoteSchedulingClient(api_url=_API_URL, token=_TOKEN)
    yield c
    await c.close()


class TestHealthCheck:
    async def test_returns_true_when_healthy(self, client: RemoteSchedulingClient) -> None:
        assert await client.health_check() is True


class TestSession:
    async def test_token_resolves_to_a_user(self, client: RemoteSchedulingClient) -> None:
        user = await client.current_user()

        assert user is not None
        assert user.user_id


class TestAvailability:
    async def test_fetches_doctor_schedule(self, client: RemoteSchedulingClient) -> None:
        availability = await client.get_availability(_DOCTOR_ID)

        assert availability.doctor_id == _DOCTOR_ID

    async def test_lists_active_appointments(self, client: RemoteSchedulingClient) -> None:
        tomorrow = dt.date.today() + dt.timedelta(days=1)

        appointments = await client.list_active_for_doctor(_DOCTOR_ID, tomorrow)

        assert all(a.occupies_slot and a.date == tomorrow for a in appointments)
