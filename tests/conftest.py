import httpx
import pytest

from clinic_queue_client import ClinicQueueApp, MemoryRecoveryStore, Settings
from fake_service import FakeClinicService, build_app


@pytest.fixture
def service():
    return FakeClinicService()


@pytest.fixture
def config():
    return Settings(
        api_url="http://testserver/api",
        api_timeout=5,
        patient_poll_seconds=0.05,
        admin_poll_seconds=0.05,
        cancel_message_seconds=0,
        admin_message_seconds=0,
        recovery_store_url="memory://",
    )


@pytest.fixture
def transport(service):
    return httpx.ASGITransport(app=build_app(service))


@pytest.fixture
async def clinic(config, transport):
    app = ClinicQueueApp(config, transport=transport, store=MemoryRecoveryStore())
    yield app
    await app.aclose()


@pytest.fixture
def api(clinic):
    return clinic.api


@pytest.fixture
async def logged_in(clinic):
    await clinic.sessions.login("admin", "password123")
    return clinic
