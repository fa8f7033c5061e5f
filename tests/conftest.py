"""Shared test fixtures for the Shortly background job subsystem."""
import pytest
from unittest.mock import AsyncMock

from config.settings import EmailGeneralConfig
from database.store_memory import InMemoryClickEventStore, InMemoryUsageStore
from delivery.email_service import EmailDeliveryHandler
from delivery.providers import EmailProvider
from models.schemas import ClickTrackingData, EmailRequest, GeoLocationInfo
from tracking.click_handler import ClickTrackingHandler
from tracking.geolocation import GeoLocationService


CHROME_WINDOWS_UA = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class FakeEmailProvider(EmailProvider):
    """
    Records every send. Errors queued in `failures[address]` are raised one
    per call (in order) before the address starts succeeding.
    """

    name = "fake"

    def __init__(self):
        self.sent: list[EmailRequest] = []
        self.calls: list[str] = []
        self.failures: dict[str, list[Exception]] = {}

    async def send(self, request: EmailRequest) -> str:
        self.calls.append(request.to)
        pending = self.failures.get(request.to)
        if pending:
            raise pending.pop(0)
        self.sent.append(request)
        return f"<msg-{len(self.sent)}@test>"


class FixedGeoLocation(GeoLocationService):
    def __init__(self, info: GeoLocationInfo = None):
        self.info = info or GeoLocationInfo(country="Germany", city="Berlin", country_code="DE")
        self.lookups: list[str] = []

    async def lookup(self, ip_address: str) -> GeoLocationInfo:
        self.lookups.append(ip_address)
        return self.info


@pytest.fixture
def email_settings() -> EmailGeneralConfig:
    return EmailGeneralConfig(
        max_retry_attempts=3,
        retry_delay_milliseconds=250,
        bulk_email_batch_size=2,
        bulk_email_delay_between_batches=100,
    )


@pytest.fixture
def provider() -> FakeEmailProvider:
    return FakeEmailProvider()


@pytest.fixture
def fake_sleep() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def email_handler(provider, email_settings, fake_sleep) -> EmailDeliveryHandler:
    return EmailDeliveryHandler(provider, email_settings, sleep=fake_sleep)


@pytest.fixture
def email_request() -> EmailRequest:
    return EmailRequest(
        to="alice@example.com",
        subject="Your link is ready",
        body="https://sho.rt/abc123",
        metadata={"user_id": 7},
    )


@pytest.fixture
def tracking_data() -> ClickTrackingData:
    return ClickTrackingData(
        ip_address="8.8.8.8",
        session_id="sess-42",
        user_agent=CHROME_WINDOWS_UA,
        referrer="https://www.google.com/search?q=shortly",
    )


@pytest.fixture
def geolocation() -> FixedGeoLocation:
    return FixedGeoLocation()


@pytest.fixture
def click_store() -> InMemoryClickEventStore:
    return InMemoryClickEventStore()


@pytest.fixture
def usage_store() -> InMemoryUsageStore:
    return InMemoryUsageStore()


@pytest.fixture
def click_handler(click_store, usage_store, geolocation) -> ClickTrackingHandler:
    return ClickTrackingHandler(click_store, usage_store, geolocation)


@pytest.fixture(autouse=True)
def reset_singletons():
    yield
    import config.settings as settings_module
    from job_queue.background import reset_background_jobs
    settings_module._settings = None
    reset_background_jobs()
