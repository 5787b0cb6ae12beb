"""Test fixtures — an app per test with a recording provider.

Learn: Handler tests never touch a real broker. The `provider` fixture is
a MessagingProvider that records every call and can be told to fail, and
it is swapped in through app.dependency_overrides. Tests that want the
real fan-out path use `hub_app`, which wires HubProvider to an
InMemoryBroker.
"""

from datetime import datetime, timezone
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from hubrelay.config import Settings
from hubrelay.main import create_app
from hubrelay.realtime.provider import MessagingProvider, get_provider
from hubrelay.schemas.hub import BroadcastMessage, ConnectionInfo

FUNCTION_KEY = "test-function-key"


class RecordingProvider(MessagingProvider):
    """Provider double: records calls, returns canned info, fails on demand."""

    def __init__(self):
        self.issued_for: list[str] = []
        self.submitted: list[tuple[str, BroadcastMessage]] = []
        self.connection_info: Optional[ConnectionInfo] = ConnectionInfo(
            url="ws://testserver/client/?hub=taxidata",
            access_token="test-access-token",
            expires_at=datetime(2030, 1, 1, tzinfo=timezone.utc),
        )
        self.issue_error: Optional[Exception] = None
        self.submit_error: Optional[Exception] = None

    async def issue_connection_info(self, hub: str) -> Optional[ConnectionInfo]:
        self.issued_for.append(hub)
        if self.issue_error:
            raise self.issue_error
        return self.connection_info

    async def submit_message(self, hub: str, message: BroadcastMessage) -> None:
        self.submitted.append((hub, message))
        if self.submit_error:
            raise self.submit_error


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        hub_name="taxidata",
        broadcast_target="notify",
        broker="memory",
        public_url="ws://testserver",
        function_key=FUNCTION_KEY,
        jwt_secret="test-jwt-secret-0123456789abcdef",
        environment="development",
    )


@pytest.fixture()
def provider() -> RecordingProvider:
    return RecordingProvider()


@pytest.fixture()
def app(settings, provider):
    app = create_app(settings)
    app.dependency_overrides[get_provider] = lambda: provider
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client for the app with the recording provider."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture()
async def hub_app(settings):
    """App wired to a connected HubProvider over an InMemoryBroker.

    ASGITransport does not run lifespan, so the broker is connected here.
    """
    app = create_app(settings)
    await app.state.provider.connect()
    yield app
    await app.state.provider.disconnect()


@pytest_asyncio.fixture()
async def hub_client(hub_app):
    transport = ASGITransport(app=hub_app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
