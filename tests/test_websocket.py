"""Hub WebSocket tests — negotiate, connect, receive broadcasts.

Learn: These use Starlette's TestClient inside a `with` block so the
lifespan runs (the broker gets connected) and every request, including
the WebSocket session, shares one event loop. That matters for the
in-memory broker, whose queues belong to a single loop.
"""

import asyncio

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect, WebSocketState

from hubrelay.auth.tokens import create_connection_token
from hubrelay.main import create_app
from hubrelay.realtime.broker import InMemoryBroker
from hubrelay.realtime.provider import HubProvider, hub_channel
from hubrelay.realtime.websocket import hub_websocket

KEY = {"x-functions-key": "test-function-key"}


@pytest.fixture()
def live_client(settings):
    with TestClient(create_app(settings)) as tc:
        yield tc


def _connect_url(tc: TestClient) -> str:
    info = tc.post("/api/negotiate").json()
    return f"{info['url']}&access_token={info['accessToken']}"


def test_subscriber_receives_broadcast(live_client):
    with live_client.websocket_connect(_connect_url(live_client)) as ws:
        r = live_client.post("/api/message", content="taxi-update-42", headers=KEY)
        assert r.status_code == 200

        assert ws.receive_json() == {
            "type": "message",
            "target": "notify",
            "arguments": ["taxi-update-42"],
        }


def test_all_subscribers_receive_broadcast(live_client):
    url = _connect_url(live_client)
    with live_client.websocket_connect(url) as first, live_client.websocket_connect(url) as second:
        live_client.post("/api/message", content="to everyone", headers=KEY)

        assert first.receive_json()["arguments"] == ["to everyone"]
        assert second.receive_json()["arguments"] == ["to everyone"]


def test_ping_pong(live_client):
    with live_client.websocket_connect(_connect_url(live_client)) as ws:
        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}


def test_missing_token_rejected(live_client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with live_client.websocket_connect("/client/?hub=taxidata"):
            pass
    assert exc.value.code == 4001


def test_invalid_token_rejected(live_client):
    with pytest.raises(WebSocketDisconnect) as exc:
        with live_client.websocket_connect("/client/?hub=taxidata&access_token=bogus"):
            pass
    assert exc.value.code == 4001


def test_token_for_other_hub_rejected(live_client, settings):
    token, _ = create_connection_token(settings, "other-hub")
    with pytest.raises(WebSocketDisconnect) as exc:
        with live_client.websocket_connect(f"/client/?hub=taxidata&access_token={token}"):
            pass
    assert exc.value.code == 4001


def test_unknown_hub_rejected(live_client, settings):
    token, _ = create_connection_token(settings, "other-hub")
    with pytest.raises(WebSocketDisconnect) as exc:
        with live_client.websocket_connect(f"/client/?hub=other-hub&access_token={token}"):
            pass
    assert exc.value.code == 4004


# ═══════════════════════════════════════════════════════════
# Handler shutdown
# ═══════════════════════════════════════════════════════════


class FakeSocket:
    """Just enough of a WebSocket to drive hub_websocket directly."""

    def __init__(self, *, fail_accept: bool = False):
        self.fail_accept = fail_accept
        self.client_state = WebSocketState.CONNECTING
        self.close_calls = 0

    async def accept(self):
        if self.fail_accept:
            raise RuntimeError("handshake failed")
        self.client_state = WebSocketState.CONNECTED

    async def receive_text(self):
        raise WebSocketDisconnect(code=1000)

    async def send_text(self, data):
        pass

    async def close(self, code=1000, reason=None):
        self.close_calls += 1
        self.client_state = WebSocketState.DISCONNECTED


async def _hub_provider(settings):
    broker = InMemoryBroker()
    provider = HubProvider(settings, broker)
    await provider.connect()
    return provider, broker


@pytest.mark.asyncio
async def test_client_disconnect_ends_handler_cleanly(settings):
    provider, broker = await _hub_provider(settings)
    token, _ = create_connection_token(settings, "taxidata")
    socket = FakeSocket()

    await hub_websocket(
        socket, hub="taxidata", access_token=token, settings=settings, provider=provider
    )
    await asyncio.sleep(0)

    assert broker.subscriber_count(hub_channel("taxidata")) == 0
    assert socket.close_calls == 1


@pytest.mark.asyncio
async def test_subscription_released_when_accept_fails(settings):
    provider, broker = await _hub_provider(settings)
    token, _ = create_connection_token(settings, "taxidata")

    with pytest.raises(RuntimeError, match="handshake failed"):
        await hub_websocket(
            FakeSocket(fail_accept=True),
            hub="taxidata",
            access_token=token,
            settings=settings,
            provider=provider,
        )

    assert broker.subscriber_count(hub_channel("taxidata")) == 0
