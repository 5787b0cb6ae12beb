"""WebSocket endpoint — hub subscribers connect here.

Learn: Each client first calls /api/negotiate, then connects to the
returned url: /client/?hub={hub}&access_token={token}. The handler:
1. Verifies the connection token against the configured hub
2. Subscribes to the hub's broker channel (before accepting)
3. Forwards every broadcast to the WebSocket client
4. Handles client disconnection gracefully
"""

import asyncio
import json
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from hubrelay.auth.tokens import TokenError, verify_token
from hubrelay.config import Settings, get_settings
from hubrelay.realtime.provider import (
    HubProvider,
    MessagingProvider,
    ProviderUnavailableError,
    get_provider,
)

logger = structlog.get_logger()
router = APIRouter()

CLOSE_UNAUTHORIZED = 4001
CLOSE_UNKNOWN_HUB = 4004
CLOSE_UNAVAILABLE = 1013  # try again later


@router.websocket("/client/")
async def hub_websocket(
    websocket: WebSocket,
    hub: Optional[str] = None,
    access_token: Optional[str] = None,
    settings: Settings = Depends(get_settings),
    provider: MessagingProvider = Depends(get_provider),
):
    """WebSocket endpoint for hub subscribers.

    Learn: Two concurrent tasks run:
    1. Hub listener — reads from the broker, sends to the WebSocket
    2. Client listener — answers pings, notices disconnects

    When either side finishes, the other is cancelled.
    """
    hub = hub or settings.hub_name
    if hub != settings.hub_name:
        await websocket.close(code=CLOSE_UNKNOWN_HUB, reason=f"Unknown hub '{hub}'")
        return

    if not access_token:
        await websocket.close(code=CLOSE_UNAUTHORIZED, reason="Authentication required")
        return
    try:
        claims = verify_token(settings, access_token, hub=hub)
    except TokenError as e:
        await websocket.close(code=CLOSE_UNAUTHORIZED, reason=str(e))
        return

    # Only the self-hosted provider has local subscribers to hand out.
    if not isinstance(provider, HubProvider):
        await websocket.close(code=CLOSE_UNAVAILABLE, reason="Hub has no local subscribers")
        return
    try:
        subscription = await provider.subscribe(hub)
    except ProviderUnavailableError as e:
        await websocket.close(code=CLOSE_UNAVAILABLE, reason=str(e))
        return

    log = logger.bind(hub=hub, subscriber=claims.get("sub"))

    async def hub_listener():
        """Forward broker messages to the WebSocket client."""
        try:
            async for data in subscription:
                message = json.loads(data)
                await websocket.send_text(json.dumps({"type": "message", **message}))
        except asyncio.CancelledError:
            pass

    async def client_listener():
        """Handle incoming WebSocket messages (ping only)."""
        try:
            while True:
                data = await websocket.receive_text()
                try:
                    msg = json.loads(data)
                except json.JSONDecodeError:
                    continue
                if isinstance(msg, dict) and msg.get("type") == "ping":
                    await websocket.send_text(json.dumps({"type": "pong"}))
        except (WebSocketDisconnect, asyncio.CancelledError):
            pass

    try:
        await websocket.accept()
        log.info("hub.client_connected")

        hub_task = asyncio.create_task(hub_listener())
        client_task = asyncio.create_task(client_listener())

        # Wait for either to finish (usually client disconnect)
        done, pending = await asyncio.wait(
            [hub_task, client_task],
            return_when=asyncio.FIRST_COMPLETED,
        )
        for task in pending:
            task.cancel()
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                log.error("hub.client_error", error=str(task.exception()))
    finally:
        await subscription.close()
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
        log.info("hub.client_disconnected")
