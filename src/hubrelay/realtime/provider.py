"""Messaging provider — the narrow interface the HTTP handlers talk to.

Learn: The handlers only need two things from the real-time side:
1. issue_connection_info(hub) — credentials a client uses to subscribe
2. submit_message(hub, message) — fan a message out to all subscribers

Anything that can do those two (a managed service, a broker + WebSocket
hub) can sit behind MessagingProvider. HubProvider is the self-hosted one:
it signs connection tokens for /client/ and publishes on the broker.

Channel naming: hubrelay:hub:{hub}
"""

from abc import ABC, abstractmethod
from typing import Optional
from urllib.parse import urlencode

import structlog
from starlette.requests import HTTPConnection

from hubrelay.auth.tokens import create_connection_token
from hubrelay.config import Settings
from hubrelay.realtime.broker import Broker, Subscription
from hubrelay.schemas.hub import BroadcastMessage, ConnectionInfo

logger = structlog.get_logger()


class ProviderError(Exception):
    """Base class for messaging provider failures."""


class ProviderUnavailableError(ProviderError):
    """The provider cannot serve requests (broker down or not connected)."""


class ProviderSubmissionError(ProviderError):
    """A message could not be handed to the provider for fan-out."""


def hub_channel(hub: str) -> str:
    return f"hubrelay:hub:{hub}"


class MessagingProvider(ABC):
    """What the negotiate and message handlers require of a provider."""

    async def connect(self) -> None:
        """Acquire provider resources. Called once at startup."""

    async def disconnect(self) -> None:
        """Release provider resources. Called once at shutdown."""

    @abstractmethod
    async def issue_connection_info(self, hub: str) -> Optional[ConnectionInfo]:
        """Return fresh connection info for hub, or None if none can be issued."""

    @abstractmethod
    async def submit_message(self, hub: str, message: BroadcastMessage) -> None:
        """Hand message to the fan-out for hub. Raises ProviderSubmissionError."""


class HubProvider(MessagingProvider):
    """Self-hosted provider: JWT connection tokens + broker fan-out."""

    def __init__(self, settings: Settings, broker: Broker):
        self.settings = settings
        self.broker = broker

    async def connect(self) -> None:
        await self.broker.connect()

    async def disconnect(self) -> None:
        await self.broker.disconnect()

    async def issue_connection_info(self, hub: str) -> Optional[ConnectionInfo]:
        if not self.settings.public_url:
            logger.warning("provider.no_public_url", hub=hub)
            return None
        if not self.broker.connected:
            raise ProviderUnavailableError("Hub broker is not connected")

        token, expires_at = create_connection_token(self.settings, hub)
        base = self.settings.public_url.rstrip("/")
        return ConnectionInfo(
            url=f"{base}/client/?{urlencode({'hub': hub})}",
            access_token=token,
            expires_at=expires_at,
        )

    async def submit_message(self, hub: str, message: BroadcastMessage) -> None:
        if not self.broker.connected:
            raise ProviderUnavailableError("Hub broker is not connected")
        try:
            receivers = await self.broker.publish(
                hub_channel(hub), message.model_dump_json()
            )
        except Exception as e:
            raise ProviderSubmissionError(f"Publish to hub '{hub}' failed: {e}") from e
        logger.debug(
            "provider.message_published",
            hub=hub,
            target=message.target,
            receivers=receivers,
        )

    async def subscribe(self, hub: str) -> Subscription:
        """Open a subscription to hub for the /client/ endpoint."""
        if not self.broker.connected:
            raise ProviderUnavailableError("Hub broker is not connected")
        return await self.broker.subscribe(hub_channel(hub))


def get_provider(conn: HTTPConnection) -> MessagingProvider:
    """FastAPI dependency — the provider create_app() installed."""
    return conn.app.state.provider
