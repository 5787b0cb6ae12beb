"""Pub/sub broker — the transport behind hub fan-out.

Learn: Pub/sub is fire-and-forget. If no one is subscribed when a message
is published, it is lost. That matches the hub's best-effort contract:
publish success only means the broker accepted the message.

Two implementations:
- RedisBroker: PUBLISH/SUBSCRIBE on a shared Redis, works across instances
- InMemoryBroker: per-subscriber asyncio queues, single process only
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Any, AsyncIterator, Optional

import redis.asyncio as aioredis
import structlog

from hubrelay.config import Settings

logger = structlog.get_logger()


class BrokerNotConnectedError(RuntimeError):
    """Raised when publish/subscribe is attempted before connect()."""


class Subscription(ABC):
    """A live subscription to one channel.

    Registered with the broker as soon as it is created, so nothing
    published after subscribe() returns is missed. Iterate it for payloads.
    """

    def __init__(self, channel: str):
        self.channel = channel

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[str]:
        ...

    @abstractmethod
    async def close(self) -> None:
        ...

    async def __aenter__(self) -> "Subscription":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()


class Broker(ABC):
    """Abstract broker interface for pub/sub operations."""

    @property
    @abstractmethod
    def connected(self) -> bool:
        ...

    @abstractmethod
    async def connect(self) -> None:
        """Initialize connection to the broker."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the broker."""

    @abstractmethod
    async def publish(self, channel: str, data: str) -> int:
        """Publish data to a channel. Returns the number of receivers."""

    @abstractmethod
    async def subscribe(self, channel: str) -> Subscription:
        """Subscribe to a channel."""


# ─── In-memory ───────────────────────────────────────────


class _QueueSubscription(Subscription):
    def __init__(self, broker: "InMemoryBroker", channel: str):
        super().__init__(channel)
        self._broker = broker
        self.queue: asyncio.Queue[str] = asyncio.Queue()
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[str]:
        while not self._closed:
            yield await self.queue.get()

    async def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._broker._remove(self)


class InMemoryBroker(Broker):
    """In-process pub/sub for local development and tests.

    Not suitable for multi-instance deployments.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, set[_QueueSubscription]] = defaultdict(set)
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self._connected = True
        logger.info("broker.connected", kind="memory")

    async def disconnect(self) -> None:
        self._connected = False
        self._subscribers.clear()
        logger.info("broker.disconnected", kind="memory")

    async def publish(self, channel: str, data: str) -> int:
        if not self._connected:
            raise BrokerNotConnectedError("InMemoryBroker not connected")
        receivers = list(self._subscribers.get(channel, ()))
        for sub in receivers:
            sub.queue.put_nowait(data)
        return len(receivers)

    async def subscribe(self, channel: str) -> Subscription:
        if not self._connected:
            raise BrokerNotConnectedError("InMemoryBroker not connected")
        sub = _QueueSubscription(self, channel)
        self._subscribers[channel].add(sub)
        logger.debug("broker.subscribed", channel=channel)
        return sub

    def subscriber_count(self, channel: str) -> int:
        return len(self._subscribers.get(channel, ()))

    def _remove(self, sub: _QueueSubscription) -> None:
        subs = self._subscribers.get(sub.channel)
        if subs is None:
            return
        subs.discard(sub)
        if not subs:
            del self._subscribers[sub.channel]
        logger.debug("broker.unsubscribed", channel=sub.channel)


# ─── Redis ───────────────────────────────────────────────


class _RedisSubscription(Subscription):
    def __init__(self, pubsub: Any, channel: str):
        super().__init__(channel)
        self._pubsub = pubsub
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[str]:
        async for message in self._pubsub.listen():
            if message["type"] == "message":
                yield message["data"]

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._pubsub.unsubscribe(self.channel)
        await self._pubsub.aclose()


class RedisBroker(Broker):
    """Redis-backed pub/sub for production (multi-instance)."""

    def __init__(self, redis_url: str) -> None:
        self._redis_url = redis_url
        self._redis: Optional[aioredis.Redis] = None

    @property
    def connected(self) -> bool:
        return self._redis is not None

    async def connect(self) -> None:
        """Open the connection pool and verify it with PING."""
        client = aioredis.from_url(
            self._redis_url,
            encoding="utf-8",
            decode_responses=True,
        )
        await client.ping()
        self._redis = client
        logger.info("broker.connected", kind="redis", url=self._redis_url)

    async def disconnect(self) -> None:
        if self._redis:
            await self._redis.aclose()
            self._redis = None
        logger.info("broker.disconnected", kind="redis")

    def _client(self) -> aioredis.Redis:
        if self._redis is None:
            raise BrokerNotConnectedError("Redis not initialized. Call connect() first.")
        return self._redis

    async def publish(self, channel: str, data: str) -> int:
        return await self._client().publish(channel, data)

    async def subscribe(self, channel: str) -> Subscription:
        pubsub = self._client().pubsub()
        await pubsub.subscribe(channel)
        logger.debug("broker.subscribed", channel=channel)
        return _RedisSubscription(pubsub, channel)


def create_broker(settings: Settings) -> Broker:
    """Build the broker selected by HUBRELAY_BROKER."""
    if settings.broker == "memory":
        return InMemoryBroker()
    return RedisBroker(settings.redis_url)
