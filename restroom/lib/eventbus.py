"""Redis-based event bus for relaying notification events.

Lets the web server hand incident and routine events to a separate
notification service process instead of delivering them inline.
"""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from typing import Any, Literal, Self

import redis
import redis.asyncio as aioredis

from restroom.lib.alerts import AlertEvent
from restroom.lib.config import (
    Condition,
    EventKind,
    LivenessStatus,
    get_settings,
)
from restroom.lib.snapshots import DeviceSnapshot
from restroom.logging import get_logger

logger = get_logger("lib.eventbus")


class Topic(StrEnum):
    """Event bus topics."""

    NOTIFICATION = "notification"


@dataclass(frozen=True, slots=True)
class Event(ABC):
    """Base class for all event bus payloads."""

    @property
    @abstractmethod
    def event_type(self) -> str:
        """Discriminator field for event type identification."""

    @abstractmethod
    def to_dict(self) -> dict[str, Any]:
        """Convert event to dictionary for JSON serialization."""


@dataclass(frozen=True, slots=True)
class NotificationEventPayload(Event):
    """An alert event plus the snapshot it was raised on."""

    event: AlertEvent
    snapshot: DeviceSnapshot

    @property
    def event_type(self) -> Literal["notification"]:
        return "notification"

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.event_type,
            "kind": self.event.kind.value,
            "device_id": self.event.device_id,
            "conditions": [c.value for c in self.event.conditions],
            "occurred_at": self.event.occurred_at,
            "snapshot": self.snapshot.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NotificationEventPayload:
        """Rebuild the payload on the receiving side.

        Raises:
            KeyError, ValueError, TypeError: If the message is malformed.
        """
        snap = data["snapshot"]
        return cls(
            event=AlertEvent(
                kind=EventKind(data["kind"]),
                device_id=data["device_id"],
                conditions=tuple(Condition(c) for c in data["conditions"]),
                occurred_at=int(data["occurred_at"]),
            ),
            snapshot=DeviceSnapshot(
                device_id=snap["deviceId"],
                amonia=snap["amonia"],
                water=snap["water"],
                soap=snap["soap"],
                tissue=snap["tissue"],
                timestamp=datetime.fromisoformat(snap["timestamp"]),
                liveness=LivenessStatus(snap["liveness"]),
                last_active_at=int(snap["lastActiveAt"]),
            ),
        )


class EventPublisher:
    """Publishes events to the event bus."""

    def __init__(self) -> None:
        self._redis_url = get_settings().eventbus.redis_url
        self._client: redis.Redis[bytes] | None = None

    def connect(self) -> None:
        """Connect to Redis."""
        self._client = redis.from_url(self._redis_url)
        logger.info("Event publisher connected to Redis")

    def publish(self, topic: Topic, data: Event) -> None:
        """Publish a message to the event bus.

        Args:
            topic: The topic to publish to (e.g., Topic.NOTIFICATION).
            data: Event to publish.
        """
        if self._client is None:
            return

        message = json.dumps(data.to_dict())
        self._client.publish(topic, message)
        logger.debug("Published to %s: %s", topic, message)

    def close(self) -> None:
        """Close the publisher connection."""
        if self._client is not None:
            self._client.close()
            self._client = None
        logger.info("Event publisher closed")


class EventSubscriber:
    """Subscribes to events from the event bus.

    Used by the notification service to receive relayed events.
    """

    def __init__(self, topics: list[Topic] | None = None) -> None:
        """Initialize subscriber.

        Args:
            topics: List of topics to subscribe to. If None, subscribes to all.
        """
        self._redis_url = get_settings().eventbus.redis_url
        self._topics = topics or list(Topic)
        self._client: aioredis.Redis[bytes] | None = None
        self._pubsub: aioredis.client.PubSub | None = None

    async def connect(self) -> None:
        """Connect to Redis and subscribe to topics."""
        self._client = aioredis.from_url(self._redis_url)
        self._pubsub = self._client.pubsub()
        await self._pubsub.subscribe(*self._topics)
        logger.info(
            "Event subscriber connected to Redis, topics: %s", self._topics
        )

    async def receive(self) -> AsyncIterator[tuple[Topic, dict[str, Any]]]:
        """Async iterator that yields (topic, data) tuples as they arrive."""
        if self._pubsub is None:
            return

        async for message in self._pubsub.listen():
            if message["type"] != "message":
                continue

            try:
                topic = Topic(message["channel"].decode())
                data = json.loads(message["data"].decode())
                yield topic, data
            except (ValueError, json.JSONDecodeError) as e:
                logger.warning("Invalid message: %s", e)

    async def close(self) -> None:
        """Close the subscriber connection."""
        if self._pubsub is not None:
            await self._pubsub.unsubscribe()
            await self._pubsub.aclose()
            self._pubsub = None
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        logger.info("Event subscriber closed")

    async def __aenter__(self) -> Self:
        """Async context manager entry."""
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        """Async context manager exit."""
        await self.close()
