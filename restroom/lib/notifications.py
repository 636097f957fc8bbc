"""Notification fan-out for incident and routine events.

Each event is sent to every subscriber assigned to the device's floor. The
floor is parsed from the device id ("toilet-lantai-2" is floor 2). Delivery
is best-effort: one attempt per subscriber, failures are logged and never
affect other subscribers or the engine.
"""

import asyncio
import re
import urllib.error
import urllib.parse
import urllib.request
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import tzinfo
from typing import Protocol, override
from zoneinfo import ZoneInfo

import redis

from restroom.lib.config import (
    ConfigStore,
    EngineConfig,
    EventKind,
    NotificationMode,
    get_settings,
)
from restroom.lib.eventbus import (
    EventPublisher,
    NotificationEventPayload,
    Topic,
)
from restroom.lib.exceptions import NotificationDeliveryError
from restroom.lib.outbox import NotificationRequest
from restroom.lib.sensors import summarize
from restroom.lib.utils import format_display_time
from restroom.logging import get_logger

logger = get_logger("lib.notifications")

_LEADING_INT = re.compile(r"\s*\+?(\d+)")


def parse_floor(device_id: str) -> int:
    """Extract the floor number from a device id.

    The id needs at least three dash-separated segments and the last one
    must start with digits. Anything else yields 0, which disables
    notifications for the device.
    """
    parts = device_id.split("-")
    if len(parts) < 3:
        return 0
    match = _LEADING_INT.match(parts[-1])
    if match is None:
        return 0
    return int(match.group(1))


def format_title(device_id: str) -> str:
    """Display title for a device: upper-cased, first dash as a space."""
    return device_id.upper().replace("-", " ", 1)


def format_message(
    request: NotificationRequest,
    config: EngineConfig,
    tz: tzinfo,
) -> str | None:
    """Render the message text for an event.

    Returns None for a routine report when the snapshot shows an empty
    dispenser; routine reports only ever say that all is well.
    """
    event, snapshot = request.event, request.snapshot
    title = format_title(event.device_id)
    time_str = format_display_time(snapshot.timestamp, tz)
    summary = summarize(
        snapshot.device_id,
        snapshot.amonia,
        snapshot.water,
        snapshot.soap,
        snapshot.tissue,
        config,
    )
    alerts = "\n".join(event.conditions)

    match event.kind:
        case EventKind.NEW:
            header = (
                f"🚨 MASALAH BARU TERDETEKSI di {title} ({time_str})!\n\n"
                f"{alerts}\n"
            )
        case EventKind.REMINDER:
            header = (
                f"🔔 PENGINGAT (MASALAH BELUM TERATASI) di {title} "
                f"({time_str})!\n\n{alerts}\n"
            )
        case EventKind.RECOVERY:
            header = (
                f"✅MASALAH SUDAH DIATASI di {title} ({time_str})!\n\n"
                "Status Sabun dan Tisu kembali normal.\n"
            )
        case EventKind.ROUTINE:
            if summary.any_empty:
                return None
            header = (
                f"📋 Laporan Rutin Harian dari {title} ({time_str}) - "
                "Status Aman.\n"
            )
    return header + str(summary)


@dataclass(frozen=True, slots=True)
class Subscriber:
    """A notification recipient (Telegram chat) assigned to a floor."""

    id: str
    floor: int


class SubscriberDirectory(Protocol):
    async def list_subscribers(self) -> list[Subscriber]: ...


class AbstractTransport(ABC):
    """Delivers a rendered message to one subscriber."""

    @abstractmethod
    async def send(self, subscriber_id: str, text: str) -> None:
        """Send a message.

        Raises:
            NotificationDeliveryError: If the message was not delivered.
        """


class TelegramTransport(AbstractTransport):
    """Telegram Bot API transport (sendMessage)."""

    def __init__(
        self,
        bot_token: str,
        api_url: str = "https://api.telegram.org",
        timeout_sec: float = 10,
    ) -> None:
        self._url = f"{api_url.rstrip('/')}/bot{bot_token}/sendMessage"
        self._timeout = timeout_sec

    def _post(self, subscriber_id: str, text: str) -> None:
        data = urllib.parse.urlencode(
            {"chat_id": subscriber_id, "text": text}
        ).encode("utf-8")
        req = urllib.request.Request(self._url, data=data, method="POST")
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                if resp.status != 200:
                    raise NotificationDeliveryError(
                        f"Telegram API returned status {resp.status}"
                    )
        except urllib.error.HTTPError as e:
            raise NotificationDeliveryError(
                f"Telegram API returned status {e.code}"
            ) from e
        except (urllib.error.URLError, OSError) as e:
            raise NotificationDeliveryError(
                f"Telegram request failed: {e}"
            ) from e

    @override
    async def send(self, subscriber_id: str, text: str) -> None:
        await asyncio.to_thread(self._post, subscriber_id, text)
        logger.info("Sent Telegram message to %s", subscriber_id)


class NoOpTransport(AbstractTransport):
    """No-op transport that logs but doesn't send messages."""

    @override
    async def send(self, subscriber_id: str, text: str) -> None:
        logger.info(
            "Notifications disabled, skipping message to %s", subscriber_id
        )


def get_transport() -> AbstractTransport:
    """Factory function to get the configured transport."""
    cfg = get_settings().notifications
    if not cfg.enabled:
        return NoOpTransport()
    return TelegramTransport(
        cfg.telegram_bot_token.get_secret_value(),
        api_url=cfg.telegram_api_url,
        timeout_sec=cfg.timeout_sec,
    )


class AbstractNotifier(ABC):
    """Accepts notification requests from the dispatcher."""

    @abstractmethod
    async def notify(self, request: NotificationRequest) -> None:
        """Handle a notification request. Must not raise on delivery errors."""


class FanOut(AbstractNotifier):
    """Sends each event to every subscriber on the device's floor."""

    def __init__(
        self,
        directory: SubscriberDirectory,
        transport: AbstractTransport,
        config: Callable[[], EngineConfig] | ConfigStore,
        tz: tzinfo | None = None,
    ) -> None:
        self._directory = directory
        self._transport = transport
        self._config = config.get if isinstance(config, ConfigStore) else config
        self._tz = tz or ZoneInfo(get_settings().notifications.display_timezone)

    async def _deliver(self, subscriber: Subscriber, text: str) -> bool:
        try:
            await self._transport.send(subscriber.id, text)
            return True
        except (NotificationDeliveryError, OSError) as e:
            logger.error(
                "Failed to deliver to subscriber %s: %s", subscriber.id, e
            )
            return False

    @override
    async def notify(self, request: NotificationRequest) -> None:
        event = request.event
        floor = parse_floor(event.device_id)
        if floor <= 0:
            logger.debug(
                "No floor in device id %s, dropping %s",
                event.device_id,
                event.kind,
            )
            return

        text = format_message(request, self._config(), self._tz)
        if text is None:
            logger.debug(
                "Routine report for %s suppressed, dispenser empty",
                event.device_id,
            )
            return

        subscribers = [
            s
            for s in await self._directory.list_subscribers()
            if s.floor == floor
        ]
        if not subscribers:
            logger.debug("No subscribers on floor %d", floor)
            return

        results = await asyncio.gather(
            *(self._deliver(s, text) for s in subscribers)
        )
        logger.info(
            "Sent %s for %s to %d/%d subscribers",
            event.kind,
            event.device_id,
            sum(results),
            len(subscribers),
        )


class EventBusRelay(AbstractNotifier):
    """Publishes notification requests for the notification service."""

    def __init__(self, publisher: EventPublisher) -> None:
        self._publisher = publisher

    @override
    async def notify(self, request: NotificationRequest) -> None:
        payload = NotificationEventPayload(request.event, request.snapshot)
        try:
            await asyncio.to_thread(
                self._publisher.publish, Topic.NOTIFICATION, payload
            )
        except (redis.RedisError, OSError) as e:
            raise NotificationDeliveryError(
                f"Could not relay {request.event.kind} for "
                f"{request.event.device_id}: {e}"
            ) from e


class NoOpNotifier(AbstractNotifier):
    """No-op notifier that logs but doesn't send notifications."""

    @override
    async def notify(self, request: NotificationRequest) -> None:
        logger.info(
            "Notifications disabled, skipping %s for %s",
            request.event.kind,
            request.event.device_id,
        )


def get_notifier(
    directory: SubscriberDirectory,
    config: Callable[[], EngineConfig] | ConfigStore,
    publisher: EventPublisher | None = None,
) -> AbstractNotifier:
    """Factory function to get the configured notifier."""
    cfg = get_settings().notifications
    if not cfg.enabled:
        return NoOpNotifier()
    if cfg.mode == NotificationMode.EVENTBUS:
        if publisher is None:
            publisher = EventPublisher()
            publisher.connect()
        return EventBusRelay(publisher)
    return FanOut(directory, get_transport(), config, cfg.tz)
