"""Notification service that delivers relayed notification events.

Used when NOTIFICATION_MODE=eventbus: the web server publishes each event on
the NOTIFICATION topic and this service fans it out to Telegram subscribers.
"""

import aiosqlite

from restroom.lib.config import (
    EngineConfig,
    NotificationMode,
    build_config,
    get_settings,
)
from restroom.lib.db import (
    SqliteSubscriberDirectory,
    close_db,
    get_all_settings,
    init_db,
    settings_to_config_update,
)
from restroom.lib.eventbus import (
    EventSubscriber,
    NotificationEventPayload,
    Topic,
)
from restroom.lib.exceptions import RestroomMonitorError, ValidationError
from restroom.lib.notifications import FanOut, get_transport
from restroom.lib.outbox import NotificationRequest
from restroom.lib.service import run_service
from restroom.logging import get_logger

logger = get_logger("notifications.service")


async def _load_engine_config() -> EngineConfig:
    """Load the engine config, including overrides saved by the server."""
    defaults = get_settings().engine_defaults
    try:
        overrides = await get_all_settings()
        return build_config(defaults, settings_to_config_update(overrides))
    except (aiosqlite.Error, OSError, ValidationError) as e:
        logger.warning("Using default engine config: %s", e)
        return defaults


async def run() -> None:
    """Run the notification service."""
    await init_db()
    directory = SqliteSubscriberDirectory()
    transport = get_transport()
    tz = get_settings().notifications.tz

    try:
        async with EventSubscriber(topics=[Topic.NOTIFICATION]) as subscriber:
            logger.info("Notification service started")
            async for _topic, data in subscriber.receive():
                try:
                    payload = NotificationEventPayload.from_dict(data)
                except (KeyError, ValueError, TypeError):
                    logger.exception("Failed to parse notification event")
                    continue
                # Reload per event to pick up config changes from the server
                config = await _load_engine_config()
                notifier = FanOut(directory, transport, lambda: config, tz)
                try:
                    await notifier.notify(
                        NotificationRequest(payload.event, payload.snapshot)
                    )
                except (RestroomMonitorError, OSError):
                    logger.exception("Failed to send notification")
    finally:
        await close_db()

    logger.info("Notification service stopped")


def _enabled() -> bool:
    cfg = get_settings().notifications
    return cfg.enabled and cfg.mode == NotificationMode.EVENTBUS


def main() -> None:
    """Entry point for the notification service."""
    run_service(run, enabled=_enabled, name="notifications")


if __name__ == "__main__":
    main()
