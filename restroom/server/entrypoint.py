"""Application factory for the web server."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import aiosqlite
from starlette.applications import Starlette
from starlette.routing import Route

from restroom.lib.config import ConfigStore, get_settings
from restroom.lib.db import (
    SqliteHistoryStore,
    SqliteSubscriberDirectory,
    close_db,
    get_all_settings,
    init_db,
    settings_to_config_update,
)
from restroom.lib.dispatcher import Dispatcher
from restroom.lib.engine import TelemetryEngine
from restroom.lib.exceptions import ValidationError
from restroom.lib.notifications import get_notifier
from restroom.lib.outbox import Outbox
from restroom.logging import configure, get_logger

from .api.config import get_config, update_config
from .api.devices import get_latest
from .api.health import health_check
from .api.ingest import ingest_reading

_logger = get_logger("server.entrypoint")


async def _load_config_store() -> ConfigStore:
    """Build the config store from env defaults plus persisted overrides."""
    store = ConfigStore(get_settings().engine_defaults)
    try:
        overrides = await get_all_settings()
    except (aiosqlite.Error, OSError) as e:
        _logger.warning("Could not load config overrides: %s", e)
        return store
    if overrides:
        try:
            store.set(settings_to_config_update(overrides))
        except ValidationError as e:
            _logger.error(
                "Ignoring invalid stored config overrides: %s", e.details
            )
    return store


@asynccontextmanager
async def lifespan(app: Starlette) -> AsyncIterator[None]:
    """Application lifespan manager for startup/shutdown tasks."""
    await init_db()
    config_store = await _load_config_store()
    outbox = Outbox()
    engine = TelemetryEngine(config_store, outbox)
    notifier = get_notifier(SqliteSubscriberDirectory(), config_store)
    dispatcher = Dispatcher(engine, outbox, SqliteHistoryStore(), notifier)

    app.state.engine = engine
    dispatcher.start()
    _logger.info("Telemetry engine started")

    try:
        yield
    finally:
        await dispatcher.stop()
        await close_db()
        _logger.info("Telemetry engine stopped")


def create_app() -> Starlette:
    """Create and configure the Starlette application.

    Returns:
        Configured Starlette application instance.
    """
    configure(get_settings().log_level)

    routes = [
        Route("/health", health_check),
        Route("/data", ingest_reading, methods=["POST"]),
        Route("/api/latest", get_latest),
        Route("/api/config", get_config),
        Route("/api/config", update_config, methods=["PUT", "POST"]),
    ]

    return Starlette(routes=routes, lifespan=lifespan)
