"""Persisted engine config overrides."""

from __future__ import annotations

import aiosqlite

from restroom.lib.config import EngineConfig, SettingsKey
from restroom.lib.db.connection import get_db, load_template
from restroom.logging import get_logger

_logger = get_logger("lib.db.settings")

_ENGINE_PREFIX = "engine."


async def get_all_settings() -> dict[SettingsKey, str]:
    """Get all known settings as a dictionary.

    Rows with keys this version doesn't know are ignored.
    """
    try:
        async with get_db() as db:
            rows = await db.fetchall("SELECT key, value FROM settings")
    except (aiosqlite.Error, OSError) as e:
        _logger.warning("Failed to fetch settings: %s", e)
        raise

    valid = {k.value for k in SettingsKey}
    return {
        SettingsKey(row["key"]): row["value"]
        for row in rows
        if row["key"] in valid
    }


async def set_settings_batch(
    settings: dict[SettingsKey, str],
) -> dict[SettingsKey, str]:
    """Set multiple settings in a single transaction.

    Returns the full settings dict after update.
    """
    async with get_db() as db, db.transaction():
        await db.executemany(
            load_template("upsert_settings.sql"),
            [(str(k), v) for k, v in settings.items()],
        )
    return await get_all_settings()


def settings_to_config_update(
    db_settings: dict[SettingsKey, str],
) -> dict[str, str]:
    """Convert stored overrides to a partial EngineConfig update."""
    return {
        key.value.removeprefix(_ENGINE_PREFIX): value
        for key, value in db_settings.items()
    }


def config_to_settings(config: EngineConfig) -> dict[SettingsKey, str]:
    """Convert the persistable part of an EngineConfig to settings rows."""
    return {
        key: str(getattr(config, key.value.removeprefix(_ENGINE_PREFIX)))
        for key in SettingsKey
    }
