"""Tests for the ingest, device and config API endpoints."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import aiosqlite
import pytest

from restroom.lib.config import Settings, SettingsKey
from restroom.lib.config.testing import set_settings
from restroom.lib.db import get_all_settings
from restroom.server.api.config import get_config, update_config
from restroom.server.api.devices import get_latest
from restroom.server.api.ingest import ingest_reading
from tests.conftest import make_raw


def make_request(engine, body=None, headers=None, invalid_json=False):
    """Create a mock Starlette request bound to an engine."""
    request = MagicMock()
    request.app.state.engine = engine
    request.headers = headers or {}
    if invalid_json:
        request.json = AsyncMock(
            side_effect=json.JSONDecodeError("Expecting value", "", 0)
        )
    else:
        request.json = AsyncMock(return_value=body)
    return request


def body_of(response):
    return json.loads(response.body)


class TestIngestReading:
    """Tests for POST /data."""

    async def test_accepts_reading(self, engine):
        response = await ingest_reading(make_request(engine, make_raw()))

        assert response.status_code == 200
        assert body_of(response) == {
            "status": "ok",
            "deviceId": "toilet-lantai-2",
        }
        assert "toilet-lantai-2" in engine.list_snapshots()

    async def test_invalid_json(self, engine):
        response = await ingest_reading(make_request(engine, invalid_json=True))

        assert response.status_code == 400
        assert body_of(response) == {"error": "Invalid JSON"}

    async def test_missing_device_id(self, engine):
        response = await ingest_reading(make_request(engine, {"amonia": "{}"}))

        assert response.status_code == 400
        body = body_of(response)
        assert body["error"] == "deviceId is required"
        assert body["details"][0]["field"] == "deviceId"
        assert engine.list_snapshots() == {}

    async def test_non_object_body(self, engine):
        response = await ingest_reading(make_request(engine, [1, 2]))
        assert response.status_code == 400

    async def test_requires_key_when_configured(self, engine):
        set_settings(Settings(api_keys="station-key, admin-key"))

        denied = await ingest_reading(make_request(engine, make_raw()))
        wrong = await ingest_reading(
            make_request(engine, make_raw(), {"X-API-Key": "nope"})
        )
        allowed = await ingest_reading(
            make_request(engine, make_raw(), {"X-API-Key": "admin-key"})
        )

        assert denied.status_code == 401
        assert body_of(denied) == {"error": "Unauthorized"}
        assert wrong.status_code == 401
        assert allowed.status_code == 200


class TestGetLatest:
    """Tests for GET /api/latest."""

    async def test_lists_devices_sorted(self, engine, clock):
        engine.ingest(make_raw("toilet-lantai-3"))
        engine.ingest(make_raw("toilet-lantai-1"))

        response = await get_latest(make_request(engine))

        body = body_of(response)
        assert list(body) == ["toilet-lantai-1", "toilet-lantai-3"]
        assert body["toilet-lantai-1"]["liveness"] == "active"

    async def test_shows_inactive_devices(self, engine, clock):
        engine.ingest(make_raw())
        clock.set(30_001)

        body = body_of(await get_latest(make_request(engine)))

        assert body["toilet-lantai-2"]["liveness"] == "inactive"

    async def test_empty(self, engine):
        assert body_of(await get_latest(make_request(engine))) == {}


@pytest.mark.usefixtures("close_pool")
class TestConfig:
    """Tests for the config endpoints."""

    async def test_get_config(self, engine):
        body = body_of(await get_config(make_request(engine)))

        assert body["historicalIntervalMinutes"] == 5
        assert body["maxReminders"] == 3
        assert body["reminderIntervalMinutes"] == 10
        assert body["reminderIntervalMs"] == 600_000

    async def test_update_config(self, engine):
        response = await update_config(
            make_request(engine, {"maxReminders": 1})
        )

        assert response.status_code == 200
        assert body_of(response)["maxReminders"] == 1
        assert engine.get_config().max_reminders == 1
        stored = await get_all_settings()
        assert stored[SettingsKey.MAX_REMINDERS] == "1"

    async def test_invalid_update_keeps_config(self, engine):
        response = await update_config(
            make_request(engine, {"maxReminders": -1})
        )

        assert response.status_code == 400
        assert body_of(response)["details"][0]["field"] == "maxReminders"
        assert engine.get_config().max_reminders == 3

    async def test_unknown_key_rejected(self, engine):
        response = await update_config(make_request(engine, {"colour": "red"}))

        assert response.status_code == 400
        assert body_of(response)["details"] == [
            {"field": "colour", "message": "Unknown config key"}
        ]

    async def test_persist_failure_still_applies(self, engine, caplog):
        with patch(
            "restroom.server.api.config.set_settings_batch",
            new_callable=AsyncMock,
            side_effect=aiosqlite.OperationalError("database is locked"),
        ):
            response = await update_config(
                make_request(engine, {"historicalIntervalMinutes": 1})
            )

        assert response.status_code == 200
        assert engine.get_config().historical_interval_minutes == 1
        assert "Failed to persist config overrides" in caplog.text

    async def test_update_requires_key(self, engine):
        set_settings(Settings(api_keys="admin-key"))

        response = await update_config(make_request(engine, {"maxReminders": 1}))

        assert response.status_code == 401
        assert engine.get_config().max_reminders == 3
