"""Tests for the health check API endpoint."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import aiosqlite
import pytest

from restroom.lib.config import NotificationMode
from restroom.lib.config.testing import override_settings
from restroom.server.api.health import (
    _check_database,
    _check_redis,
    health_check,
)
from tests.conftest import make_raw


def _patch_checks(db=(True, "ok"), redis=(True, "ok")):
    return (
        patch(
            "restroom.server.api.health._check_database",
            new_callable=AsyncMock,
            return_value=db,
        ),
        patch(
            "restroom.server.api.health._check_redis",
            new_callable=AsyncMock,
            return_value=redis,
        ),
    )


class TestHealthCheck:
    """Tests for health_check endpoint."""

    def _make_request(self, engine):
        """Create a mock Starlette request."""
        request = MagicMock()
        request.app.state.engine = engine
        return request

    async def test_healthy_when_all_checks_pass(self, engine):
        """Should return healthy status when database and Redis are OK."""
        engine.ingest(make_raw())
        db_patch, redis_patch = _patch_checks()
        with db_patch, redis_patch:
            response = await health_check(self._make_request(engine))

        body = json.loads(response.body)
        assert response.status_code == 200
        assert body["status"] == "healthy"
        assert body["checks"]["database"] == {"ok": True, "status": "ok"}
        assert body["devices"] == {"total": 1, "active": 1}

    async def test_unhealthy_when_database_fails(self, engine):
        """Should return unhealthy status when database is down."""
        db_patch, redis_patch = _patch_checks(db=(False, "unable to open"))
        with db_patch, redis_patch:
            response = await health_check(self._make_request(engine))

        assert response.status_code == 503
        assert b'"status":"unhealthy"' in response.body
        assert b"unable to open" in response.body

    async def test_redis_optional_inline(self, engine):
        """Redis being down is fine when notifications are sent inline."""
        db_patch, redis_patch = _patch_checks(redis=(False, "refused"))
        with db_patch, redis_patch:
            response = await health_check(self._make_request(engine))

        body = json.loads(response.body)
        assert response.status_code == 200
        assert body["checks"]["redis"]["required"] is False

    async def test_redis_required_for_eventbus(self, engine):
        """Redis being down is fatal when notifications go over the bus."""
        db_patch, redis_patch = _patch_checks(redis=(False, "refused"))
        with (
            override_settings(notification_mode=NotificationMode.EVENTBUS),
            db_patch,
            redis_patch,
        ):
            response = await health_check(self._make_request(engine))

        assert response.status_code == 503


class TestCheckDatabase:
    """Tests for _check_database helper."""

    @pytest.mark.usefixtures("close_pool")
    async def test_returns_true_when_db_accessible(self):
        """Should return True when database query succeeds."""
        ok, status = await _check_database()

        assert ok is True
        assert status == "ok"

    async def test_returns_false_on_db_error(self):
        """Should return False when database query fails."""
        with patch(
            "restroom.server.api.health.get_db",
            side_effect=aiosqlite.Error("Connection failed"),
        ):
            ok, status = await _check_database()

        assert ok is False
        assert "Connection failed" in status


class TestCheckRedis:
    """Tests for _check_redis helper."""

    async def test_returns_true_when_redis_accessible(self):
        """Should return True when Redis ping succeeds."""
        with patch("restroom.server.api.health.redis.from_url") as mock_redis:
            mock_client = AsyncMock()
            mock_redis.return_value = mock_client

            ok, status = await _check_redis()

        assert ok is True
        assert status == "ok"
        mock_client.aclose.assert_called_once()

    async def test_returns_false_on_redis_error(self):
        """Should return False when Redis ping fails."""
        import redis.asyncio as redis_lib

        with patch(
            "restroom.server.api.health.redis.from_url",
            side_effect=redis_lib.RedisError("Connection refused"),
        ):
            ok, status = await _check_redis()

        assert ok is False
        assert "Connection refused" in status
