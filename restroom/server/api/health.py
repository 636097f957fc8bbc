"""Health check endpoint for monitoring service status."""

import asyncio
from datetime import UTC, datetime

import aiosqlite
import redis.asyncio as redis
from starlette.requests import Request
from starlette.responses import JSONResponse

from restroom.lib.config import LivenessStatus, NotificationMode, get_settings
from restroom.lib.db import get_db
from restroom.lib.engine import TelemetryEngine
from restroom.lib.exceptions import DatabaseError
from restroom.logging import get_logger

logger = get_logger("server.api.health")

_DB_ERRORS = (DatabaseError, aiosqlite.Error, OSError)


async def _check_database() -> tuple[bool, str]:
    """Check if database is accessible."""
    try:
        async with get_db() as db:
            await db.fetchone("SELECT 1")
        return True, "ok"
    except _DB_ERRORS as e:
        logger.error("Database health check failed: %s", e)
        return False, str(e)


async def _check_redis() -> tuple[bool, str]:
    """Check if Redis is accessible."""
    try:
        client = redis.from_url(get_settings().eventbus.redis_url)
        await client.ping()
        await client.aclose()
        return True, "ok"
    except (redis.RedisError, OSError) as e:
        logger.error("Redis health check failed: %s", e)
        return False, str(e)


async def health_check(request: Request) -> JSONResponse:
    """Return health status of the application and its dependencies."""
    engine: TelemetryEngine = request.app.state.engine
    (db_ok, db_status), (redis_ok, redis_status) = await asyncio.gather(
        _check_database(),
        _check_redis(),
    )

    # Redis is only a hard dependency when notifications are relayed over it
    redis_required = (
        get_settings().notifications.mode == NotificationMode.EVENTBUS
    )
    is_healthy = db_ok and (redis_ok or not redis_required)

    snapshots = engine.list_snapshots()
    active = sum(
        1 for s in snapshots.values() if s.liveness == LivenessStatus.ACTIVE
    )

    return JSONResponse(
        {
            "status": "healthy" if is_healthy else "unhealthy",
            "timestamp": datetime.now(UTC).isoformat(),
            "checks": {
                "database": {"ok": db_ok, "status": db_status},
                "redis": {
                    "ok": redis_ok,
                    "status": redis_status,
                    "required": redis_required,
                },
            },
            "devices": {"total": len(snapshots), "active": active},
        },
        status_code=200 if is_healthy else 503,
    )
