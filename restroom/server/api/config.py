"""Engine config API endpoints."""

import json

import aiosqlite
from starlette.requests import Request
from starlette.responses import JSONResponse

from restroom.lib.db import config_to_settings, set_settings_batch
from restroom.lib.engine import TelemetryEngine
from restroom.lib.exceptions import DatabaseError, ValidationError
from restroom.logging import get_logger
from restroom.server.auth import require_api_key

logger = get_logger("server.api.config")


async def get_config(request: Request) -> JSONResponse:
    """Return the active engine config."""
    engine: TelemetryEngine = request.app.state.engine
    return JSONResponse(engine.get_config().to_dict())


@require_api_key
async def update_config(request: Request) -> JSONResponse:
    """Apply a partial config update and persist the overrides."""
    engine: TelemetryEngine = request.app.state.engine
    try:
        raw_data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)

    try:
        config = engine.set_config(raw_data)
    except ValidationError as e:
        return JSONResponse(e.to_dict(), status_code=400)

    try:
        await set_settings_batch(config_to_settings(config))
    except (DatabaseError, aiosqlite.Error, OSError) as e:
        # Active in memory, lost on restart
        logger.error("Failed to persist config overrides: %s", e)

    return JSONResponse(config.to_dict())
