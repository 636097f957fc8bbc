"""Station ingest endpoint."""

import json

from starlette.requests import Request
from starlette.responses import JSONResponse

from restroom.lib.engine import TelemetryEngine
from restroom.lib.exceptions import ValidationError
from restroom.logging import get_logger
from restroom.server.auth import require_api_key

logger = get_logger("server.api.ingest")


@require_api_key
async def ingest_reading(request: Request) -> JSONResponse:
    """Accept one reading from a station."""
    engine: TelemetryEngine = request.app.state.engine
    try:
        raw = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return JSONResponse({"error": "Invalid JSON"}, status_code=400)

    try:
        snapshot = engine.ingest(raw)
    except ValidationError as e:
        logger.warning("Rejected reading: %s", e.message)
        return JSONResponse(e.to_dict(), status_code=400)

    return JSONResponse({"status": "ok", "deviceId": snapshot.device_id})
