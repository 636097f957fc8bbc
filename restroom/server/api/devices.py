"""Device status endpoints."""

from starlette.requests import Request
from starlette.responses import JSONResponse

from restroom.lib.engine import TelemetryEngine


async def get_latest(request: Request) -> JSONResponse:
    """Return the latest snapshot of every device."""
    engine: TelemetryEngine = request.app.state.engine
    snapshots = engine.list_snapshots()
    return JSONResponse(
        {device_id: s.to_dict() for device_id, s in sorted(snapshots.items())}
    )
