"""API key authentication for station and admin endpoints."""

import secrets
from collections.abc import Awaitable, Callable
from functools import wraps

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from restroom.lib.config import get_settings

API_KEY_HEADER = "X-API-Key"


def is_valid_api_key(key: str | None, valid_keys: frozenset[str]) -> bool:
    """Check a presented key against the configured keys."""
    if not key:
        return False
    return any(secrets.compare_digest(key, valid) for valid in valid_keys)


def require_api_key[R: Response](
    handler: Callable[[Request], Awaitable[R]],
) -> Callable[[Request], Awaitable[Response]]:
    """Decorator to require a valid API key when keys are configured."""

    @wraps(handler)
    async def wrapper(request: Request) -> Response:
        server = get_settings().server
        if server.auth_enabled and not is_valid_api_key(
            request.headers.get(API_KEY_HEADER), server.api_keys
        ):
            return JSONResponse({"error": "Unauthorized"}, status_code=401)
        return await handler(request)

    return wrapper
