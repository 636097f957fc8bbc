"""Web server entrypoint.

Runs the Starlette web application using uvicorn. For production,
use uvicorn directly with appropriate workers and socket options:

    uvicorn restroom.server:create_app --factory --host 0.0.0.0 --port 8000

Keep a single worker: device state lives in process memory.

Usage: python -m restroom.server
"""
import uvicorn

from restroom.lib.config import get_settings


def main() -> None:
    """Run the web server."""
    server = get_settings().server
    uvicorn.run(
        "restroom.server:create_app",
        factory=True,
        host=server.host,
        port=server.port,
    )


if __name__ == "__main__":
    main()
