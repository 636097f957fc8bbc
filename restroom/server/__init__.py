"""Web server for station ingest and device status.

The application is built by a factory so importing handlers stays free of
side effects:

    uvicorn restroom.server:create_app --factory
"""

from .entrypoint import create_app

__all__ = ["create_app"]
