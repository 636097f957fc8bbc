"""Logging setup for the restroom monitor.

Everything logs under the ``restroom`` namespace. Per-device messages go
through device_logger() so each line carries the device id.
"""

import logging
import sys
from collections.abc import MutableMapping
from typing import Any

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s - %(message)s"

_handler: logging.Handler | None = None


def configure(level: int | str = logging.INFO) -> None:
    """Install the stderr handler once; later calls only change the level."""
    global _handler
    root = logging.getLogger("restroom")
    root.setLevel(level)
    if _handler is not None:
        return

    _handler = logging.StreamHandler(sys.stderr)
    _handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(_handler)

    # Share the format with uvicorn; its child loggers propagate here
    uvicorn = logging.getLogger("uvicorn")
    uvicorn.handlers.clear()
    uvicorn.addHandler(_handler)

    # Stations post every few seconds
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get the ``restroom.<name>`` logger."""
    return logging.getLogger(f"restroom.{name}")


class _DeviceAdapter(logging.LoggerAdapter):
    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> tuple[Any, MutableMapping[str, Any]]:
        device_id = self.extra["device_id"] if self.extra else "?"
        return f"[{device_id}] {msg}", kwargs


def device_logger(
    logger: logging.Logger, device_id: str
) -> logging.LoggerAdapter:
    """Wrap a logger so messages are prefixed with ``[device_id]``."""
    return _DeviceAdapter(logger, {"device_id": device_id})
