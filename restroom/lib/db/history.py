"""History and liveness persistence for device snapshots."""

from __future__ import annotations

import aiosqlite

from restroom.lib.config import LivenessStatus
from restroom.lib.db.connection import get_db, load_template
from restroom.lib.exceptions import DatabaseError, TransientPersistenceError
from restroom.lib.snapshots import DeviceSnapshot
from restroom.logging import get_logger

_logger = get_logger("lib.db.history")

# SQLite datetime format (space separator, not T)
_SQLITE_DATETIME_FMT = "%Y-%m-%d %H:%M:%S"

_DB_ERRORS = (DatabaseError, aiosqlite.Error, OSError)


class SqliteHistoryStore:
    """History store backed by the application SQLite database."""

    async def append_history(self, snapshot: DeviceSnapshot) -> None:
        """Append a snapshot to the device history.

        Raises:
            TransientPersistenceError: If the write failed.
        """
        try:
            async with get_db() as db:
                await db.execute(
                    load_template("insert_device_history.sql"),
                    {
                        "device_id": snapshot.device_id,
                        "amonia": snapshot.amonia,
                        "water": snapshot.water,
                        "soap": snapshot.soap,
                        "tissue": snapshot.tissue,
                        "recording_time": snapshot.timestamp.strftime(
                            _SQLITE_DATETIME_FMT
                        ),
                        "epoch": int(snapshot.timestamp.timestamp() * 1000),
                    },
                )
        except _DB_ERRORS as e:
            raise TransientPersistenceError(
                f"Failed to append history for {snapshot.device_id}: {e}"
            ) from e
        _logger.debug("Persisted snapshot for %s", snapshot.device_id)

    async def update_liveness_status(
        self, device_id: str, status: LivenessStatus
    ) -> None:
        """Record the derived liveness of a device.

        Raises:
            TransientPersistenceError: If the write failed.
        """
        try:
            async with get_db() as db:
                await db.execute(
                    load_template("upsert_device_status.sql"),
                    {"device_id": device_id, "liveness": str(status)},
                )
        except _DB_ERRORS as e:
            raise TransientPersistenceError(
                f"Failed to update liveness for {device_id}: {e}"
            ) from e
        _logger.debug("Liveness of %s recorded as %s", device_id, status)

