"""Last-known reading per device, with derived liveness.

Not thread-safe on its own: TelemetryEngine serializes every access.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any

from restroom.lib.config import INACTIVE_THRESHOLD_MS, LivenessStatus
from restroom.lib.normalizer import NormalizedReading
from restroom.lib.utils import ms_to_datetime
from restroom.logging import get_logger

logger = get_logger("lib.snapshots")


@dataclass(frozen=True, slots=True)
class DeviceSnapshot:
    """Most recent normalized readings for one device."""

    device_id: str
    amonia: str
    water: str
    soap: str
    tissue: str
    timestamp: datetime
    liveness: LivenessStatus
    last_active_at: int  # epoch ms, monotonic per device

    def to_dict(self) -> dict[str, Any]:
        return {
            "deviceId": self.device_id,
            "amonia": self.amonia,
            "water": self.water,
            "soap": self.soap,
            "tissue": self.tissue,
            "timestamp": self.timestamp.isoformat(),
            "liveness": self.liveness.value,
            "lastActiveAt": self.last_active_at,
        }


@dataclass(frozen=True, slots=True)
class UpsertResult:
    snapshot: DeviceSnapshot
    reactivated: bool  # Device was inactive before this ingest


class SnapshotCache:
    """Device snapshot registry keyed by device id.

    Snapshots are immutable values, so handing one out is handing out a
    copy. Entries are never removed.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, DeviceSnapshot] = {}

    def __len__(self) -> int:
        return len(self._snapshots)

    def __contains__(self, device_id: object) -> bool:
        return device_id in self._snapshots

    def get(self, device_id: str) -> DeviceSnapshot | None:
        return self._snapshots.get(device_id)

    def upsert(self, reading: NormalizedReading, now: int) -> UpsertResult:
        """Replace the snapshot for a device with a fresh reading."""
        previous = self._snapshots.get(reading.device_id)
        last_active_at = (
            max(previous.last_active_at, now) if previous is not None else now
        )
        snapshot = DeviceSnapshot(
            device_id=reading.device_id,
            amonia=reading.amonia,
            water=reading.water,
            soap=reading.soap,
            tissue=reading.tissue,
            timestamp=ms_to_datetime(now),
            liveness=LivenessStatus.ACTIVE,
            last_active_at=last_active_at,
        )
        self._snapshots[reading.device_id] = snapshot
        reactivated = (
            previous is not None
            and previous.liveness == LivenessStatus.INACTIVE
        )
        if reactivated:
            logger.info("Device %s is active again", reading.device_id)
        return UpsertResult(snapshot=snapshot, reactivated=reactivated)

    def list_all(self, now: int) -> tuple[dict[str, DeviceSnapshot], list[str]]:
        """Return all snapshots, marking silent devices inactive.

        A device goes inactive once the time since its last ingest exceeds
        the inactivity threshold. The flip is visible in the returned
        snapshots.

        Returns:
            Tuple of (snapshots by device id, ids that just went inactive).
        """
        deactivated: list[str] = []
        for device_id, snapshot in list(self._snapshots.items()):
            if (
                snapshot.liveness == LivenessStatus.ACTIVE
                and now - snapshot.last_active_at > INACTIVE_THRESHOLD_MS
            ):
                self._snapshots[device_id] = replace(
                    snapshot, liveness=LivenessStatus.INACTIVE
                )
                deactivated.append(device_id)
                logger.info(
                    "Device %s inactive, last seen %d ms ago",
                    device_id,
                    now - snapshot.last_active_at,
                )
        return dict(self._snapshots), deactivated
