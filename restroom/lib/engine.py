"""Device telemetry state engine.

Ties the normalizer, snapshot cache, alert state machine and config store
together. Every ingest and every read is a single critical section over both
registries; the resulting outbound work is appended to the outbox after the
lock is released.
"""

import threading
from collections.abc import Mapping
from dataclasses import replace
from typing import Any

from restroom.lib.alerts import (
    AlertEvent,
    DeviceAlertState,
    evaluate_conditions,
    routine_due,
    transition,
)
from restroom.lib.config import (
    ConfigStore,
    EngineConfig,
    EventKind,
    LivenessStatus,
)
from restroom.lib.normalizer import normalize_reading
from restroom.lib.outbox import (
    LivenessUpdate,
    NotificationRequest,
    Outbox,
    OutboxItem,
    PersistRequest,
)
from restroom.lib.snapshots import DeviceSnapshot, SnapshotCache
from restroom.lib.utils import Clock, SystemClock
from restroom.logging import get_logger

logger = get_logger("lib.engine")


class TelemetryEngine:
    """Owns per-device snapshots and alert state.

    Safe to call from any thread. One lock guards the snapshot and alert
    registries, and outbound work goes through Outbox.put, which is
    thread-safe.
    """

    def __init__(
        self,
        config_store: ConfigStore,
        outbox: Outbox,
        clock: Clock | None = None,
    ) -> None:
        self._config_store = config_store
        self._outbox = outbox
        self._clock = clock or SystemClock()
        self._lock = threading.Lock()
        self._snapshots = SnapshotCache()
        self._states: dict[str, DeviceAlertState] = {}

    def ingest(self, raw: Any) -> DeviceSnapshot:
        """Accept one raw station reading.

        Raises:
            ValidationError: If the reading is rejected. No state changes.
        """
        reading = normalize_reading(raw)
        config = self._config_store.get()
        pending: list[OutboxItem] = []

        with self._lock:
            now = self._clock.now_ms()
            result = self._snapshots.upsert(reading, now)
            snapshot = result.snapshot
            prev = self._states.get(reading.device_id) or DeviceAlertState(
                device_id=reading.device_id
            )
            conditions = evaluate_conditions(snapshot, config)
            state, events = transition(prev, conditions, now, config)

            if routine_due(state, now, config):
                state = replace(state, persist_in_flight=True)
                pending.append(PersistRequest(snapshot, requested_at=now))
            self._states[reading.device_id] = state

        if result.reactivated:
            pending.append(
                LivenessUpdate(reading.device_id, LivenessStatus.ACTIVE)
            )
        pending.extend(NotificationRequest(e, snapshot) for e in events)
        for item in pending:
            self._outbox.put(item)
        return snapshot

    def list_snapshots(self) -> dict[str, DeviceSnapshot]:
        """Return all snapshots, sweeping silent devices to inactive."""
        with self._lock:
            snapshots, deactivated = self._snapshots.list_all(
                self._clock.now_ms()
            )
        for device_id in deactivated:
            self._outbox.put(LivenessUpdate(device_id, LivenessStatus.INACTIVE))
        return snapshots

    def get_state(self, device_id: str) -> DeviceAlertState | None:
        with self._lock:
            return self._states.get(device_id)

    def get_config(self) -> EngineConfig:
        return self._config_store.get()

    def set_config(self, partial: Mapping[str, Any]) -> EngineConfig:
        """Apply a partial config update.

        Raises:
            ValidationError: If the update is invalid. Nothing changes.
        """
        return self._config_store.set(partial)

    def record_persist_result(
        self, snapshot: DeviceSnapshot, requested_at: int, ok: bool
    ) -> AlertEvent | None:
        """Settle a history write issued by a routine check.

        Only a successful write advances the routine cursor; a failure just
        clears the in-flight flag so the next qualifying ingest retries.

        Returns:
            A ROUTINE event if the write succeeded and the device is not in
            an incident, otherwise None.
        """
        device_id = snapshot.device_id
        with self._lock:
            state = self._states.get(device_id)
            if state is None:
                return None
            if ok:
                state = replace(
                    state,
                    persist_in_flight=False,
                    last_persisted_at=requested_at,
                )
            else:
                state = replace(state, persist_in_flight=False)
            self._states[device_id] = state

        if not ok or state.is_alerting:
            return None
        return AlertEvent(EventKind.ROUTINE, device_id, (), requested_at)
