"""Drains the outbox: history writes, liveness updates and notifications.

Runs as a single background task so outbound work is processed in the order
the engine produced it. Collaborator failures are logged and never
propagated; nothing the dispatcher does can fail an ingest.
"""

import asyncio
from typing import Protocol

from restroom.lib.config import LivenessStatus
from restroom.lib.engine import TelemetryEngine
from restroom.lib.exceptions import TransientPersistenceError
from restroom.lib.notifications import AbstractNotifier
from restroom.lib.outbox import (
    LivenessUpdate,
    NotificationRequest,
    Outbox,
    OutboxItem,
    PersistRequest,
)
from restroom.lib.snapshots import DeviceSnapshot
from restroom.logging import get_logger

logger = get_logger("lib.dispatcher")


class HistoryStore(Protocol):
    async def append_history(self, snapshot: DeviceSnapshot) -> None: ...

    async def update_liveness_status(
        self, device_id: str, status: LivenessStatus
    ) -> None: ...


class Dispatcher:
    """Processes outbox items against the history store and notifier."""

    def __init__(
        self,
        engine: TelemetryEngine,
        outbox: Outbox,
        history: HistoryStore,
        notifier: AbstractNotifier,
    ) -> None:
        self._engine = engine
        self._outbox = outbox
        self._history = history
        self._notifier = notifier
        self._task: asyncio.Task[None] | None = None

    async def _persist(self, item: PersistRequest) -> None:
        ok = False
        try:
            await self._history.append_history(item.snapshot)
            ok = True
        except TransientPersistenceError as e:
            logger.warning(
                "History write for %s failed, will retry on next ingest: %s",
                item.snapshot.device_id,
                e,
            )
        finally:
            # The in-flight flag is cleared whatever the outcome
            routine = self._engine.record_persist_result(
                item.snapshot, item.requested_at, ok
            )
        if routine is not None:
            self._outbox.put(NotificationRequest(routine, item.snapshot))

    async def _update_liveness(self, item: LivenessUpdate) -> None:
        try:
            await self._history.update_liveness_status(
                item.device_id, item.status
            )
        except TransientPersistenceError as e:
            logger.warning(
                "Liveness update for %s failed: %s", item.device_id, e
            )

    async def handle(self, item: OutboxItem) -> None:
        """Process a single outbox item."""
        match item:
            case PersistRequest():
                await self._persist(item)
            case LivenessUpdate():
                await self._update_liveness(item)
            case NotificationRequest():
                await self._notifier.notify(item)

    async def _handle_safely(self, item: OutboxItem) -> None:
        try:
            await self.handle(item)
        except Exception:
            logger.exception("Failed to process %s", type(item).__name__)

    async def drain(self) -> int:
        """Process items until the outbox is empty.

        Returns:
            Number of items processed.
        """
        count = 0
        while (item := self._outbox.get_nowait()) is not None:
            await self._handle_safely(item)
            self._outbox.task_done()
            count += 1
        return count

    async def run(self) -> None:
        """Process items forever, in order."""
        logger.info("Dispatcher started")
        while True:
            item = await self._outbox.get()
            try:
                await self._handle_safely(item)
            finally:
                self._outbox.task_done()

    def start(self) -> None:
        """Start the background worker task."""
        if self._task is None:
            self._task = asyncio.create_task(self.run())

    async def stop(self) -> None:
        """Flush pending work and stop the worker task."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        await self.drain()
        logger.info("Dispatcher stopped")
