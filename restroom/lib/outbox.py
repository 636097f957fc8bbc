"""Outbound work queue between the telemetry engine and its collaborators.

The engine only appends; the dispatcher drains. Appending never blocks, so
ingest latency does not depend on the database or on Telegram.
"""

import asyncio
import threading
from dataclasses import dataclass

from restroom.lib.alerts import AlertEvent
from restroom.lib.config import LivenessStatus
from restroom.lib.snapshots import DeviceSnapshot


@dataclass(frozen=True, slots=True)
class NotificationRequest:
    event: AlertEvent
    snapshot: DeviceSnapshot


@dataclass(frozen=True, slots=True)
class PersistRequest:
    snapshot: DeviceSnapshot
    requested_at: int  # epoch ms, becomes last_persisted_at on success


@dataclass(frozen=True, slots=True)
class LivenessUpdate:
    device_id: str
    status: LivenessStatus


type OutboxItem = NotificationRequest | PersistRequest | LivenessUpdate


class Outbox:
    """Unbounded FIFO of outbound work.

    put() may be called from any thread. Once a consumer has awaited get(),
    puts from other threads are handed to the consumer's event loop with
    call_soon_threadsafe so a waiting get() is woken on its own loop.
    """

    def __init__(self) -> None:
        self._queue: asyncio.Queue[OutboxItem] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.Lock()

    def _on_loop_thread(self, loop: asyncio.AbstractEventLoop) -> bool:
        try:
            return asyncio.get_running_loop() is loop
        except RuntimeError:
            return False

    def put(self, item: OutboxItem) -> None:
        loop = self._loop
        if (
            loop is not None
            and not loop.is_closed()
            and not self._on_loop_thread(loop)
        ):
            loop.call_soon_threadsafe(self._queue.put_nowait, item)
            return
        with self._lock:
            self._queue.put_nowait(item)

    async def get(self) -> OutboxItem:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return await self._queue.get()

    def get_nowait(self) -> OutboxItem | None:
        try:
            return self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None

    def task_done(self) -> None:
        self._queue.task_done()

    def empty(self) -> bool:
        return self._queue.empty()

    def __len__(self) -> int:
        return self._queue.qsize()
