"""Shared pytest fixtures for the test suite."""

import json
import logging
from pathlib import Path

import pytest

from restroom.lib.alerts import AlertEvent
from restroom.lib.config import (
    ConfigStore,
    EngineConfig,
    EventKind,
    LivenessStatus,
    Settings,
)
from restroom.lib.config.testing import set_settings
from restroom.lib.engine import TelemetryEngine
from restroom.lib.exceptions import (
    NotificationDeliveryError,
    TransientPersistenceError,
)
from restroom.lib.notifications import AbstractTransport, Subscriber
from restroom.lib.outbox import Outbox
from restroom.lib.snapshots import DeviceSnapshot

SQL_DIR = Path(__file__).parent.parent / "restroom" / "lib" / "sql"


class FakeClock:
    """Manually advanced clock in epoch milliseconds."""

    def __init__(self, now: int = 0) -> None:
        self.now = now

    def now_ms(self) -> int:
        return self.now

    def set(self, now: int) -> None:
        self.now = now

    def advance(self, ms: int) -> None:
        self.now += ms


class RecordingHistoryStore:
    """History store that records calls and can be told to fail."""

    def __init__(self) -> None:
        self.appended: list[DeviceSnapshot] = []
        self.liveness: list[tuple[str, LivenessStatus]] = []
        self.fail_appends = False
        self.fail_liveness = False

    async def append_history(self, snapshot: DeviceSnapshot) -> None:
        if self.fail_appends:
            raise TransientPersistenceError("disk full")
        self.appended.append(snapshot)

    async def update_liveness_status(
        self, device_id: str, status: LivenessStatus
    ) -> None:
        if self.fail_liveness:
            raise TransientPersistenceError("database is locked")
        self.liveness.append((device_id, status))


class RecordingTransport(AbstractTransport):
    """Transport that records messages; chosen subscribers fail."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.sent: list[tuple[str, str]] = []
        self.failing = failing or set()

    async def send(self, subscriber_id: str, text: str) -> None:
        if subscriber_id in self.failing:
            raise NotificationDeliveryError("chat not found")
        self.sent.append((subscriber_id, text))


class StaticDirectory:
    """Subscriber directory over a fixed list."""

    def __init__(self, subscribers: list[Subscriber] | None = None) -> None:
        self.subscribers = subscribers or []
        self.calls = 0

    async def list_subscribers(self) -> list[Subscriber]:
        self.calls += 1
        return list(self.subscribers)


def soap_payload(empty: bool = False, slot: str = "sabun1") -> dict:
    """Soap payload with one slot optionally reading empty."""
    slots = {
        name: {"distance": 3.5, "status": "Ada"}
        for name in ("sabun1", "sabun2", "sabun3")
    }
    if empty:
        slots[slot] = {"distance": 14.2, "status": "Habis"}
    return slots


def tissue_payload(empty: bool = False, slot: str = "tisu1") -> dict:
    """Tissue payload with one slot optionally reading empty."""
    slots = {name: {"status": "Tersedia", "value": 1} for name in ("tisu1", "tisu2")}
    if empty:
        slots[slot] = {"status": "Habis", "value": 0}
    return slots


def make_raw(
    device_id: str = "toilet-lantai-2",
    soap_empty: bool = False,
    tissue_empty: bool = False,
) -> dict:
    """Raw station reading as posted by the firmware."""
    return {
        "deviceID": device_id,
        "amonia": {"ppm": 1.12, "score": 0.72, "status": "Bagus"},
        "air": {"status": "Aman"},
        "sabun": soap_payload(soap_empty),
        "tisu": tissue_payload(tissue_empty),
    }


def make_event(
    kind: EventKind = EventKind.NEW,
    device_id: str = "toilet-lantai-2",
    conditions=(),
    occurred_at: int = 0,
) -> AlertEvent:
    return AlertEvent(kind, device_id, tuple(conditions), occurred_at)


def drain_outbox(outbox: Outbox) -> list:
    items = []
    while (item := outbox.get_nowait()) is not None:
        items.append(item)
    return items


@pytest.fixture(autouse=True)
def configure_caplog(caplog):
    """Ensure caplog captures logs from the restroom namespace."""
    caplog.set_level(logging.INFO, logger="restroom")


@pytest.fixture(autouse=True)
def test_db(tmp_path):
    """Use a temporary SQLite database for tests.

    This creates a fresh database with the full schema for each test,
    providing isolation while allowing real database operations.
    """
    import sqlite3

    db_file = tmp_path / "test.sqlite3"

    set_settings(Settings(db_path=str(db_file)))

    conn = sqlite3.connect(str(db_file))
    for name in (
        "init_device_history_table.sql",
        "idx_device_history.sql",
        "init_device_status_table.sql",
        "init_subscriber_table.sql",
        "init_settings_table.sql",
    ):
        conn.executescript((SQL_DIR / name).read_text())
    conn.close()

    yield db_file

    set_settings(None)


@pytest.fixture
async def close_pool():
    """Close pooled connections opened by a test."""
    from restroom.lib.db import close_db

    yield
    await close_db()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def config_store():
    return ConfigStore(EngineConfig())


@pytest.fixture
def outbox():
    return Outbox()


@pytest.fixture
def engine(config_store, outbox, clock):
    return TelemetryEngine(config_store, outbox, clock)


@pytest.fixture
def history():
    return RecordingHistoryStore()


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def raw_json():
    """Serialize a payload the way the normalizer does."""

    def _dump(value) -> str:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False)

    return _dump
