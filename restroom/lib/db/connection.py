"""SQLite access for history, liveness, subscribers and config overrides.

The web server and the notification service call init_db() at startup and
share one long-lived connection for their whole lifetime. Anything that
skips init_db() (the subscriber CLI, tests) is served from a small pool
instead. get_db() hides the difference:

    async with get_db() as db:
        await db.execute(load_template("upsert_subscriber.sql"), params)

Statements auto-commit unless they run inside db.transaction().
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from functools import cache
from pathlib import Path
from typing import Any, cast

import aiosqlite

from restroom.lib.config import get_settings
from restroom.lib.db.types import SQLParams
from restroom.lib.exceptions import DatabaseNotConnectedError
from restroom.logging import get_logger

_logger = get_logger("lib.db")

_SQL_DIR = Path(__file__).resolve().parent.parent / "sql"

# Applied in order by create_schema()
SCHEMA_TEMPLATES = (
    "init_device_history_table.sql",
    "idx_device_history.sql",
    "init_device_status_table.sql",
    "init_subscriber_table.sql",
    "init_settings_table.sql",
)

type Row = dict[str, Any]


@cache
def load_template(name: str) -> str:
    """Read a SQL template from the sql/ directory (cached).

    Raises:
        FileNotFoundError: If no template has that name.
    """
    path = _SQL_DIR / name
    if not path.exists():
        raise FileNotFoundError(f"SQL template not found: {path}")
    return path.read_text()


def _row_to_dict(cursor: aiosqlite.Cursor, row: tuple[Any, ...]) -> Row:
    columns = [col[0] for col in cursor.description or ()]
    return dict(zip(columns, row, strict=True))


class Database:
    """A single aiosqlite connection with dict rows."""

    def __init__(self, db_path: str | None = None):
        self._db_path = db_path or get_settings().db_path
        self._connection: aiosqlite.Connection | None = None
        self._in_transaction = False

    @property
    def is_connected(self) -> bool:
        return self._connection is not None

    def _conn(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise DatabaseNotConnectedError()
        return self._connection

    async def connect(self) -> None:
        if self._connection is not None:
            return
        self._connection = await aiosqlite.connect(
            self._db_path, timeout=get_settings().db_timeout_sec
        )
        self._connection.row_factory = _row_to_dict  # type: ignore[assignment]

    async def close(self) -> None:
        if self._connection is not None:
            await self._connection.close()
            self._connection = None

    async def __aenter__(self) -> Database:
        await self.connect()
        return self

    async def __aexit__(self, *_: object) -> None:
        await self.close()

    async def _autocommit(self) -> None:
        if not self._in_transaction:
            await self._conn().commit()

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        """Group statements; commit on success, roll back on any error."""
        conn = self._conn()
        await conn.execute("BEGIN")
        self._in_transaction = True
        try:
            yield
        except BaseException:
            await conn.rollback()
            raise
        else:
            await conn.commit()
        finally:
            self._in_transaction = False

    async def execute(self, sql: str, params: SQLParams = ()) -> int:
        """Run one statement.

        Returns:
            Number of rows the statement changed.
        """
        cursor = await self._conn().execute(sql, params)
        await self._autocommit()
        return cursor.rowcount

    async def executemany(
        self, sql: str, params_seq: Sequence[SQLParams]
    ) -> None:
        await self._conn().executemany(sql, params_seq)
        await self._autocommit()

    async def executescript(self, sql: str) -> None:
        await self._conn().executescript(sql)

    async def fetchone(self, sql: str, params: SQLParams = ()) -> Row | None:
        async with self._conn().execute(sql, params) as cursor:
            return cast(Row | None, await cursor.fetchone())

    async def fetchall(self, sql: str, params: SQLParams = ()) -> list[Row]:
        async with self._conn().execute(sql, params) as cursor:
            return cast(list[Row], await cursor.fetchall())


class ConnectionPool:
    """Reusable connections, at most max_size in use at once.

    The semaphore is created lazily because it must belong to the running
    event loop.
    """

    def __init__(self, max_size: int = 5) -> None:
        self._max_size = max_size
        self._connections: list[Database] = []
        self._semaphore: asyncio.Semaphore | None = None

    def _get_semaphore(self) -> asyncio.Semaphore:
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_size)
        return self._semaphore

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[Database]:
        async with self._get_semaphore():
            conn = self._connections.pop() if self._connections else Database()
            try:
                if not conn.is_connected:
                    await conn.connect()
                yield conn
            except Exception:
                # Reconnect on next use rather than reuse a broken handle
                await conn.close()
                raise
            finally:
                self._connections.append(conn)

    async def close(self) -> None:
        """Close idle connections. The pool stays usable afterwards."""
        connections, self._connections = self._connections, []
        for conn in connections:
            await conn.close()
        self._semaphore = None
        if connections:
            _logger.info("Closed %d pooled connections", len(connections))


_persistent: Database | None = None
_pool = ConnectionPool()


@asynccontextmanager
async def get_db() -> AsyncIterator[Database]:
    """Yield the persistent connection if open, else a pooled one."""
    if _persistent is not None:
        yield _persistent
        return
    async with _pool.acquire() as db:
        yield db


async def create_schema(db: Database) -> None:
    """Create tables and indexes that don't exist yet."""
    for name in SCHEMA_TEMPLATES:
        await db.executescript(load_template(name))


async def init_db() -> None:
    """Open the persistent connection and make sure the schema exists.

    The server lifespan and the notification service call this once.
    """
    global _persistent
    if _persistent is None:
        _persistent = Database()
        await _persistent.connect()
        _logger.info("Opened database %s", get_settings().db_path)

    # WAL lets the notification service read while the server writes
    await _persistent.executescript("PRAGMA journal_mode=WAL;")
    await create_schema(_persistent)


async def close_db() -> None:
    """Close the persistent connection and any pooled connections."""
    global _persistent
    if _persistent is not None:
        await _persistent.close()
        _persistent = None
        _logger.info("Closed database connection")
    await _pool.close()
