"""Subscriber directory: Telegram chats assigned to floors."""

from __future__ import annotations

import aiosqlite

from restroom.lib.db.connection import get_db, load_template
from restroom.lib.exceptions import DatabaseError
from restroom.lib.notifications import Subscriber
from restroom.logging import get_logger

_logger = get_logger("lib.db.subscribers")


class SqliteSubscriberDirectory:
    """Reads subscriber assignments from the SQLite database."""

    async def list_subscribers(self) -> list[Subscriber]:
        """Return all subscribers.

        Raises:
            DatabaseError: If the directory could not be read.
        """
        try:
            async with get_db() as db:
                rows = await db.fetchall(
                    "SELECT chat_id, floor FROM subscriber ORDER BY chat_id"
                )
        except (aiosqlite.Error, OSError) as e:
            raise DatabaseError(f"Failed to list subscribers: {e}") from e
        return [Subscriber(id=row["chat_id"], floor=row["floor"]) for row in rows]


async def add_subscriber(chat_id: str, floor: int) -> None:
    """Assign a chat to a floor, replacing any previous assignment."""
    async with get_db() as db:
        await db.execute(
            load_template("upsert_subscriber.sql"),
            {"chat_id": chat_id, "floor": floor},
        )
    _logger.info("Subscriber %s assigned to floor %d", chat_id, floor)


async def remove_subscriber(chat_id: str) -> bool:
    """Remove a subscriber. Returns True if it existed."""
    async with get_db() as db:
        count = await db.execute(
            "DELETE FROM subscriber WHERE chat_id = ?", (chat_id,)
        )
    return count > 0
