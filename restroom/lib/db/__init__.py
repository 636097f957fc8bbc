"""Async database operations for the restroom monitor.

This package provides async database operations using aiosqlite for non-blocking
database access throughout the application.

See connection.py for details on connection patterns (persistent vs pooled).
"""

from restroom.lib.db.connection import ConnectionPool as ConnectionPool
from restroom.lib.db.connection import Database as Database
from restroom.lib.db.connection import close_db as close_db
from restroom.lib.db.connection import create_schema as create_schema
from restroom.lib.db.connection import get_db as get_db
from restroom.lib.db.connection import init_db as init_db
from restroom.lib.db.history import SqliteHistoryStore as SqliteHistoryStore
from restroom.lib.db.settings import get_all_settings as get_all_settings
from restroom.lib.db.settings import config_to_settings as config_to_settings
from restroom.lib.db.settings import set_settings_batch as set_settings_batch
from restroom.lib.db.settings import (
    settings_to_config_update as settings_to_config_update,
)
from restroom.lib.db.subscribers import (
    SqliteSubscriberDirectory as SqliteSubscriberDirectory,
)
from restroom.lib.db.subscribers import add_subscriber as add_subscriber
from restroom.lib.db.subscribers import remove_subscriber as remove_subscriber
from restroom.lib.db.types import SQLParams as SQLParams
