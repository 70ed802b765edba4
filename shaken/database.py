"""Process-wide access to the user directory connection.

There is one SQLite connection per process, opened on first use. It is
shared across threads; SQLite serializes access itself, so no locking
is done here.
"""

import sqlite3
from pathlib import Path
from typing import Optional, Union

import structlog

from .user import UserStore

logger = structlog.get_logger("shaken.store")

MEMORY_DB = ":memory:"

_connection: Optional[sqlite3.Connection] = None
_path: str = MEMORY_DB


def configure(path: Union[str, Path]) -> None:
    """Set the database path used by the next ``get_connection``.

    An already open connection is closed so the new path takes effect.
    """
    global _path
    new_path = str(path)
    if new_path != _path:
        close_connection()
    _path = new_path


def get_connection() -> sqlite3.Connection:
    """Get or open the global connection, creating the Users table."""
    global _connection
    if _connection is None:
        if _path != MEMORY_DB:
            Path(_path).expanduser().parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(_path, check_same_thread=False)
        conn.execute("PRAGMA busy_timeout=5000")
        UserStore.init_table(conn)
        _connection = conn
        logger.info("database_initialized", path=_path)
    return _connection


def close_connection() -> None:
    global _connection
    if _connection is not None:
        _connection.close()
        _connection = None
        logger.debug("database_closed", path=_path)
