"""User directory backed by SQLite.

Users are keyed by their numeric Twitch id. Creation is insert-or-ignore,
so the first write for an id wins. Store failures never reach callers:
they are logged, lookups then return None and inserts are dropped.
"""

import sqlite3
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict

from .color import RGB
from .exceptions import DatabaseError

logger = structlog.get_logger("shaken.store")

USER_TABLE = """
CREATE TABLE IF NOT EXISTS Users (
    ID INTEGER PRIMARY KEY NOT NULL UNIQUE, -- twitch user id
    Display TEXT NOT NULL,                  -- twitch display name
    Color TEXT                              -- #rrggbb
)
"""


class User(BaseModel):
    """A chat user as known to the directory."""

    model_config = ConfigDict(frozen=True)

    userid: int
    display: str
    color: RGB = RGB()


class UserStore:
    """Queries against the Users table. All methods take the connection."""

    @staticmethod
    def init_table(conn: sqlite3.Connection) -> None:
        try:
            conn.execute(USER_TABLE)
            conn.commit()
        except sqlite3.Error as e:
            raise DatabaseError(
                f"cannot create Users table: {e}",
                operation="create",
                table="Users",
            ) from e

    @staticmethod
    def get_user_by_id(conn: sqlite3.Connection, userid: int) -> Optional[User]:
        logger.debug("get_user_by_id", userid=userid)
        return UserStore._get_user(
            conn,
            "SELECT ID, Display, Color FROM Users WHERE ID = ? LIMIT 1",
            userid,
        )

    @staticmethod
    def get_user_by_name(conn: sqlite3.Connection, name: str) -> Optional[User]:
        logger.debug("get_user_by_name", name=name)
        return UserStore._get_user(
            conn,
            "SELECT ID, Display, Color FROM Users "
            "WHERE Display = ? COLLATE NOCASE LIMIT 1",
            name,
        )

    @staticmethod
    def _get_user(conn: sqlite3.Connection, sql: str, key: Any) -> Optional[User]:
        try:
            row = conn.execute(sql, (key,)).fetchone()
        except sqlite3.Error as e:
            logger.error("user_query_failed", key=key, error=str(e))
            return None
        if row is None:
            return None
        try:
            color = RGB.from_hex(row[2]) if row[2] else RGB()
        except ValueError as e:
            logger.error("user_color_invalid", key=key, error=str(e))
            color = RGB()
        return User(userid=row[0], display=row[1], color=color)

    @staticmethod
    def create_user(conn: sqlite3.Connection, user: User) -> None:
        """Insert a user unless one with the same id already exists."""
        try:
            cursor = conn.execute(
                "INSERT OR IGNORE INTO Users (ID, Display, Color) VALUES (?, ?, ?)",
                (user.userid, user.display, user.color.to_hex()),
            )
            conn.commit()
        except sqlite3.Error as e:
            logger.error("user_insert_failed", userid=user.userid, error=str(e))
            return
        logger.debug(
            "user_added",
            userid=user.userid,
            display=user.display,
            inserted=cursor.rowcount > 0,
        )
