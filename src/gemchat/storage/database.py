"""SQLite database connection manager with schema migration."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from gemchat.log import get_logger

logger = get_logger(__name__)


class DatabaseNotInitialized(RuntimeError):
    """Raised when the connection is used before initialize() or after close()."""


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS user_settings (
    user_id             TEXT    PRIMARY KEY,
    tier                TEXT    NOT NULL DEFAULT 'FREE',
    current_model       TEXT    NOT NULL DEFAULT 'gemini-2.0-flash-lite',
    theme               TEXT    NOT NULL DEFAULT 'dark',
    accent_color        TEXT    NOT NULL DEFAULT '#007AFF',
    daily_image_count   INTEGER NOT NULL DEFAULT 0,
    daily_token_usage   INTEGER NOT NULL DEFAULT 0,
    usage_day           TEXT,
    system_instruction  TEXT,
    custom_starters     TEXT    NOT NULL DEFAULT '[]',
    response_style      TEXT    NOT NULL DEFAULT 'balanced',
    updated_at          INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS chat_sessions (
    id          TEXT    PRIMARY KEY,
    user_id     TEXT    NOT NULL,
    title       TEXT    NOT NULL,
    messages    TEXT    NOT NULL DEFAULT '[]',
    updated_at  INTEGER NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_sessions_user
    ON chat_sessions(user_id, updated_at DESC);
"""


class Database:
    """Async SQLite database manager."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection and run migrations."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        logger.info("database_initialized", path=self._db_path)

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise DatabaseNotInitialized("Database not initialized. Call initialize() first.")
        return self._conn

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("database_closed")
