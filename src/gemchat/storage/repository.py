"""SQLite-backed persistence for user settings and chat sessions."""

from __future__ import annotations

import json
from contextlib import contextmanager
from datetime import date
from typing import Iterator

import aiosqlite

from gemchat.core.models import ChatSession, Message, UserSettings, now_ms
from gemchat.core.types import ModelId, Tier
from gemchat.log import get_logger
from gemchat.storage.base import PersistenceError, PersistenceService
from gemchat.storage.database import Database, DatabaseNotInitialized

logger = get_logger(__name__)


@contextmanager
def _wrap_errors(operation: str) -> Iterator[None]:
    try:
        yield
    except (aiosqlite.Error, DatabaseNotInitialized, ValueError) as e:
        raise PersistenceError(operation, e) from e


class SqlitePersistence(PersistenceService):
    """Stores settings rows and whole sessions (messages as a JSON array)."""

    def __init__(self, db: Database):
        self._db = db

    async def load_settings(self, user_id: str) -> UserSettings | None:
        with _wrap_errors("load_settings"):
            cursor = await self._db.conn.execute(
                "SELECT * FROM user_settings WHERE user_id = ?", (user_id,)
            )
            row = await cursor.fetchone()
            if row is None:
                return None
            return self._row_to_settings(row)

    async def upsert_settings(self, user_id: str, settings: UserSettings) -> None:
        with _wrap_errors("upsert_settings"):
            await self._db.conn.execute(
                """INSERT INTO user_settings
                   (user_id, tier, current_model, theme, accent_color, daily_image_count,
                    daily_token_usage, usage_day, system_instruction, custom_starters,
                    response_style, updated_at)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                   ON CONFLICT(user_id) DO UPDATE SET
                     tier = excluded.tier,
                     current_model = excluded.current_model,
                     theme = excluded.theme,
                     accent_color = excluded.accent_color,
                     daily_image_count = excluded.daily_image_count,
                     daily_token_usage = excluded.daily_token_usage,
                     usage_day = excluded.usage_day,
                     system_instruction = excluded.system_instruction,
                     custom_starters = excluded.custom_starters,
                     response_style = excluded.response_style,
                     updated_at = excluded.updated_at""",
                (
                    user_id,
                    settings.tier.value,
                    settings.current_model.value,
                    settings.theme,
                    settings.accent_color,
                    settings.daily_image_count,
                    settings.daily_token_usage,
                    settings.usage_day.isoformat() if settings.usage_day else None,
                    settings.system_instruction,
                    json.dumps(settings.custom_starters),
                    settings.response_style,
                    now_ms(),
                ),
            )
            await self._db.conn.commit()

    async def list_sessions(self, user_id: str) -> list[ChatSession]:
        with _wrap_errors("list_sessions"):
            cursor = await self._db.conn.execute(
                "SELECT * FROM chat_sessions WHERE user_id = ? ORDER BY updated_at DESC",
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [self._row_to_session(row) for row in rows]

    async def upsert_session(self, user_id: str, session: ChatSession) -> None:
        messages_json = json.dumps([m.to_dict() for m in session.messages])
        with _wrap_errors("upsert_session"):
            await self._db.conn.execute(
                """INSERT INTO chat_sessions (id, user_id, title, messages, updated_at)
                   VALUES (?, ?, ?, ?, ?)
                   ON CONFLICT(id) DO UPDATE SET
                     title = excluded.title,
                     messages = excluded.messages,
                     updated_at = excluded.updated_at""",
                (session.id, user_id, session.title, messages_json, session.updated_at),
            )
            await self._db.conn.commit()
        logger.debug("session_saved", session_id=session.id, message_count=len(session.messages))

    async def delete_session(self, session_id: str) -> None:
        with _wrap_errors("delete_session"):
            await self._db.conn.execute("DELETE FROM chat_sessions WHERE id = ?", (session_id,))
            await self._db.conn.commit()

    async def update_session_title(self, session_id: str, title: str) -> None:
        with _wrap_errors("update_session_title"):
            await self._db.conn.execute(
                "UPDATE chat_sessions SET title = ? WHERE id = ?", (title, session_id)
            )
            await self._db.conn.commit()

    @staticmethod
    def _row_to_settings(row) -> UserSettings:
        usage_day = row["usage_day"]
        return UserSettings(
            tier=Tier(row["tier"]),
            current_model=ModelId(row["current_model"]),
            theme=row["theme"],
            accent_color=row["accent_color"],
            daily_image_count=row["daily_image_count"],
            daily_token_usage=row["daily_token_usage"],
            usage_day=date.fromisoformat(usage_day) if usage_day else None,
            system_instruction=row["system_instruction"],
            custom_starters=json.loads(row["custom_starters"]),
            response_style=row["response_style"],
        )

    @staticmethod
    def _row_to_session(row) -> ChatSession:
        return ChatSession(
            id=row["id"],
            title=row["title"],
            messages=[Message.from_dict(m) for m in json.loads(row["messages"])],
            updated_at=row["updated_at"],
        )
