"""Session manager: owns chat sessions and keeps them in sync with storage."""

from __future__ import annotations

import dataclasses

from gemchat.core.conversation import ConversationStore
from gemchat.core.models import DEFAULT_TITLE, ChatSession, Message, User, derive_title, now_ms
from gemchat.core.tasks import BackgroundTasks
from gemchat.core.types import Role
from gemchat.log import get_logger
from gemchat.storage.base import PersistenceError, PersistenceService

logger = get_logger(__name__)


class SessionManager:
    """Creates, selects, renames and deletes sessions for the signed-in user.

    Local state is authoritative. Remote writes are detached tasks whose
    failures are only logged; guests never touch the persistence service.
    """

    def __init__(
        self,
        store: ConversationStore,
        persistence: PersistenceService | None,
        tasks: BackgroundTasks,
    ):
        self._store = store
        self._persistence = persistence
        self._tasks = tasks
        self._user: User | None = None
        self._sessions: list[ChatSession] = []
        self._current_id: str | None = None
        store.subscribe(self.sync_current_session)

    @property
    def user(self) -> User | None:
        return self._user

    @property
    def current_id(self) -> str | None:
        return self._current_id

    @property
    def current(self) -> ChatSession | None:
        return self._find(self._current_id) if self._current_id else None

    @property
    def sessions(self) -> list[ChatSession]:
        return list(self._sessions)

    def visible_sessions(self) -> list[ChatSession]:
        """Sessions to list in a sidebar; guests get none."""
        if self._user is None or self._user.is_guest:
            return []
        return list(self._sessions)

    @property
    def _is_remote(self) -> bool:
        return self._persistence is not None and self._user is not None and not self._user.is_guest

    async def load(self, user: User) -> None:
        """Switch to ``user`` and fetch their sessions, newest first."""
        self._user = user
        self._sessions = []
        self._current_id = None
        self._store.load([])
        if not self._is_remote:
            logger.info("sessions_memory_only", user_id=user.id)
            return
        try:
            self._sessions = await self._persistence.list_sessions(user.id)
        except PersistenceError as e:
            logger.error("sessions_load_failed", user_id=user.id, error=str(e))
            return
        logger.info("sessions_loaded", user_id=user.id, count=len(self._sessions))

    def reset(self) -> None:
        self._user = None
        self._sessions = []
        self._current_id = None
        self._store.load([])

    def create_session(self) -> ChatSession:
        session = ChatSession()
        self._sessions.insert(0, session)
        self._current_id = session.id
        self._store.load([])
        logger.info("session_created", session_id=session.id)
        self._save(session)
        return session

    def select_session(self, session_id: str) -> bool:
        session = self._find(session_id)
        if session is None:
            logger.debug("session_select_unknown", session_id=session_id)
            return False
        self._current_id = session_id
        self._store.load(session.messages)
        return True

    def rename_session(self, session_id: str, title: str) -> bool:
        session = self._find(session_id)
        if session is None:
            return False
        session.title = title
        if self._is_remote:
            self._tasks.spawn(
                self._persistence.update_session_title(session_id, title),
                "update_session_title",
                session_id=session_id,
            )
        return True

    def delete_session(self, session_id: str) -> bool:
        """Remove a session; if it was current, fall back to the newest or a fresh one."""
        session = self._find(session_id)
        if session is None:
            return False
        self._sessions.remove(session)
        if self._is_remote:
            self._tasks.spawn(
                self._persistence.delete_session(session_id),
                "delete_session",
                session_id=session_id,
            )
        logger.info("session_deleted", session_id=session_id)

        if self._current_id == session_id:
            if self._sessions:
                self.select_session(self._sessions[0].id)
            else:
                self.create_session()
        return True

    def sync_current_session(self, messages: list[Message]) -> None:
        """Copy the store's messages into the current session and persist it."""
        session = self.current
        if session is None:
            return
        session.messages = list(messages)
        if session.title == DEFAULT_TITLE:
            first_user = next((m for m in messages if m.role == Role.USER), None)
            if first_user is not None:
                session.title = derive_title(first_user.text)
        session.updated_at = now_ms()
        self._save(session)

    def _save(self, session: ChatSession) -> None:
        if not self._is_remote:
            return
        snapshot = dataclasses.replace(session, messages=list(session.messages))
        self._tasks.spawn(
            self._persistence.upsert_session(self._user.id, snapshot),
            "upsert_session",
            session_id=session.id,
        )

    def _find(self, session_id: str) -> ChatSession | None:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None
