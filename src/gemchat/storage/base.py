"""Persistence service interface for settings and chat sessions."""

from __future__ import annotations

from abc import ABC, abstractmethod

from gemchat.core.models import ChatSession, UserSettings


class PersistenceError(Exception):
    """A storage operation failed."""

    def __init__(self, operation: str, cause: BaseException | None = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause is not None else ""
        super().__init__(f"{operation} failed{detail}")


class PersistenceService(ABC):
    """Durable store keyed by opaque user id.

    Implement this to back the client with another storage service. Guest
    users never reach it.
    """

    @abstractmethod
    async def load_settings(self, user_id: str) -> UserSettings | None:
        """Return stored settings, or None for a user with no row yet."""
        ...

    @abstractmethod
    async def upsert_settings(self, user_id: str, settings: UserSettings) -> None:
        ...

    @abstractmethod
    async def list_sessions(self, user_id: str) -> list[ChatSession]:
        """Sessions of ``user_id``, most recently updated first."""
        ...

    @abstractmethod
    async def upsert_session(self, user_id: str, session: ChatSession) -> None:
        ...

    @abstractmethod
    async def delete_session(self, session_id: str) -> None:
        ...

    @abstractmethod
    async def update_session_title(self, session_id: str, title: str) -> None:
        ...
