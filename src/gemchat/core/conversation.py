"""In-memory message list for the active session."""

from __future__ import annotations

from typing import Callable

from gemchat.core.models import Message

MessageListener = Callable[[list[Message]], None]


class ConversationStore:
    """Ordered messages of the currently selected session.

    All mutation goes through :meth:`update`, which applies a function to the
    latest list, so overlapping sends never drop each other's messages.
    Listeners receive a copy of the new list after each change.
    """

    def __init__(self) -> None:
        self._messages: list[Message] = []
        self._listeners: list[MessageListener] = []

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def subscribe(self, listener: MessageListener) -> None:
        self._listeners.append(listener)

    def update(self, fn: Callable[[list[Message]], list[Message]]) -> None:
        self._messages = list(fn(list(self._messages)))
        self._notify()

    def append(self, message: Message) -> None:
        self.update(lambda current: [*current, message])

    def replace_message(self, message_id: str, fn: Callable[[Message], Message]) -> None:
        """Swap the message with ``message_id`` for ``fn(message)``; no-op if absent."""
        if self.find(message_id) is None:
            return
        self.update(lambda current: [fn(m) if m.id == message_id else m for m in current])

    def load(self, messages: list[Message]) -> None:
        """Replace the whole view without notifying listeners (session switch)."""
        self._messages = list(messages)

    def find(self, message_id: str) -> Message | None:
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def _notify(self) -> None:
        snapshot = list(self._messages)
        for listener in self._listeners:
            listener(snapshot)
