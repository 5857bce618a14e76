"""Convert chat history to the generation provider's content format."""

from __future__ import annotations

from typing import Any

from gemchat.core.models import Message
from gemchat.core.types import Role


def build_contents(history: list[Message]) -> list[dict[str, Any]]:
    """Convert messages into provider turns with a single text part each.

    Messages with no text (an unanswered placeholder, for example) are
    skipped because the provider rejects empty parts.
    """
    contents: list[dict[str, Any]] = []
    for message in history:
        if not message.text:
            continue
        role = "user" if message.role == Role.USER else "model"
        contents.append({"role": role, "parts": [{"text": message.text}]})
    return contents
