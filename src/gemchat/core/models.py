"""Data models for chat messages, sessions, users and settings."""

from __future__ import annotations

import itertools
import time
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from gemchat.core.types import Feedback, ModelId, Role, Tier

GUEST_USER_ID = "guest"
DEFAULT_TITLE = "New Chat"
TITLE_MAX_LENGTH = 40

_SEQUENCE = itertools.count(1)


def now_ms() -> int:
    """Current wall-clock time as epoch milliseconds."""
    return time.time_ns() // 1_000_000


def new_message_id() -> str:
    # Millisecond prefix keeps ids roughly ordered; the counter makes them unique
    return f"{now_ms()}-{next(_SEQUENCE)}"


def new_session_id() -> str:
    return uuid.uuid4().hex[:12]


def derive_title(text: str) -> str:
    """Session title from a message: first 40 characters, ``...`` if cut."""
    if len(text) > TITLE_MAX_LENGTH:
        return text[:TITLE_MAX_LENGTH] + "..."
    return text


@dataclass(frozen=True, slots=True)
class Message:
    """A single chat message.

    Instances are immutable; streaming updates produce a new message with the
    same id via :meth:`with_text`.
    """

    role: Role
    text: str
    id: str = field(default_factory=new_message_id)
    timestamp: int = field(default_factory=now_ms)
    is_thinking: bool = False
    feedback: Optional[Feedback] = None

    def with_text(self, text: str) -> Message:
        return Message(
            role=self.role,
            text=text,
            id=self.id,
            timestamp=self.timestamp,
            is_thinking=False,
            feedback=self.feedback,
        )

    def with_feedback(self, feedback: Feedback | None) -> Message:
        return Message(
            role=self.role,
            text=self.text,
            id=self.id,
            timestamp=self.timestamp,
            is_thinking=self.is_thinking,
            feedback=feedback,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "role": self.role.value,
            "text": self.text,
            "timestamp": self.timestamp,
        }
        if self.is_thinking:
            data["isThinking"] = True
        if self.feedback is not None:
            data["feedback"] = self.feedback.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        feedback = data.get("feedback")
        return cls(
            id=str(data["id"]),
            role=Role(data["role"]),
            text=data.get("text", ""),
            timestamp=int(data.get("timestamp", 0)),
            is_thinking=bool(data.get("isThinking", False)),
            feedback=Feedback(feedback) if feedback else None,
        )


@dataclass
class ChatSession:
    id: str = field(default_factory=new_session_id)
    title: str = DEFAULT_TITLE
    messages: list[Message] = field(default_factory=list)
    updated_at: int = field(default_factory=now_ms)


@dataclass(frozen=True, slots=True)
class User:
    id: str
    name: str
    email: str = ""
    avatar: str = ""

    @property
    def is_guest(self) -> bool:
        return self.id == GUEST_USER_ID


GUEST_USER = User(id=GUEST_USER_ID, name="Guest User", email="guest@example.com")


@dataclass
class UserSettings:
    """Per-user preferences and daily usage counters."""

    tier: Tier = Tier.FREE
    current_model: ModelId = ModelId.FLASH
    theme: str = "dark"
    accent_color: str = "#007AFF"
    daily_image_count: int = 0
    daily_image_limit: int = 5
    daily_token_usage: int = 0
    daily_token_limit: int = 2000
    system_instruction: Optional[str] = None
    custom_starters: list[str] = field(default_factory=list)
    response_style: str = "balanced"
    usage_day: Optional[date] = None  # UTC day the counters belong to


@dataclass(frozen=True, slots=True)
class ModelConfig:
    id: ModelId
    name: str
    description: str
    tiers: tuple[Tier, ...]


MODELS: tuple[ModelConfig, ...] = (
    ModelConfig(
        id=ModelId.FLASH,
        name="Gemini Flash",
        description="Fast responses, efficient",
        tiers=(Tier.FREE, Tier.PRO, Tier.ULTRA),
    ),
    ModelConfig(
        id=ModelId.PRO,
        name="Gemini Pro",
        description="Advanced reasoning & logic",
        tiers=(Tier.PRO, Tier.ULTRA),
    ),
)


def get_model(model_id: ModelId | str) -> ModelConfig | None:
    for model in MODELS:
        if model.id == model_id:
            return model
    return None
