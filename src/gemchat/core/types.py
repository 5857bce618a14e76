"""Shared types and enumerations."""

from __future__ import annotations

from enum import StrEnum


class Role(StrEnum):
    USER = "user"
    MODEL = "model"


class Tier(StrEnum):
    FREE = "FREE"
    PRO = "PRO"
    ULTRA = "ULTRA"


class ModelId(StrEnum):
    FLASH = "gemini-2.0-flash-lite"
    PRO = "gemini-2.5-pro-latest"


class Feedback(StrEnum):
    UP = "up"
    DOWN = "down"


class UsageKind(StrEnum):
    """What a send is priced in."""

    TOKEN = "token"
    IMAGE = "image"


class GenerationErrorKind(StrEnum):
    AUTH = "auth"
    QUOTA = "quota"
    RATE_LIMIT = "rate_limit"
    NETWORK = "network"
    UNKNOWN = "unknown"
