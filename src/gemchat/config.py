"""Configuration loader with YAML parsing, env-var interpolation, and Pydantic validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field

DEFAULT_SYSTEM_INSTRUCTION = (
    "You are a helpful AI assistant. "
    "Your design philosophy is cleanliness and precision. "
    "You are helpful, witty, and precise."
)


class GeminiConfig(BaseModel):
    api_key: Optional[str] = None
    default_model: str = "gemini-2.0-flash-lite"
    stream: bool = True
    temperature: float = 0.7


class QuotaConfig(BaseModel):
    free_daily_token_limit: int = 2000
    free_daily_image_limit: int = 5
    prompt_token_ratio: float = 0.25
    reply_token_estimate_chars: int = 50
    reset_policy: Literal["utc_midnight", "never"] = "utc_midnight"


class ImageConfig(BaseModel):
    base_url: str = "https://image.pollinations.ai/prompt/"
    width: int = 1024
    height: int = 1024
    delay_seconds: float = 1.0


class StorageConfig(BaseModel):
    db_path: str = "./data/gemchat.db"


class AppConfig(BaseModel):
    log_level: str = "INFO"
    log_json: bool = False
    data_dir: str = "./data"
    system_instruction: str = DEFAULT_SYSTEM_INSTRUCTION
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    quota: QuotaConfig = Field(default_factory=QuotaConfig)
    images: ImageConfig = Field(default_factory=ImageConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)


_ENV_VAR_PATTERN = re.compile(r"\$\{(\w+)\}")
_API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY")


def _interpolate_env_vars(text: str, extra: dict[str, str] | None = None) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        if extra and var_name in extra:
            return extra[var_name]
        value = os.environ.get(var_name)
        if value is None:
            return match.group(0)
        return value

    return _ENV_VAR_PATTERN.sub(_replace, text)


def _api_key_from_env() -> str | None:
    for name in _API_KEY_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None


def load_config(config_path: str | Path = "config.yaml", env_path: str | Path = ".env") -> AppConfig:
    """Load and validate configuration from YAML file with env-var interpolation."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)

    config_file = Path(config_path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")

    raw_text = config_file.read_text(encoding="utf-8")

    # data_dir may be referenced by other values as ${data_dir}
    raw_data = yaml.safe_load(raw_text) or {}
    data_dir = _interpolate_env_vars(str(raw_data.get("data_dir", "./data")))

    interpolated = _interpolate_env_vars(raw_text, extra={"data_dir": data_dir})
    data = yaml.safe_load(interpolated) or {}

    config = AppConfig(**data)
    if not config.gemini.api_key:
        config.gemini.api_key = _api_key_from_env()
    return config


def default_config(env_path: str | Path = ".env") -> AppConfig:
    """Build a config without a YAML file, taking the API key from the environment."""
    env_file = Path(env_path)
    if env_file.exists():
        load_dotenv(env_file)
    config = AppConfig()
    config.gemini.api_key = _api_key_from_env()
    return config
