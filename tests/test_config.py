"""Tests for configuration loading."""

import pytest
from pydantic import ValidationError

from gemchat.config import AppConfig, default_config, load_config


def test_load_config_interpolates_env_and_data_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("TEST_GEMINI_KEY", "secret")
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "data_dir: /srv/chat\n"
        "gemini:\n"
        "  api_key: ${TEST_GEMINI_KEY}\n"
        "  stream: false\n"
        "quota:\n"
        "  free_daily_token_limit: 500\n"
        "storage:\n"
        "  db_path: ${data_dir}/chat.db\n",
        encoding="utf-8",
    )

    config = load_config(config_file, tmp_path / "missing.env")

    assert config.gemini.api_key == "secret"
    assert config.gemini.stream is False
    assert config.quota.free_daily_token_limit == 500
    assert config.quota.free_daily_image_limit == 5
    assert config.storage.db_path == "/srv/chat/chat.db"


def test_api_key_falls_back_to_environment(tmp_path, monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    monkeypatch.setenv("GOOGLE_API_KEY", "from-google-env")
    config_file = tmp_path / "config.yaml"
    config_file.write_text("log_level: DEBUG\n", encoding="utf-8")

    config = load_config(config_file, tmp_path / "missing.env")

    assert config.gemini.api_key == "from-google-env"
    assert config.log_level == "DEBUG"


def test_env_file_is_loaded(tmp_path, monkeypatch):
    # setenv first so teardown restores whatever load_dotenv writes
    for name in ("GEMINI_API_KEY", "GOOGLE_API_KEY"):
        monkeypatch.setenv(name, "placeholder")
        monkeypatch.delenv(name)
    env_file = tmp_path / ".env"
    env_file.write_text("GEMINI_API_KEY=from-dotenv\n", encoding="utf-8")

    config = default_config(env_file)

    assert config.gemini.api_key == "from-dotenv"


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_invalid_reset_policy_rejected(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("quota:\n  reset_policy: weekly\n", encoding="utf-8")
    with pytest.raises(ValidationError):
        load_config(config_file, tmp_path / "missing.env")


def test_defaults():
    config = AppConfig()
    assert config.quota.free_daily_token_limit == 2000
    assert config.images.delay_seconds == 1.0
    assert config.gemini.default_model == "gemini-2.0-flash-lite"
