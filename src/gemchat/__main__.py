"""CLI entry point for gemchat."""

from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path

from gemchat.config import AppConfig, default_config, load_config
from gemchat.console import Console
from gemchat.core.models import MODELS, User
from gemchat.log import setup_logging


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="gemchat",
        description="Terminal chat client with streaming Gemini replies and tiered usage limits",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    chat_parser = subparsers.add_parser("chat", help="Start an interactive chat")
    chat_parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    chat_parser.add_argument("-e", "--env", default=".env", help="Path to .env file")
    chat_parser.add_argument("--guest", action="store_true", help="Chat without saving anything")
    chat_parser.add_argument("--user", default="local", help="User id to store chats under")

    check_parser = subparsers.add_parser("config-check", help="Validate configuration")
    check_parser.add_argument("-c", "--config", default="config.yaml", help="Path to config file")
    check_parser.add_argument("-e", "--env", default=".env", help="Path to .env file")

    subparsers.add_parser("model-info", help="List models and the plans that include them")

    args = parser.parse_args()

    if args.command is None:
        args = parser.parse_args(["chat"])

    if args.command == "config-check":
        _check_config(args.config, args.env)
    elif args.command == "model-info":
        _model_info()
    elif args.command == "chat":
        _run(args.config, args.env, guest=args.guest, user_id=args.user)


def _check_config(config_path: str, env_path: str) -> None:
    """Validate configuration and print summary."""
    try:
        config = load_config(config_path, env_path)
        print(f"Configuration valid: {config_path}")
        print(f"  Default model: {config.gemini.default_model} (stream={config.gemini.stream})")
        print(f"  API key: {'set' if config.gemini.api_key else 'MISSING'}")
        print(
            f"  Free limits: {config.quota.free_daily_token_limit} tokens, "
            f"{config.quota.free_daily_image_limit} images per day "
            f"(reset: {config.quota.reset_policy})"
        )
        print(f"  Storage: {config.storage.db_path}")
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _model_info() -> None:
    print("Models")
    print("=" * 50)
    for model in MODELS:
        tiers = ", ".join(t.value for t in model.tiers)
        print(f"\n  {model.name} ({model.id.value})")
        print(f"    {model.description}")
        print(f"    Plans: {tiers}")
    print()


def _load(config_path: str, env_path: str) -> AppConfig:
    if not Path(config_path).exists():
        return default_config(env_path)
    try:
        return load_config(config_path, env_path)
    except Exception as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _run(config_path: str, env_path: str, guest: bool, user_id: str) -> None:
    """Load config and start an interactive chat."""
    config = _load(config_path, env_path)
    setup_logging(config.log_level, json_output=config.log_json)

    user = None if guest else User(id=user_id, name=user_id)
    console = Console(config)
    asyncio.run(console.run(user))


if __name__ == "__main__":
    main()
