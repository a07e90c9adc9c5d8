#!/usr/bin/env python3
"""
Trivia Quiz Bot - Main Entry Point

Starts the Discord trivia bot, which serves timed quizzes from the
Open Trivia Database.

Usage:
    python main.py [--config PATH] [--check]

    --config PATH   Configuration file to use (default: config.json,
                    or $TRIVIA_BOT_CONFIG when set)
    --check         Validate the configuration and exit without connecting

Environment Variables:
    DISCORD_BOT_TOKEN: Discord bot token, wins over the 'bot.token' entry
    TRIVIA_BOT_CONFIG: Default configuration file path
"""

import argparse
import asyncio
import sys
import os
import json
import logging
from pathlib import Path

PLACEHOLDER_TOKEN = "YOUR_DISCORD_BOT_TOKEN_HERE"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the Trivia Quiz Bot")
    parser.add_argument(
        '--config',
        default=os.getenv('TRIVIA_BOT_CONFIG', 'config.json'),
        help="Path to the JSON configuration file"
    )
    parser.add_argument(
        '--check',
        action='store_true',
        help="Validate the configuration and exit"
    )
    return parser.parse_args(argv)


def read_config_file(config_path: Path) -> dict:
    """Read the JSON configuration file, exiting with a message when it is unusable."""
    if not config_path.is_file():
        print(f"❌ Error: {config_path} not found!")
        print("Create it from the bundled config.json and set your Discord bot token.")
        sys.exit(1)

    try:
        config = json.loads(config_path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        print(f"❌ Error: Invalid JSON in {config_path}: {e}")
        sys.exit(1)
    except OSError as e:
        print(f"❌ Error reading {config_path}: {e}")
        sys.exit(1)

    if not isinstance(config, dict):
        print(f"❌ Error: {config_path} must contain a JSON object")
        sys.exit(1)
    return config


def resolve_token(config: dict):
    """Discord token from the environment or the 'bot' section, None when unset."""
    token = os.getenv('DISCORD_BOT_TOKEN') or config.get('bot', {}).get('token')
    if not token or token == PLACEHOLDER_TOKEN:
        return None
    return token


def configure_logging(config: dict) -> None:
    """Console, bot.log and errors.log handlers as described by the 'logging' section."""
    log_config = config.get('logging', {})
    log_level = getattr(logging, str(log_config.get('level', 'INFO')).upper(), logging.INFO)
    log_directory = Path(log_config.get('log_directory', './logs/'))
    log_directory.mkdir(parents=True, exist_ok=True)

    error_handler = logging.FileHandler(log_directory / "errors.log", encoding='utf-8')
    error_handler.setLevel(logging.ERROR)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(),
            logging.FileHandler(log_directory / "bot.log", encoding='utf-8'),
            error_handler
        ]
    )

    # discord.py and urllib3 are chatty at INFO
    for noisy in ('discord', 'discord.http', 'urllib3'):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def check_config(config: dict) -> bool:
    """Report configuration problems. Returns True when the bot can start."""
    from trivia_bot.config_manager import ConfigManager

    manager = ConfigManager()
    problems = manager.apply_config(config)
    for problem in problems:
        print(f"⚠️  {problem} (default kept)")

    validation = manager.validate_settings()
    for issue in validation['issues']:
        print(f"❌ {issue}")

    print(manager.get_settings_summary())
    return validation['valid']


def main(argv=None) -> int:
    args = parse_args(argv)
    config = read_config_file(Path(args.config))

    if args.check:
        valid = check_config(config)
        if resolve_token(config) is None:
            print("⚠️  No Discord bot token configured")
        return 0 if valid else 1

    token = resolve_token(config)
    if token is None:
        print("❌ Error: Discord bot token not configured!")
        print("Either:")
        print("  1. Set DISCORD_BOT_TOKEN environment variable")
        print(f"  2. Update the 'token' field in {args.config}")
        return 1

    configure_logging(config)

    from trivia_bot.bot import run_bot

    print("🤖 Starting Trivia Quiz Bot...")
    try:
        asyncio.run(run_bot(token, config))
    except KeyboardInterrupt:
        print("\n👋 Bot stopped by user")
    return 0


if __name__ == "__main__":
    sys.exit(main())
