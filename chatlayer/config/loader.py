"""Configuration loading utilities."""

import json
from pathlib import Path

from loguru import logger
from pydantic import ValidationError

from chatlayer.config.schema import ChatConfig


def get_config_path() -> Path:
    """Get the default configuration file path."""
    return Path.home() / ".chatlayer" / "config.json"


def load_config(config_path: Path | None = None) -> ChatConfig:
    """
    Load configuration from file or fall back to defaults.

    Environment variables prefixed ``CHATLAYER_`` still apply when the file
    is missing, since the defaults come from ``ChatConfig()``.

    Args:
        config_path: Optional path to config file. Uses default if not provided.

    Returns:
        Loaded configuration object.
    """
    path = config_path or get_config_path()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
            return ChatConfig.model_validate(data)
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to load config from {path}: {e}. Using default configuration.")

    return ChatConfig()


def save_config(config: ChatConfig, config_path: Path | None = None) -> None:
    """
    Save configuration to file.

    Args:
        config: Configuration to save.
        config_path: Optional path to save to. Uses default if not provided.
    """
    path = config_path or get_config_path()
    path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(by_alias=True)

    with open(path, "w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)

    logger.debug(f"Config saved: {path}")
