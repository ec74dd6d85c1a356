"""Configuration module for chatlayer."""

from chatlayer.config.loader import get_config_path, load_config, save_config
from chatlayer.config.schema import (
    ChatConfig,
    LifecycleConfig,
    LoggingConfig,
    OccupancyOptions,
    PresenceOptions,
    ReactionsOptions,
    RoomOptions,
    TypingOptions,
    validate_room_options,
)

__all__ = [
    "ChatConfig",
    "LifecycleConfig",
    "LoggingConfig",
    "RoomOptions",
    "PresenceOptions",
    "TypingOptions",
    "ReactionsOptions",
    "OccupancyOptions",
    "validate_room_options",
    "load_config",
    "save_config",
    "get_config_path",
]
