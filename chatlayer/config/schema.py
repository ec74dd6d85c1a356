"""Configuration schema using Pydantic."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatlayer.errors import ChatError, ErrorCode


class Base(BaseModel):
    """Base model that accepts both camelCase and snake_case keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PresenceOptions(Base):
    """Presence feature options."""
    enter: bool = True  # Enter presence when the room attaches
    subscribe: bool = True  # Receive presence events from other members


class TypingOptions(Base):
    """Typing indicator options."""
    timeout_ms: int = 5000  # How long a typing heartbeat stays valid


class ReactionsOptions(Base):
    """Room reactions options (none yet)."""


class OccupancyOptions(Base):
    """Occupancy options (none yet)."""


class RoomOptions(Base):
    """Features enabled on a room. Messages are always enabled."""
    presence: Optional[PresenceOptions] = None
    typing: Optional[TypingOptions] = None
    reactions: Optional[ReactionsOptions] = None
    occupancy: Optional[OccupancyOptions] = None

    @classmethod
    def all_features(cls) -> "RoomOptions":
        """Options with every feature enabled using defaults."""
        return cls(
            presence=PresenceOptions(),
            typing=TypingOptions(),
            reactions=ReactionsOptions(),
            occupancy=OccupancyOptions(),
        )


def validate_room_options(options: RoomOptions) -> None:
    """Reject option combinations a room cannot run with."""
    if options.typing is not None and options.typing.timeout_ms <= 0:
        raise ChatError(
            "invalid room configuration: typing timeout must be greater than 0",
            ErrorCode.INVALID_ARGUMENT,
            status_code=400,
        )


class LifecycleConfig(Base):
    """Timings used by the room lifecycle manager (seconds)."""
    transient_detach_timeout: float = Field(default=5.0, gt=0)  # Grace period for a re-attaching channel
    retry_delay: float = Field(default=0.25, gt=0)  # Pause between internal wind-down/release retries


class LoggingConfig(Base):
    """Console/file logging configuration."""
    level: str = "INFO"
    log_file: str = ""  # Empty disables the file sink
    verbose: bool = False


class ChatConfig(BaseSettings):
    """Root configuration for chatlayer."""
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    default_room_options: RoomOptions = Field(default_factory=RoomOptions)

    model_config = SettingsConfigDict(
        env_prefix="CHATLAYER_",
        env_nested_delimiter="__",
    )
