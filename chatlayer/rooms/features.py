"""The five room features, each a lifecycle contributor on its own channel.

Payload handling (sending messages, presence data, reaction bodies, typing
heartbeats) is done by the transport layer; these classes only carry what
the room lifecycle needs: the channel, the error codes and the options.
"""

from __future__ import annotations

from chatlayer.channels.base import ChannelProvider
from chatlayer.config.schema import OccupancyOptions, PresenceOptions, ReactionsOptions, TypingOptions
from chatlayer.errors import ErrorCode
from chatlayer.rooms.contributor import FeatureContributor


def channel_name(room_id: str, suffix: str) -> str:
    """Transport channel name for a room feature."""
    return f"{room_id}::$chat::${suffix}"


class MessagesFeature(FeatureContributor):
    name = "messages"
    CHANNEL_SUFFIX = "chatMessages"
    ATTACHMENT_ERROR_CODE = ErrorCode.MESSAGES_ATTACHMENT_FAILED
    DETACHMENT_ERROR_CODE = ErrorCode.MESSAGES_DETACHMENT_FAILED

    def __init__(self, room_id: str, channels: ChannelProvider):
        super().__init__(channels.get(channel_name(room_id, self.CHANNEL_SUFFIX)))
        self.room_id = room_id


class PresenceFeature(FeatureContributor):
    name = "presence"
    CHANNEL_SUFFIX = "presence"
    ATTACHMENT_ERROR_CODE = ErrorCode.PRESENCE_ATTACHMENT_FAILED
    DETACHMENT_ERROR_CODE = ErrorCode.PRESENCE_DETACHMENT_FAILED

    def __init__(self, room_id: str, channels: ChannelProvider, options: PresenceOptions):
        super().__init__(channels.get(channel_name(room_id, self.CHANNEL_SUFFIX)))
        self.room_id = room_id
        self.options = options


class TypingFeature(FeatureContributor):
    name = "typing"
    CHANNEL_SUFFIX = "typingIndicators"
    ATTACHMENT_ERROR_CODE = ErrorCode.TYPING_ATTACHMENT_FAILED
    DETACHMENT_ERROR_CODE = ErrorCode.TYPING_DETACHMENT_FAILED

    def __init__(self, room_id: str, channels: ChannelProvider, options: TypingOptions):
        super().__init__(channels.get(channel_name(room_id, self.CHANNEL_SUFFIX)))
        self.room_id = room_id
        self.options = options

    @property
    def timeout_ms(self) -> int:
        return self.options.timeout_ms


class ReactionsFeature(FeatureContributor):
    name = "reactions"
    CHANNEL_SUFFIX = "reactions"
    ATTACHMENT_ERROR_CODE = ErrorCode.REACTIONS_ATTACHMENT_FAILED
    DETACHMENT_ERROR_CODE = ErrorCode.REACTIONS_DETACHMENT_FAILED

    def __init__(self, room_id: str, channels: ChannelProvider, options: ReactionsOptions):
        super().__init__(channels.get(channel_name(room_id, self.CHANNEL_SUFFIX)))
        self.room_id = room_id
        self.options = options


class OccupancyFeature(FeatureContributor):
    name = "occupancy"
    CHANNEL_SUFFIX = "occupancy"
    ATTACHMENT_ERROR_CODE = ErrorCode.OCCUPANCY_ATTACHMENT_FAILED
    DETACHMENT_ERROR_CODE = ErrorCode.OCCUPANCY_DETACHMENT_FAILED

    def __init__(self, room_id: str, channels: ChannelProvider, options: OccupancyOptions):
        super().__init__(channels.get(channel_name(room_id, self.CHANNEL_SUFFIX)))
        self.room_id = room_id
        self.options = options
