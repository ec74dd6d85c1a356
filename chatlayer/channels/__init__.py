"""Transport channel contract."""

from chatlayer.channels.base import (
    STATE_EVENTS,
    ChannelEvent,
    ChannelListener,
    ChannelProvider,
    ChannelState,
    ChannelStateChange,
    RealtimeChannel,
)

__all__ = [
    "ChannelEvent",
    "ChannelListener",
    "ChannelProvider",
    "ChannelState",
    "ChannelStateChange",
    "RealtimeChannel",
    "STATE_EVENTS",
]
