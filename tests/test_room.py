"""Tests for the Room facade."""

import pytest

from chatlayer.channels.base import ChannelState
from chatlayer.config.schema import PresenceOptions, RoomOptions, TypingOptions
from chatlayer.errors import ChatError, ErrorCode
from chatlayer.rooms.features import MessagesFeature, channel_name
from chatlayer.rooms.room import Room
from chatlayer.rooms.status import RoomStatus


class TestRoomFeatures:
    """Test which features a room is built with."""

    def test_messages_only_by_default(self, provider, lifecycle_config):
        """Test a room without options only has messages."""
        room = Room("lobby", RoomOptions(), provider, lifecycle_config)

        assert isinstance(room.messages, MessagesFeature)
        assert list(provider.channels) == ["lobby::$chat::$chatMessages"]
        with pytest.raises(ChatError) as exc_info:
            room.presence
        assert exc_info.value.code == ErrorCode.FEATURE_NOT_ENABLED_IN_ROOM
        assert exc_info.value.status_code == 400

    def test_all_features(self, provider, lifecycle_config):
        """Test every enabled feature gets its own channel."""
        room = Room("lobby", RoomOptions.all_features(), provider, lifecycle_config)

        assert room.presence.channel.name == channel_name("lobby", "presence")
        assert room.typing.channel.name == "lobby::$chat::$typingIndicators"
        assert room.reactions.channel.name == "lobby::$chat::$reactions"
        assert room.occupancy.channel.name == "lobby::$chat::$occupancy"
        assert len(provider.channels) == 5

    def test_messages_attach_last(self, provider, lifecycle_config):
        """Test contributors are ordered so messages attaches after the rest."""
        room = Room("lobby", RoomOptions.all_features(), provider, lifecycle_config)

        contributors = room.lifecycle_manager.contributors
        assert contributors[-1] is room.messages
        assert contributors[0] is room.occupancy

    def test_feature_error_codes(self, provider, lifecycle_config):
        """Test each feature wraps errors with its own codes."""
        room = Room("lobby", RoomOptions.all_features(), provider, lifecycle_config)

        assert room.messages.attachment_error_code == ErrorCode.MESSAGES_ATTACHMENT_FAILED
        assert room.typing.detachment_error_code == ErrorCode.TYPING_DETACHMENT_FAILED
        assert room.presence.attachment_error_code == ErrorCode.PRESENCE_ATTACHMENT_FAILED

    def test_typing_options(self, provider, lifecycle_config):
        """Test typing keeps its configured timeout."""
        room = Room("lobby", RoomOptions(typing=TypingOptions(timeout_ms=3000)), provider, lifecycle_config)
        assert room.typing.timeout_ms == 3000

    def test_invalid_typing_timeout(self, provider, lifecycle_config):
        """Test a non-positive typing timeout is rejected."""
        with pytest.raises(ChatError) as exc_info:
            Room("lobby", RoomOptions(typing=TypingOptions(timeout_ms=0)), provider, lifecycle_config)

        assert exc_info.value.code == ErrorCode.INVALID_ARGUMENT
        assert provider.channels == {}

    def test_options_are_copied(self, provider, lifecycle_config):
        """Test changing returned options does not change the room."""
        options = RoomOptions(presence=PresenceOptions(enter=False))
        room = Room("lobby", options, provider, lifecycle_config)

        copy = room.options()
        copy.presence.enter = True

        assert room.options() == options
        assert room.options().presence.enter is False


class TestRoomLifecycle:
    """Test attach, detach and release through the room."""

    @pytest.mark.asyncio
    async def test_attach_and_detach(self, provider, lifecycle_config):
        """Test the room drives every feature channel."""
        room = Room("lobby", RoomOptions.all_features(), provider, lifecycle_config)

        await room.attach()
        assert room.status.current == RoomStatus.ATTACHED
        assert all(f.state == ChannelState.ATTACHED for f in room.features)

        await room.detach()
        assert room.status.current == RoomStatus.DETACHED

    @pytest.mark.asyncio
    async def test_feature_discontinuity_subscription(self, provider, lifecycle_config):
        """Test a feature's discontinuity listeners hear about missed events."""
        room = Room("lobby", RoomOptions(), provider, lifecycle_config)
        heard = []
        subscription = room.messages.on_discontinuity(heard.append)
        await room.attach()
        reason = RuntimeError("gap")

        room.messages.channel.emit_update(reason)
        subscription.off()
        room.messages.channel.emit_update(RuntimeError("ignored"))

        assert heard == [reason]

    @pytest.mark.asyncio
    async def test_release_returns_channels(self, provider, lifecycle_config):
        """Test release gives every channel back to the provider once."""
        room = Room("lobby", RoomOptions(presence=PresenceOptions()), provider, lifecycle_config)
        await room.attach()

        await room.release()
        await room.release()

        assert room.status.current == RoomStatus.RELEASED
        assert sorted(provider.released) == [
            "lobby::$chat::$chatMessages",
            "lobby::$chat::$presence",
        ]
        assert provider.channels == {}

    @pytest.mark.asyncio
    async def test_released_room_rejects_attach(self, provider, lifecycle_config):
        """Test a released room cannot be attached again."""
        room = Room("lobby", RoomOptions(), provider, lifecycle_config)
        await room.release()

        with pytest.raises(ChatError) as exc_info:
            await room.attach()

        assert exc_info.value.code == ErrorCode.ROOM_IS_RELEASED
