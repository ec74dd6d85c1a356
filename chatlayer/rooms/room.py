"""A chat room: its features and their combined lifecycle."""

from __future__ import annotations

from typing import Optional

from loguru import logger

from chatlayer.channels.base import ChannelProvider
from chatlayer.config.schema import LifecycleConfig, RoomOptions, validate_room_options
from chatlayer.errors import ChatError, ErrorCode
from chatlayer.rooms.contributor import FeatureContributor
from chatlayer.rooms.features import (
    MessagesFeature,
    OccupancyFeature,
    PresenceFeature,
    ReactionsFeature,
    TypingFeature,
)
from chatlayer.rooms.lifecycle import RoomLifecycleManager
from chatlayer.rooms.status import RoomStatusHolder


class Room:
    """
    A chat room.

    The messages feature is always present; presence, typing, reactions and
    occupancy exist only when enabled in ``options``. Features attach in
    reverse order of creation so that messages, the feature most clients
    care about, is attached last and is never attached without the rest.

    Args:
        room_id: Unique room identifier.
        options: Enabled features and their settings.
        channels: Where feature channels come from.
        lifecycle: Lifecycle timings.
    """

    def __init__(
        self,
        room_id: str,
        options: RoomOptions,
        channels: ChannelProvider,
        lifecycle: Optional[LifecycleConfig] = None,
    ):
        validate_room_options(options)
        logger.debug(f"[{room_id}] creating room with options {options.model_dump(exclude_none=True)}")

        self._room_id = room_id
        self._options = options.model_copy(deep=True)
        self._channels = channels
        self._finalized = False

        self._messages = MessagesFeature(room_id, channels)
        self._presence = PresenceFeature(room_id, channels, options.presence) if options.presence else None
        self._typing = TypingFeature(room_id, channels, options.typing) if options.typing else None
        self._reactions = ReactionsFeature(room_id, channels, options.reactions) if options.reactions else None
        self._occupancy = OccupancyFeature(room_id, channels, options.occupancy) if options.occupancy else None

        features: list[FeatureContributor] = [self._messages]
        for feature in (self._presence, self._typing, self._reactions, self._occupancy):
            if feature is not None:
                features.append(feature)
        self._features = tuple(features)

        self._status = RoomStatusHolder(room_id)
        self._lifecycle = RoomLifecycleManager(
            self._status,
            list(reversed(self._features)),
            config=lifecycle,
            room_id=room_id,
        )

    def __repr__(self) -> str:
        return f"<Room {self._room_id!r} status={self._status.current.value}>"

    @property
    def room_id(self) -> str:
        return self._room_id

    @property
    def status(self) -> RoomStatusHolder:
        return self._status

    @property
    def lifecycle_manager(self) -> RoomLifecycleManager:
        return self._lifecycle

    @property
    def features(self) -> tuple[FeatureContributor, ...]:
        """Enabled features in creation order (messages first)."""
        return self._features

    def options(self) -> RoomOptions:
        """A copy of the options the room was created with."""
        return self._options.model_copy(deep=True)

    @property
    def messages(self) -> MessagesFeature:
        return self._messages

    @property
    def presence(self) -> PresenceFeature:
        return self._require(self._presence, "presence")

    @property
    def typing(self) -> TypingFeature:
        return self._require(self._typing, "typing")

    @property
    def reactions(self) -> ReactionsFeature:
        return self._require(self._reactions, "reactions")

    @property
    def occupancy(self) -> OccupancyFeature:
        return self._require(self._occupancy, "occupancy")

    @staticmethod
    def _require(feature, name: str):
        if feature is None:
            raise ChatError(
                f"{name} is not enabled for this room",
                ErrorCode.FEATURE_NOT_ENABLED_IN_ROOM,
                status_code=400,
            )
        return feature

    async def attach(self) -> None:
        """Attach every feature of the room."""
        logger.trace(f"[{self._room_id}] Room.attach()")
        await self._lifecycle.attach()

    async def detach(self) -> None:
        """Detach every feature of the room."""
        logger.trace(f"[{self._room_id}] Room.detach()")
        await self._lifecycle.detach()

    async def release(self) -> None:
        """
        Release the room and give its channels back to the provider.

        Once released a room cannot be used again; get a new one from
        ``Rooms`` instead.
        """
        logger.trace(f"[{self._room_id}] Room.release()")
        await self._lifecycle.release()
        self._finalize()

    def _finalize(self) -> None:
        if self._finalized:
            return
        self._finalized = True
        self._lifecycle.dispose()
        for feature in self._features:
            self._channels.release(feature.channel.name)
        logger.debug(f"[{self._room_id}] released {len(self._features)} channel(s)")
