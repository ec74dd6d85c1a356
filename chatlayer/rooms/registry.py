"""Registry of live rooms, one ``Room`` per room id."""

from __future__ import annotations

import asyncio
from typing import Dict, Optional

from loguru import logger

from chatlayer.channels.base import ChannelProvider
from chatlayer.config.schema import ChatConfig, RoomOptions
from chatlayer.errors import ChatError, ErrorCode
from chatlayer.metrics import get_metrics
from chatlayer.rooms.room import Room


class Rooms:
    """
    Hands out rooms and keeps at most one live room per id.

    Asking for a room that is still being released waits for the release to
    finish and then builds a fresh room.
    """

    def __init__(self, channels: ChannelProvider, config: Optional[ChatConfig] = None):
        self.channels = channels
        self.config = config or ChatConfig()
        self._rooms: Dict[str, Room] = {}
        self._releasing: Dict[str, asyncio.Future] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        return room_id in self._rooms

    def list_rooms(self) -> list[str]:
        """Ids of all live rooms."""
        return list(self._rooms)

    async def get(self, room_id: str, options: Optional[RoomOptions] = None) -> Room:
        """
        Get a room, creating it on first use.

        Args:
            room_id: Room identifier.
            options: Features to enable; defaults to the configured defaults.

        Raises:
            ChatError: If the room already exists with different options.
        """
        if options is None:
            options = self.config.default_room_options

        async with self._lock:
            room = self._rooms.get(room_id)
            if room is not None:
                if room.options() != options:
                    raise ChatError(
                        f"room {room_id!r} already exists with different options",
                        ErrorCode.ROOM_EXISTS_WITH_DIFFERENT_OPTIONS,
                        status_code=400,
                    )
                logger.debug(f"[{room_id}] returning existing room")
                return room

            releasing = self._releasing.get(room_id)

        if releasing is not None:
            logger.debug(f"[{room_id}] waiting for release before creating new room")
            # The release outcome belongs to whoever released; we only need it finished
            await asyncio.wait([releasing])

        async with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                room = Room(room_id, options, self.channels, self.config.lifecycle)
                self._rooms[room_id] = room
                get_metrics().set_gauge("rooms.active", len(self._rooms))
                logger.info(f"[{room_id}] room created")
            elif room.options() != options:
                raise ChatError(
                    f"room {room_id!r} already exists with different options",
                    ErrorCode.ROOM_EXISTS_WITH_DIFFERENT_OPTIONS,
                    status_code=400,
                )
            return room

    async def release(self, room_id: str) -> None:
        """
        Release a room and forget it.

        Releasing an unknown room does nothing. Concurrent calls for the same
        room share one release.
        """
        async with self._lock:
            releasing = self._releasing.get(room_id)
            if releasing is None:
                room = self._rooms.pop(room_id, None)
                if room is None:
                    logger.debug(f"[{room_id}] release of unknown room ignored")
                    return
                get_metrics().set_gauge("rooms.active", len(self._rooms))
                releasing = asyncio.ensure_future(room.release())
                self._releasing[room_id] = releasing
                releasing.add_done_callback(lambda f: self._forget_release(room_id, f))

        await asyncio.shield(releasing)
        logger.info(f"[{room_id}] room released")

    def _forget_release(self, room_id: str, future: asyncio.Future) -> None:
        if self._releasing.get(room_id) is future:
            del self._releasing[room_id]
