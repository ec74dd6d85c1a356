"""Room status: the single consolidated state of every feature in a room."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from chatlayer.metrics import get_metrics
from chatlayer.utils.events import EventEmitter, Subscription


class RoomStatus(str, Enum):
    """The different states that a room can be in."""
    INITIALIZED = "initialized"  # Created, never attached
    ATTACHING = "attaching"
    ATTACHED = "attached"
    DETACHING = "detaching"
    DETACHED = "detached"
    SUSPENDED = "suspended"  # Extended detachment, will re-attach when able
    FAILED = "failed"  # Will not re-attach; only release is possible
    RELEASING = "releasing"
    RELEASED = "released"  # No longer usable

    @property
    def is_terminal(self) -> bool:
        return self in (RoomStatus.FAILED, RoomStatus.RELEASED)


@dataclass(frozen=True)
class RoomStatusChange:
    """A change in room status, delivered to ``on_change`` listeners."""
    current: RoomStatus
    previous: RoomStatus
    error: Optional[BaseException] = None


RoomStatusListener = Callable[[RoomStatusChange], None]

# Emitter key for status changes; listeners here are never filtered by event.
_CHANGE = "change"


class RoomStatusHolder:
    """
    Holds the current room status and its error, and fans changes out.

    Internal one-shot listeners (``on_change_once``) are notified before
    public listeners, so lifecycle bookkeeping always runs first.
    """

    def __init__(self, room_id: str = ""):
        self.room_id = room_id
        self._status = RoomStatus.INITIALIZED
        self._error: Optional[BaseException] = None
        self._listeners: EventEmitter[RoomStatusChange] = EventEmitter()
        self._internal: EventEmitter[RoomStatusChange] = EventEmitter()

    @property
    def current(self) -> RoomStatus:
        return self._status

    @property
    def error(self) -> Optional[BaseException]:
        return self._error

    def on_change(self, listener: RoomStatusListener) -> Subscription:
        """Register a listener for every status change."""
        self._listeners.on(listener)
        return Subscription(lambda: self._listeners.off(listener))

    def on_change_once(self, listener: RoomStatusListener) -> None:
        """Register an internal listener for the next status change only."""
        self._internal.once(listener)

    def off_all(self) -> None:
        """Remove all public listeners."""
        self._listeners.off_all()

    def set_status(self, status: RoomStatus, error: Optional[BaseException] = None) -> RoomStatusChange:
        change = RoomStatusChange(current=status, previous=self._status, error=error)
        self._status = status
        self._error = error
        if error is not None:
            logger.info(f"[{self.room_id}] Room status is now {status.value} (error: {error})")
        else:
            logger.info(f"[{self.room_id}] Room status is now {status.value}")
        get_metrics().incr("room.status.transition", tags={"status": status.value})
        self._internal.emit(_CHANGE, change)
        self._listeners.emit(_CHANGE, change)
        return change
