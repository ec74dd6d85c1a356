"""Base channel interface for the realtime transport.

chatlayer does not speak any wire protocol itself. A transport adapter
subclasses ``RealtimeChannel``, implements ``attach``/``detach`` against the
real connection, and reports every state change through ``_transition`` or
``_notify_update`` so rooms built on top can follow along.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterable, Optional, Protocol

from loguru import logger

from chatlayer.utils.events import EventEmitter


class ChannelState(str, Enum):
    """States a transport channel moves through."""
    INITIALIZED = "initialized"
    ATTACHING = "attaching"  # Also entered on a server-initiated re-attach
    ATTACHED = "attached"
    DETACHING = "detaching"
    DETACHED = "detached"
    SUSPENDED = "suspended"  # Extended outage, transport will retry
    FAILED = "failed"  # Terminal, needs intervention


class ChannelEvent(str, Enum):
    """Events emitted by a channel: one per state plus ``update``."""
    INITIALIZED = "initialized"
    ATTACHING = "attaching"
    ATTACHED = "attached"
    DETACHING = "detaching"
    DETACHED = "detached"
    SUSPENDED = "suspended"
    FAILED = "failed"
    UPDATE = "update"  # Server re-sent attach without a state change

    @classmethod
    def for_state(cls, state: ChannelState) -> "ChannelEvent":
        return cls(state.value)


STATE_EVENTS: frozenset[ChannelEvent] = frozenset(e for e in ChannelEvent if e is not ChannelEvent.UPDATE)


@dataclass(frozen=True)
class ChannelStateChange:
    """A channel state transition (or ``update``) as seen by listeners."""
    current: ChannelState
    previous: ChannelState
    event: ChannelEvent
    resumed: bool = False  # True when message continuity was preserved
    reason: Optional[BaseException] = None


ChannelListener = Callable[[ChannelStateChange], None]


class RealtimeChannel(ABC):
    """
    Abstract base class for transport channels.

    Subclasses own the connection work; this base keeps the state, the last
    error reason and the listener table.
    """

    def __init__(self, name: str):
        self.name = name
        self._state = ChannelState.INITIALIZED
        self._error_reason: Optional[BaseException] = None
        self._events: EventEmitter[ChannelStateChange] = EventEmitter()

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def error_reason(self) -> Optional[BaseException]:
        return self._error_reason

    @abstractmethod
    async def attach(self) -> None:
        """
        Attach the channel.

        Must be a no-op if already attached. On failure, raise after moving
        the channel into the state the failure left it in.
        """

    @abstractmethod
    async def detach(self) -> None:
        """Detach the channel. Must be a no-op if already detached."""

    def on(self, listener: ChannelListener, events: Optional[Iterable[ChannelEvent]] = None) -> None:
        """Listen for the given events, or every event if omitted."""
        self._events.on(listener, events)

    def off(self, listener: ChannelListener) -> None:
        self._events.off(listener)

    def _transition(
        self,
        state: ChannelState,
        reason: Optional[BaseException] = None,
        resumed: bool = False,
    ) -> ChannelStateChange:
        """Move to ``state`` and notify listeners."""
        change = ChannelStateChange(
            current=state,
            previous=self._state,
            event=ChannelEvent.for_state(state),
            resumed=resumed,
            reason=reason,
        )
        self._state = state
        self._error_reason = reason
        logger.trace(f"[{self.name}] channel {change.previous.value} -> {state.value}")
        self._events.emit(change.event, change)
        return change

    def _notify_update(
        self,
        reason: Optional[BaseException] = None,
        resumed: bool = False,
    ) -> ChannelStateChange:
        """Emit an ``update`` event without changing state."""
        change = ChannelStateChange(
            current=self._state,
            previous=self._state,
            event=ChannelEvent.UPDATE,
            resumed=resumed,
            reason=reason,
        )
        if reason is not None:
            self._error_reason = reason
        logger.trace(f"[{self.name}] channel update (resumed={resumed})")
        self._events.emit(ChannelEvent.UPDATE, change)
        return change


class ChannelProvider(Protocol):
    """Source of channels, usually the realtime client's channel registry."""

    def get(self, name: str) -> RealtimeChannel:
        """Return the channel with this name, creating it if needed."""
        ...

    def release(self, name: str) -> None:
        """Forget the channel with this name."""
        ...
