"""Features that take part in a room's combined lifecycle."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Iterable, Optional

from loguru import logger

from chatlayer.channels.base import ChannelEvent, ChannelListener, ChannelState, RealtimeChannel
from chatlayer.metrics import get_metrics
from chatlayer.utils.events import EventEmitter, Subscription

DiscontinuityListener = Callable[[Optional[BaseException]], None]


class Contributor(ABC):
    """
    Anything the lifecycle manager attaches, detaches and watches as part of a room.

    Contributors are compared by identity; a room's list of contributors is
    fixed when the room is built.
    """

    name: str = "contributor"

    @property
    @abstractmethod
    def state(self) -> ChannelState:
        """Current state of the underlying channel."""

    @property
    @abstractmethod
    def error_reason(self) -> Optional[BaseException]:
        """Last error reported by the underlying channel."""

    @property
    @abstractmethod
    def attachment_error_code(self) -> int:
        """Code used to wrap a failure to attach."""

    @property
    @abstractmethod
    def detachment_error_code(self) -> int:
        """Code used to wrap a failure to detach."""

    @abstractmethod
    async def attach(self) -> None:
        pass

    @abstractmethod
    async def detach(self) -> None:
        pass

    @abstractmethod
    def on(self, listener: ChannelListener, events: Optional[Iterable[ChannelEvent]] = None) -> None:
        pass

    @abstractmethod
    def off(self, listener: ChannelListener) -> None:
        pass

    @abstractmethod
    def discontinuity_detected(self, reason: Optional[BaseException] = None) -> None:
        """Called when the feature may have missed events."""


class FeatureContributor(Contributor):
    """
    A room feature backed by a single transport channel.

    Subclasses set ``name`` and the two error codes. Callers interested in
    missed events subscribe with ``on_discontinuity``.
    """

    name = "feature"
    ATTACHMENT_ERROR_CODE: int = 0
    DETACHMENT_ERROR_CODE: int = 0

    def __init__(self, channel: RealtimeChannel):
        self.channel = channel
        self._discontinuities: EventEmitter[Optional[BaseException]] = EventEmitter()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} channel={self.channel.name!r}>"

    @property
    def state(self) -> ChannelState:
        return self.channel.state

    @property
    def error_reason(self) -> Optional[BaseException]:
        return self.channel.error_reason

    @property
    def attachment_error_code(self) -> int:
        return self.ATTACHMENT_ERROR_CODE

    @property
    def detachment_error_code(self) -> int:
        return self.DETACHMENT_ERROR_CODE

    async def attach(self) -> None:
        await self.channel.attach()

    async def detach(self) -> None:
        await self.channel.detach()

    def on(self, listener: ChannelListener, events: Optional[Iterable[ChannelEvent]] = None) -> None:
        self.channel.on(listener, events)

    def off(self, listener: ChannelListener) -> None:
        self.channel.off(listener)

    def on_discontinuity(self, listener: DiscontinuityListener) -> Subscription:
        """Register a listener for discontinuities on this feature."""
        self._discontinuities.on(listener)
        return Subscription(lambda: self._discontinuities.off(listener))

    def discontinuity_detected(self, reason: Optional[BaseException] = None) -> None:
        logger.debug(f"[{self.channel.name}] {self.name} discontinuity detected: {reason}")
        get_metrics().incr("room.discontinuity", tags={"feature": self.name})
        self._discontinuities.emit("discontinuity", reason)
