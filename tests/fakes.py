"""In-memory stand-ins for the realtime transport used across the test suite."""

import asyncio
from typing import Callable, Optional

from chatlayer.channels.base import ChannelState, RealtimeChannel
from chatlayer.errors import ErrorCode
from chatlayer.rooms.contributor import FeatureContributor


class FakeChannel(RealtimeChannel):
    """Scriptable channel.

    ``attach``/``detach`` succeed unless a failure was queued with
    ``fail_next_attach``/``fail_next_detach``. A queued failure moves the
    channel to the given state (``None`` leaves it alone) and raises.
    """

    def __init__(self, name: str):
        super().__init__(name)
        self.attach_calls = 0
        self.detach_calls = 0
        self.resumed_on_attach = False
        self.attach_gate: Optional[asyncio.Event] = None
        self.detach_gate: Optional[asyncio.Event] = None
        self._attach_failures: list[tuple[Optional[ChannelState], Exception]] = []
        self._detach_failures: list[tuple[Optional[ChannelState], Exception]] = []

    def fail_next_attach(self, state: Optional[ChannelState], error: Optional[Exception] = None) -> Exception:
        error = error or RuntimeError(f"{self.name} attach failed")
        self._attach_failures.append((state, error))
        return error

    def fail_next_detach(self, state: Optional[ChannelState], error: Optional[Exception] = None) -> Exception:
        error = error or RuntimeError(f"{self.name} detach failed")
        self._detach_failures.append((state, error))
        return error

    async def attach(self) -> None:
        self.attach_calls += 1
        if self.attach_gate is not None:
            await self.attach_gate.wait()
        await asyncio.sleep(0)
        if self._attach_failures:
            state, error = self._attach_failures.pop(0)
            if state is not None:
                self._transition(state, error)
            raise error
        if self.state == ChannelState.ATTACHED:
            return
        self._transition(ChannelState.ATTACHED, resumed=self.resumed_on_attach)

    async def detach(self) -> None:
        self.detach_calls += 1
        if self.detach_gate is not None:
            await self.detach_gate.wait()
        await asyncio.sleep(0)
        if self._detach_failures:
            state, error = self._detach_failures.pop(0)
            if state is not None:
                self._transition(state, error)
            raise error
        if self.state == ChannelState.DETACHED:
            return
        self._transition(ChannelState.DETACHED)

    def emit_state(self, state: ChannelState, reason: Optional[BaseException] = None, resumed: bool = False) -> None:
        """Simulate a server-initiated state change."""
        self._transition(state, reason, resumed)

    def emit_update(self, reason: Optional[BaseException] = None, resumed: bool = False) -> None:
        """Simulate an attach re-sent by the server without a state change."""
        self._notify_update(reason, resumed)


class FakeChannelProvider:
    """Channel registry handing out ``FakeChannel`` instances."""

    def __init__(self):
        self.channels: dict[str, FakeChannel] = {}
        self.released: list[str] = []

    def get(self, name: str) -> FakeChannel:
        if name not in self.channels:
            self.channels[name] = FakeChannel(name)
        return self.channels[name]

    def release(self, name: str) -> None:
        self.released.append(name)
        self.channels.pop(name, None)


class FakeFeature(FeatureContributor):
    """Contributor on a ``FakeChannel`` that records discontinuities."""

    def __init__(
        self,
        name: str,
        attachment_code: int = ErrorCode.MESSAGES_ATTACHMENT_FAILED,
        detachment_code: int = ErrorCode.MESSAGES_DETACHMENT_FAILED,
    ):
        super().__init__(FakeChannel(name))
        self.name = name
        self.ATTACHMENT_ERROR_CODE = attachment_code
        self.DETACHMENT_ERROR_CODE = detachment_code
        self.discontinuities: list[Optional[BaseException]] = []
        self.on_discontinuity(self.discontinuities.append)

    @property
    def fake(self) -> FakeChannel:
        return self.channel


def make_features(count: int = 3) -> list[FakeFeature]:
    """Features ``f0``..``fN`` with distinct error codes."""
    return [
        FakeFeature(
            f"f{i}",
            attachment_code=ErrorCode.MESSAGES_ATTACHMENT_FAILED + i,
            detachment_code=ErrorCode.MESSAGES_DETACHMENT_FAILED + i,
        )
        for i in range(count)
    ]


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` on the running loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.002)


def statuses(log) -> list:
    """Statuses from a list of ``RoomStatusChange``."""
    return [change.current for change in log]
