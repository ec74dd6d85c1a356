"""Synchronous event emitter used by channels, statuses and features."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Generic, Hashable, Iterable, Optional, TypeVar

from loguru import logger

T = TypeVar("T")

Listener = Callable[[T], None]


@dataclass
class _Registration(Generic[T]):
    listener: Listener
    events: Optional[frozenset] = None  # None = every event
    once: bool = False
    active: bool = True


class Subscription:
    """Handle returned by ``on``-style calls. ``off()`` may be called any number of times."""

    def __init__(self, off: Callable[[], None]):
        self._off = off
        self._done = False

    def off(self) -> None:
        if self._done:
            return
        self._done = True
        self._off()


@dataclass
class EventEmitter(Generic[T]):
    """
    Minimal listener table with per-event filtering.

    Dispatch iterates over a snapshot of the registrations, so a listener may
    add or remove listeners (including itself) while an event is being
    delivered. A listener that raises is logged and does not stop delivery
    to the remaining listeners.
    """

    _registrations: list[_Registration] = field(default_factory=list)

    def on(self, listener: Listener, events: Optional[Iterable[Hashable]] = None) -> None:
        """Register a listener for the given events (all events if omitted)."""
        self._add(listener, events, once=False)

    def once(self, listener: Listener, events: Optional[Iterable[Hashable]] = None) -> None:
        """Register a listener that is removed after its first delivery."""
        self._add(listener, events, once=True)

    def off(self, listener: Listener) -> None:
        """Remove every registration of ``listener``. Unknown listeners are ignored."""
        for reg in self._registrations:
            if reg.listener == listener:
                reg.active = False
        self._registrations = [r for r in self._registrations if r.active]

    def off_all(self) -> None:
        for reg in self._registrations:
            reg.active = False
        self._registrations = []

    def emit(self, event: Hashable, payload: Any) -> None:
        for reg in list(self._registrations):
            if not reg.active:
                continue
            if reg.events is not None and event not in reg.events:
                continue
            if reg.once:
                reg.active = False
                self._registrations = [r for r in self._registrations if r.active]
            try:
                reg.listener(payload)
            except Exception as e:
                logger.error(f"Listener error while emitting {event!r}: {e}")

    def __len__(self) -> int:
        return len(self._registrations)

    def _add(self, listener: Listener, events: Optional[Iterable[Hashable]], once: bool) -> None:
        self._registrations.append(
            _Registration(
                listener=listener,
                events=frozenset(events) if events is not None else None,
                once=once,
            )
        )
