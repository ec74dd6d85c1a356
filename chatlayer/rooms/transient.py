"""Timers that decide whether a channel re-attach is a brief blip or a real outage."""

from __future__ import annotations

import asyncio
from typing import Callable, Hashable

from loguru import logger


class TransientFaultTracker:
    """
    One pending timer per contributor.

    When a channel drops into ``attaching`` on its own, the room waits
    ``timeout`` seconds before letting the outage show in the room status.
    If the channel is back before then, the timer is cleared and nobody
    outside the room ever sees the blip.
    """

    def __init__(self, timeout: float, room_id: str = ""):
        self.timeout = timeout
        self.room_id = room_id
        self._timers: dict[Hashable, asyncio.TimerHandle] = {}

    def has(self, key: Hashable) -> bool:
        return key in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    def start(self, key: Hashable, on_expiry: Callable[[], None]) -> bool:
        """
        Start the timer for ``key`` unless one is already pending.

        Returns:
            True if a new timer was started.
        """
        if key in self._timers:
            return False

        def fire() -> None:
            # Drop the entry first so the callback can start a fresh timer
            self._timers.pop(key, None)
            on_expiry()

        self._timers[key] = asyncio.get_running_loop().call_later(self.timeout, fire)
        return True

    def clear(self, key: Hashable) -> bool:
        """Cancel the timer for ``key``. Returns True if one was pending."""
        handle = self._timers.pop(key, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def clear_all(self) -> None:
        if self._timers:
            logger.debug(f"[{self.room_id}] clearing {len(self._timers)} transient detach timer(s)")
        for handle in self._timers.values():
            handle.cancel()
        self._timers.clear()
