"""Deferred discontinuity notifications."""

from __future__ import annotations

from typing import Callable, Generic, Hashable, Optional, Sequence, TypeVar

from loguru import logger

K = TypeVar("K", bound=Hashable)


class DiscontinuityBuffer(Generic[K]):
    """
    Holds at most one pending discontinuity reason per contributor.

    While a lifecycle operation owns the contributors, discontinuities are
    parked here; a newer reason for the same contributor replaces the older
    one. ``flush`` delivers them in contributor order and empties the buffer.
    """

    def __init__(self, order: Sequence[K]):
        self._order = tuple(order)
        self._pending: dict[K, Optional[BaseException]] = {}

    def record(self, key: K, reason: Optional[BaseException]) -> None:
        if key in self._pending:
            logger.debug(f"replacing pending discontinuity for {key!r}")
        self._pending[key] = reason

    def has(self, key: K) -> bool:
        return key in self._pending

    def get(self, key: K) -> Optional[BaseException]:
        return self._pending.get(key)

    def __len__(self) -> int:
        return len(self._pending)

    def clear(self) -> None:
        self._pending.clear()

    def flush(self, deliver: Callable[[K, Optional[BaseException]], None]) -> int:
        """
        Deliver every pending reason, then clear.

        Returns:
            Number of discontinuities delivered.
        """
        if not self._pending:
            return 0
        pending, self._pending = self._pending, {}
        delivered = 0
        for key in self._order:
            if key in pending:
                deliver(key, pending[key])
                delivered += 1
        return delivered
