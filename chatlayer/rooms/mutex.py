"""Priority mutex for room lifecycle operations.

Only one lifecycle operation runs at a time. When the mutex frees up, the
waiting operation with the highest precedence goes next, and operations of
equal precedence go in arrival order. This lets an internal failure handler
jump ahead of a user ``attach()`` that is already queued.
"""

from __future__ import annotations

import asyncio
import heapq
import itertools
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from loguru import logger

T = TypeVar("T")

Operation = Callable[[], Awaitable[T]]


class OperationPrecedence(int, Enum):
    """Precedence of lifecycle operations. Higher values run first."""
    ATTACH_OR_DETACH = 0
    RELEASE = 1
    INTERNAL = 2


class PriorityMutex:
    """
    Async mutex whose waiters are served by precedence, then FIFO.

    A caller's place in the queue is taken synchronously, at the moment
    ``run_exclusive`` starts or ``schedule`` is called, never later. Code
    running inside the mutex must use ``schedule`` (not ``await
    run_exclusive``) to queue follow-up work, otherwise it would wait on
    itself.
    """

    def __init__(self, name: str = ""):
        self.name = name
        self._locked = False
        self._waiters: list[tuple[int, int, asyncio.Future]] = []
        self._arrivals = itertools.count()

    @property
    def locked(self) -> bool:
        return self._locked

    @property
    def pending(self) -> int:
        """Number of operations waiting for the mutex."""
        return sum(1 for _, _, ticket in self._waiters if not ticket.done())

    async def run_exclusive(self, operation: Operation[T], precedence: OperationPrecedence) -> T:
        """Run ``operation`` once the mutex is ours and return its result."""
        return await self._run(self._enqueue(precedence), operation)

    def schedule(self, operation: Operation[T], precedence: OperationPrecedence) -> "asyncio.Task[T]":
        """Queue ``operation`` now and run it in a background task."""
        ticket = self._enqueue(precedence)
        return asyncio.ensure_future(self._run(ticket, operation))

    def _enqueue(self, precedence: OperationPrecedence) -> asyncio.Future:
        ticket = asyncio.get_running_loop().create_future()
        if not self._locked and not self._waiters:
            self._locked = True
            ticket.set_result(None)
        else:
            heapq.heappush(self._waiters, (-int(precedence), next(self._arrivals), ticket))
            logger.trace(f"[{self.name}] queued {precedence.name} operation ({len(self._waiters)} waiting)")
        return ticket

    async def _run(self, ticket: asyncio.Future, operation: Operation[T]) -> T:
        try:
            await ticket
        except asyncio.CancelledError:
            # Ownership may already have been handed to us before the cancel landed
            if ticket.done() and not ticket.cancelled():
                self._release()
            else:
                ticket.cancel()
            raise
        try:
            return await operation()
        finally:
            self._release()

    def _release(self) -> None:
        while self._waiters:
            _, _, ticket = heapq.heappop(self._waiters)
            if not ticket.done():
                # Hand over directly; the mutex stays locked
                ticket.set_result(None)
                return
        self._locked = False
