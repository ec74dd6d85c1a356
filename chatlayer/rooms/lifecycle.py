"""Room lifecycle manager.

A room is made of several features, each on its own transport channel. The
manager attaches, detaches and releases those channels as a single unit and
turns their individual state changes into one room status:

- ``attach()`` attaches every contributor in order. A contributor that ends
  up ``failed`` fails the room; one that ends up ``suspended`` puts the room
  into a retry loop that lasts until everything is attached again or the room
  fails.
- ``detach()`` detaches every contributor, retrying until they are all
  detached (or failed, which fails the room).
- ``release()`` detaches whatever is still attached and retires the room.

While one of these operations owns the contributors, their state changes do
not touch the room status directly. Discontinuities seen in that window are
parked and delivered once the room is attached again.

All operations go through a ``PriorityMutex``. Work the manager starts on its
own (failure wind-down, suspension retry) runs at ``INTERNAL`` precedence and
overtakes any user ``attach()``/``detach()`` still waiting for the mutex.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import partial
from typing import Awaitable, Callable, Optional, Sequence

from loguru import logger

from chatlayer.channels.base import STATE_EVENTS, ChannelEvent, ChannelListener, ChannelState, ChannelStateChange
from chatlayer.config.schema import LifecycleConfig
from chatlayer.errors import ChatError
from chatlayer.metrics import get_metrics
from chatlayer.rooms.contributor import Contributor
from chatlayer.rooms.discontinuity import DiscontinuityBuffer
from chatlayer.rooms.mutex import OperationPrecedence, PriorityMutex
from chatlayer.rooms.status import RoomStatus, RoomStatusChange, RoomStatusHolder
from chatlayer.rooms.transient import TransientFaultTracker


class WindDownRetryError(Exception):
    """A contributor did not detach but has not failed either; the wind-down should be retried."""

    def __init__(self, contributor: Contributor, cause: BaseException):
        super().__init__(f"detach of {contributor.name} failed, retry: {cause}")
        self.contributor = contributor
        self.__cause__ = cause


@dataclass
class AttachmentResult:
    """Outcome of one pass over every contributor's ``attach()``."""
    status: RoomStatus
    error: Optional[ChatError] = None
    failed_contributor: Optional[Contributor] = None


@dataclass
class _ContributorListeners:
    on_update: ChannelListener
    on_state_change: ChannelListener


class RoomLifecycleManager:
    """
    Drives a fixed, ordered set of contributors through one room lifecycle.

    Args:
        status: Holder the consolidated room status is written to.
        contributors: Features in attach order. Never changes afterwards.
        config: Transient-detach window and retry delay.
        room_id: Used for log context; defaults to ``status.room_id``.
    """

    def __init__(
        self,
        status: RoomStatusHolder,
        contributors: Sequence[Contributor],
        config: Optional[LifecycleConfig] = None,
        room_id: Optional[str] = None,
    ):
        self._config = config or LifecycleConfig()
        self._status = status
        self._room_id = room_id or status.room_id
        self._contributors: tuple[Contributor, ...] = tuple(contributors)
        self._mutex = PriorityMutex(self._room_id)
        self._transient = TransientFaultTracker(self._config.transient_detach_timeout, self._room_id)
        self._pending_discontinuities: DiscontinuityBuffer[Contributor] = DiscontinuityBuffer(self._contributors)
        self._first_attach_completed: set[Contributor] = set()
        self._listeners: dict[Contributor, _ContributorListeners] = {}
        self._background: set[asyncio.Task] = set()

        # Only an already-attached room listens to contributor changes straight away
        self._operation_in_progress = status.current != RoomStatus.ATTACHED
        self._release_in_progress = False

        self._register_listeners()

    @property
    def status(self) -> RoomStatusHolder:
        return self._status

    @property
    def contributors(self) -> tuple[Contributor, ...]:
        return self._contributors

    @property
    def operation_in_progress(self) -> bool:
        return self._operation_in_progress

    @property
    def release_in_progress(self) -> bool:
        return self._release_in_progress

    # ------------------------------------------------------------------
    # Contributor event dispatch
    # ------------------------------------------------------------------

    def _register_listeners(self) -> None:
        for contributor in self._contributors:
            listeners = _ContributorListeners(
                on_update=partial(self._dispatch_update, contributor),
                on_state_change=partial(self._dispatch_state_change, contributor),
            )
            contributor.on(listeners.on_update, [ChannelEvent.UPDATE])
            contributor.on(listeners.on_state_change, STATE_EVENTS)
            self._listeners[contributor] = listeners

    def dispose(self) -> None:
        """Stop listening to contributors and cancel pending timers."""
        for contributor, listeners in self._listeners.items():
            contributor.off(listeners.on_update)
            contributor.off(listeners.on_state_change)
        self._listeners.clear()
        self._transient.clear_all()

    def _dispatch_update(self, contributor: Contributor, change: ChannelStateChange) -> None:
        if contributor not in self._first_attach_completed:
            logger.debug(f"[{self._room_id}] ignoring update for {contributor.name}; first attach not complete")
            return

        if change.resumed:
            logger.debug(f"[{self._room_id}] update for {contributor.name} was a resume")
            return

        if self._operation_in_progress:
            logger.debug(f"[{self._room_id}] queuing discontinuity for {contributor.name}; operation in progress")
            self._pending_discontinuities.record(contributor, change.reason)
            return

        logger.debug(f"[{self._room_id}] discontinuity on {contributor.name}")
        contributor.discontinuity_detected(change.reason)

    def _dispatch_state_change(self, contributor: Contributor, change: ChannelStateChange) -> None:
        if self._operation_in_progress:
            logger.debug(
                f"[{self._room_id}] ignoring {contributor.name} -> {change.current.value}; operation in progress"
            )
            # A resume can fail between operation steps; keep it for later
            if (
                change.current == ChannelState.ATTACHED
                and not change.resumed
                and contributor in self._first_attach_completed
            ):
                logger.debug(f"[{self._room_id}] resume failure on {contributor.name}")
                self._pending_discontinuities.record(contributor, change.reason)
            return

        if change.current == ChannelState.FAILED:
            self._on_contributor_failed(contributor, change.reason)
        elif change.current == ChannelState.ATTACHED:
            self._on_contributor_attached(contributor)
        elif change.current == ChannelState.SUSPENDED:
            self._on_contributor_suspended(contributor, change.reason)
        elif change.current == ChannelState.ATTACHING:
            self._on_contributor_reattaching(contributor, change.reason)

    def _on_contributor_failed(self, contributor: Contributor, reason: Optional[BaseException]) -> None:
        logger.warning(f"[{self._room_id}] {contributor.name} failed; failing room")
        self._transient.clear_all()
        self._operation_in_progress = True
        self._status.set_status(RoomStatus.FAILED, reason)
        self._schedule_internal(partial(self._wind_down_best_effort, contributor))

    def _on_contributor_attached(self, contributor: Contributor) -> None:
        if self._transient.clear(contributor):
            logger.debug(f"[{self._room_id}] transient detach on {contributor.name} resolved")

        if self._status.current != RoomStatus.ATTACHED and all(
            c.state == ChannelState.ATTACHED for c in self._contributors
        ):
            logger.debug(f"[{self._room_id}] all features attached")
            self._status.set_status(RoomStatus.ATTACHED)

    def _on_contributor_suspended(self, contributor: Contributor, reason: Optional[BaseException]) -> None:
        logger.warning(f"[{self._room_id}] {contributor.name} suspended")
        self._operation_in_progress = True
        self._transient.clear_all()
        self._status.set_status(RoomStatus.SUSPENDED, reason)
        self._schedule_internal(partial(self._retry_until_attached, contributor))

    def _on_contributor_reattaching(self, contributor: Contributor, reason: Optional[BaseException]) -> None:
        if self._transient.has(contributor):
            return
        logger.debug(f"[{self._room_id}] {contributor.name} re-attaching; starting transient detach timer")
        self._transient.start(contributor, partial(self._on_transient_timeout, contributor, reason))

    def _on_transient_timeout(self, contributor: Contributor, reason: Optional[BaseException]) -> None:
        # Still not back: show it, but stay optimistic that the transport recovers
        logger.debug(f"[{self._room_id}] {contributor.name} did not recover in time")
        self._status.set_status(RoomStatus.ATTACHING, reason)

    # ------------------------------------------------------------------
    # Attach
    # ------------------------------------------------------------------

    async def attach(self) -> None:
        """
        Attach every contributor.

        Raises:
            ChatError: If the room is released or releasing, or a contributor
                fails to attach. After a suspension the room keeps retrying in
                the background even though this call has raised.
        """
        logger.trace(f"[{self._room_id}] RoomLifecycleManager.attach()")
        await self._mutex.run_exclusive(self._attach, OperationPrecedence.ATTACH_OR_DETACH)

    async def _attach(self) -> None:
        current = self._status.current
        if current == RoomStatus.ATTACHED:
            return
        if current == RoomStatus.RELEASED:
            raise ChatError.room_is_released("attach")
        if current == RoomStatus.RELEASING:
            raise ChatError.room_is_releasing("attach")

        self._transient.clear_all()
        self._operation_in_progress = True
        self._status.set_status(RoomStatus.ATTACHING)

        result = await self._do_attach()

        if result.status == RoomStatus.FAILED:
            logger.debug(f"[{self._room_id}] room failed during attach; winding down")
            self._schedule_internal(self._wind_down_after_failed_attach)
            raise result.error

        if result.status == RoomStatus.SUSPENDED:
            logger.debug(f"[{self._room_id}] room suspended during attach; will retry")
            self._schedule_internal(partial(self._retry_until_attached, result.failed_contributor))
            raise result.error

    async def _do_attach(self) -> AttachmentResult:
        for contributor in self._contributors:
            try:
                logger.debug(f"[{self._room_id}] attaching {contributor.name}")
                await contributor.attach()
            except Exception as e:
                logger.error(f"[{self._room_id}] failed to attach {contributor.name}: {e}")
                get_metrics().incr("room.contributor.attach_failed", tags={"feature": contributor.name})
                error = ChatError.feature_attach_failed(contributor.attachment_error_code, e)

                # The contributor is left either suspended (retry) or failed (give up)
                if contributor.state == ChannelState.SUSPENDED:
                    status = RoomStatus.SUSPENDED
                elif contributor.state == ChannelState.FAILED:
                    status = RoomStatus.FAILED
                else:
                    raise ChatError.lifecycle_error(
                        f"unexpected channel state in attach: {contributor.state.value}"
                    ) from e

                self._status.set_status(status, error)
                return AttachmentResult(status=status, error=error, failed_contributor=contributor)

            self._first_attach_completed.add(contributor)

        self._status.set_status(RoomStatus.ATTACHED)
        self._operation_in_progress = False
        delivered = self._pending_discontinuities.flush(self._deliver_discontinuity)
        if delivered:
            logger.debug(f"[{self._room_id}] delivered {delivered} pending discontinuities")
        return AttachmentResult(status=RoomStatus.ATTACHED)

    @staticmethod
    def _deliver_discontinuity(contributor: Contributor, reason: Optional[BaseException]) -> None:
        contributor.discontinuity_detected(reason)

    async def _retry_until_attached(self, contributor: Contributor) -> None:
        """
        Wind down everything but ``contributor``, wait for it to come back and re-attach.

        Loops with whichever contributor is suspended next until the room is
        attached or has failed.
        """
        while True:
            logger.debug(f"[{self._room_id}] winding down all features except {contributor.name}")
            if not await self._wind_down_for_retry(contributor):
                return

            if contributor.state != ChannelState.ATTACHED:
                if not await self._wait_for_reattach(contributor):
                    return
                logger.debug(f"[{self._room_id}] {contributor.name} re-attached")

            self._status.set_status(RoomStatus.ATTACHING)
            result = await self._do_attach()

            if result.status == RoomStatus.ATTACHED:
                return

            if result.status == RoomStatus.FAILED:
                self._schedule_internal(self._wind_down_after_failed_attach)
                return

            contributor = result.failed_contributor
            get_metrics().incr("room.attach.retry")
            logger.debug(f"[{self._room_id}] {contributor.name} suspended on retry; going again")

    async def _wind_down_for_retry(self, contributor: Contributor) -> bool:
        """Returns False if the room failed while winding down."""
        while True:
            try:
                await self._wind_down(except_=contributor)
                return True
            except Exception as e:
                if self._status.current == RoomStatus.FAILED:
                    logger.debug(f"[{self._room_id}] room failed during wind down; abandoning retry")
                    return False
                logger.debug(f"[{self._room_id}] wind down failed, retrying: {e}")
                await asyncio.sleep(self._config.retry_delay)

    async def _wait_for_reattach(self, contributor: Contributor) -> bool:
        """Wait for ``contributor`` to reach attached (True) or failed (False)."""
        if contributor.state == ChannelState.FAILED:
            self._status.set_status(RoomStatus.FAILED, contributor.error_reason)
            return False

        outcome: asyncio.Future[bool] = asyncio.get_running_loop().create_future()

        def listener(change: ChannelStateChange) -> None:
            if outcome.done():
                return
            if change.current == ChannelState.ATTACHED:
                outcome.set_result(True)
            elif change.current == ChannelState.FAILED:
                self._status.set_status(RoomStatus.FAILED, change.reason)
                outcome.set_result(False)

        contributor.on(listener, [ChannelEvent.ATTACHED, ChannelEvent.FAILED])
        try:
            return await outcome
        finally:
            contributor.off(listener)

    # ------------------------------------------------------------------
    # Wind-down
    # ------------------------------------------------------------------

    async def _wind_down(self, except_: Optional[Contributor] = None) -> None:
        """
        Detach every contributor except ``except_``, in order.

        Every contributor is tried even if an earlier one fails. A contributor
        that fails outright fails the room and is raised as a ``ChatError``
        with its detachment code; any other detach error is raised as
        ``WindDownRetryError``.
        """
        hard_failure: Optional[ChatError] = None
        retry: Optional[WindDownRetryError] = None

        for contributor in self._contributors:
            # The excepted contributor is only detached once the room has failed
            if contributor is except_ and self._status.current != RoomStatus.FAILED:
                continue

            winding_down_for_good = self._status.current in (
                RoomStatus.FAILED,
                RoomStatus.RELEASING,
                RoomStatus.RELEASED,
            )
            if winding_down_for_good and contributor.state == ChannelState.FAILED:
                logger.debug(f"[{self._room_id}] skipping failed {contributor.name}")
                continue

            try:
                logger.debug(f"[{self._room_id}] detaching {contributor.name}")
                await contributor.detach()
            except Exception as e:
                get_metrics().incr("room.contributor.detach_failed", tags={"feature": contributor.name})
                if contributor.state == ChannelState.FAILED and self._status.current not in (
                    RoomStatus.FAILED,
                    RoomStatus.RELEASING,
                    RoomStatus.RELEASED,
                ):
                    error = ChatError.feature_detach_failed(contributor.detachment_error_code, e)
                    self._status.set_status(RoomStatus.FAILED, error)
                    hard_failure = hard_failure or error
                else:
                    logger.debug(f"[{self._room_id}] detach of {contributor.name} failed: {e}")
                    retry = retry or WindDownRetryError(contributor, e)

        if hard_failure is not None:
            raise hard_failure
        if retry is not None:
            raise retry

    async def _wind_down_after_failed_attach(self) -> None:
        """Keep winding down until every channel is detached or failed. Never raises."""
        while True:
            try:
                await self._wind_down()
                return
            except Exception as e:
                logger.debug(f"[{self._room_id}] wind down after failed attach failed, retrying: {e}")
                get_metrics().incr("room.wind_down.retry")
                await asyncio.sleep(self._config.retry_delay)

    async def _wind_down_best_effort(self, contributor: Contributor) -> None:
        try:
            await self._wind_down(except_=contributor)
        except Exception as e:
            logger.error(f"[{self._room_id}] failed to detach features after {contributor.name} failed: {e}")

    # ------------------------------------------------------------------
    # Detach
    # ------------------------------------------------------------------

    async def detach(self) -> None:
        """
        Detach every contributor.

        Raises:
            ChatError: If the room is released, releasing or failed, or a
                contributor fails while detaching.
        """
        logger.trace(f"[{self._room_id}] RoomLifecycleManager.detach()")
        await self._mutex.run_exclusive(self._detach, OperationPrecedence.ATTACH_OR_DETACH)

    async def _detach(self) -> None:
        current = self._status.current
        if current == RoomStatus.DETACHED:
            return
        if current == RoomStatus.RELEASED:
            raise ChatError.room_is_released("detach")
        if current == RoomStatus.RELEASING:
            raise ChatError.room_is_releasing("detach")
        if current == RoomStatus.FAILED:
            raise ChatError.room_in_failed_state("detach")

        self._operation_in_progress = True
        self._transient.clear_all()
        self._status.set_status(RoomStatus.DETACHING)
        await self._do_detach()

    async def _do_detach(self) -> None:
        detach_error: Optional[BaseException] = None
        while True:
            try:
                await self._wind_down()
                break
            except WindDownRetryError as e:
                logger.debug(f"[{self._room_id}] retrying detach: {e}")
            except Exception as e:
                # A feature failed outright; the room is now failed. Finish winding down first
                logger.error(f"[{self._room_id}] feature failed during detach: {e}")
                detach_error = detach_error or e
            get_metrics().incr("room.detach.retry")
            await asyncio.sleep(self._config.retry_delay)

        if self._status.current != RoomStatus.FAILED:
            self._status.set_status(RoomStatus.DETACHED)
            return

        raise detach_error or ChatError.lifecycle_error("unknown error in detach")

    # ------------------------------------------------------------------
    # Release
    # ------------------------------------------------------------------

    async def release(self) -> None:
        """
        Release the room. Safe to call any number of times.

        A call made while a release is running waits for that release.

        Raises:
            ChatError: ``PREVIOUS_OPERATION_FAILED`` if the release being
                waited on ended in something other than ``RELEASED``.
        """
        logger.trace(f"[{self._room_id}] RoomLifecycleManager.release()")
        if self._release_in_progress:
            await self._wait_for_release()
            return
        await self._mutex.run_exclusive(self._release, OperationPrecedence.RELEASE)

    async def _release(self) -> None:
        current = self._status.current
        if current == RoomStatus.RELEASED:
            return
        if current == RoomStatus.DETACHED:
            self._status.set_status(RoomStatus.RELEASED)
            return

        self._transient.clear_all()
        self._operation_in_progress = True
        self._release_in_progress = True
        self._status.set_status(RoomStatus.RELEASING)

        while True:
            try:
                await self._detach_for_release()
                break
            except Exception as e:
                logger.error(f"[{self._room_id}] failed to release room, retrying: {e}")
                get_metrics().incr("room.release.retry")
                await asyncio.sleep(self._config.retry_delay)

        self._release_in_progress = False
        self._status.set_status(RoomStatus.RELEASED)

    async def _detach_for_release(self) -> None:
        first_error: Optional[BaseException] = None
        for contributor in self._contributors:
            # Failed and detached channels need nothing more
            if contributor.state in (ChannelState.FAILED, ChannelState.DETACHED):
                logger.debug(f"[{self._room_id}] release: skipping {contributor.state.value} {contributor.name}")
                continue
            try:
                await contributor.detach()
            except Exception as e:
                logger.error(
                    f"[{self._room_id}] release: failed to detach {contributor.name} "
                    f"(state {contributor.state.value}): {e}"
                )
                first_error = first_error or e
        if first_error is not None:
            raise first_error

    async def _wait_for_release(self) -> None:
        done: asyncio.Future[None] = asyncio.get_running_loop().create_future()

        def listener(change: RoomStatusChange) -> None:
            if done.done():
                return
            if change.current == RoomStatus.RELEASED:
                done.set_result(None)
                return
            logger.error(f"[{self._room_id}] release in progress ended in {change.current.value}")
            done.set_exception(ChatError.previous_operation_failed(change.error))

        self._status.on_change_once(listener)
        await done

    # ------------------------------------------------------------------
    # Internal scheduling
    # ------------------------------------------------------------------

    def _schedule_internal(self, operation: Callable[[], Awaitable[None]]) -> asyncio.Task:
        """Queue ``operation`` at INTERNAL precedence without waiting for it."""
        task = self._mutex.schedule(operation, OperationPrecedence.INTERNAL)
        self._background.add(task)
        task.add_done_callback(self._on_background_done)
        return task

    def _on_background_done(self, task: asyncio.Task) -> None:
        self._background.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"[{self._room_id}] internal lifecycle operation failed: {error}")
