# src/eduplan_reminders/tasks/reminder_scheduler.py

from __future__ import annotations

"""
Reminder scheduler.

A small polling loop that:
- loads the current user's tasks when the user becomes available,
- re-evaluates the loaded tasks against the clock every interval,
- hands new notification events to the dispatcher,
- optionally refetches tasks on a coarser cadence.

States:
- IDLE:   no user, no timer
- ACTIVE: user present, timer running

Evaluation passes never overlap: the timer sleeps a full interval after each pass.
"""

import asyncio
import contextlib
import logging
import time
from collections.abc import Callable
from datetime import datetime, tzinfo
from enum import StrEnum

from .notification_dispatcher import NotificationDispatcher
from .notification_evaluator import NotificationHistory, evaluate_notifications
from .task_models import NotificationEvent, Task
from .task_source import TaskWindowLoader

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class SchedulerState(StrEnum):
    IDLE = "idle"
    ACTIVE = "active"


def system_clock(tz: tzinfo | None = None) -> Clock:
    if tz is None:
        return lambda: datetime.now().astimezone()
    return lambda: datetime.now(tz)


class ReminderScheduler:
    def __init__(
        self,
        loader: TaskWindowLoader,
        dispatcher: NotificationDispatcher,
        *,
        interval_seconds: float = 60.0,
        refetch_interval_seconds: float = 0.0,
        clock: Clock | None = None,
        tz: tzinfo | None = None,
    ) -> None:
        self.loader = loader
        self.dispatcher = dispatcher
        self.interval_seconds = max(0.01, float(interval_seconds))
        self.refetch_interval_seconds = max(0.0, float(refetch_interval_seconds))
        self.tz = tz
        self._clock = clock or system_clock(tz)

        self.state = SchedulerState.IDLE
        self.user_id: str | None = None
        self.tasks: list[Task] = []
        self.history = NotificationHistory()

        self._timer: asyncio.Task[None] | None = None
        # Bumped on every teardown; results from an older generation are dropped.
        self._generation = 0
        self._last_fetch: float | None = None

    @property
    def is_active(self) -> bool:
        return self.state == SchedulerState.ACTIVE

    async def set_user(self, user_id: str | None) -> None:
        """
        React to login/logout/user switch.

        Idle -> Active: load tasks, evaluate once right away, then start the timer.
        Active -> Idle: cancel the timer and forget the session.
        """
        user_id = (user_id or "").strip() or None

        if self.is_active and user_id == self.user_id:
            return

        if self.is_active:
            await self._deactivate()

        if user_id is None:
            return

        self.user_id = user_id
        self.state = SchedulerState.ACTIVE
        gen = self._generation
        logger.info("Scheduler active user_id=%s interval=%.1fs", user_id, self.interval_seconds)

        await self.reload()
        if gen != self._generation:
            return

        try:
            await self.tick(refetch=False)
        except Exception:
            logger.exception("Initial evaluation pass failed user_id=%s", user_id)

        if gen != self._generation:
            return
        self._timer = asyncio.create_task(self._run(gen), name=f"reminder-scheduler-{user_id}")

    async def reload(self) -> bool:
        """Fetch tasks now. On failure the cached list stays in place."""
        user_id = self.user_id
        if user_id is None:
            return False

        gen = self._generation
        tasks = await self.loader.load(user_id, today=self._clock().date())

        if gen != self._generation:
            logger.debug("Discarding stale task fetch user_id=%s", user_id)
            return False
        if tasks is None:
            logger.warning("Keeping %d cached task(s) after failed fetch", len(self.tasks))
            return False

        self.tasks = tasks
        self._last_fetch = time.monotonic()
        return True

    def _refetch_due(self) -> bool:
        if self.refetch_interval_seconds <= 0:
            return False
        if self._last_fetch is None:
            return True
        return time.monotonic() - self._last_fetch >= self.refetch_interval_seconds

    async def tick(self, *, refetch: bool | None = None) -> list[NotificationEvent]:
        """One evaluation pass. Returns the events that were dispatched."""
        if not self.is_active or self.user_id is None:
            return []

        if refetch is None:
            refetch = self._refetch_due()
        if refetch:
            gen = self._generation
            await self.reload()
            if gen != self._generation:
                return []

        now = self._clock()
        events = evaluate_notifications(self.tasks, now, self.history, tz=self.tz)
        if events:
            logger.info("Dispatching %d notification(s) user_id=%s", len(events), self.user_id)
            self.dispatcher.dispatch_all(events, self.user_id)
        return events

    async def _run(self, gen: int) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            if gen != self._generation:
                return
            try:
                await self.tick()
            except Exception:
                logger.exception("Evaluation pass failed user_id=%s", self.user_id)

    async def _deactivate(self) -> None:
        self._generation += 1

        timer, self._timer = self._timer, None
        if timer is not None:
            timer.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await timer

        logger.info("Scheduler idle (was user_id=%s)", self.user_id)
        self.state = SchedulerState.IDLE
        self.user_id = None
        self.tasks = []
        self._last_fetch = None
        self.history.clear()
        self.dispatcher.board.clear()

    async def stop(self) -> None:
        """Go idle and wait for in-flight mark-as-sent calls."""
        if self.is_active:
            await self._deactivate()
        await self.dispatcher.drain()
