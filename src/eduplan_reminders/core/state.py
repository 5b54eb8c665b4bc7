# src/eduplan_reminders/core/state.py

from __future__ import annotations

from collections.abc import Coroutine
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, TypeVar

from ..tasks.reminder_scheduler import ReminderScheduler
from ..tasks.task_store import CalendarTaskStore
from .ports import TaskSource

if TYPE_CHECKING:
    from ..cli.runner import SchedulerRunner

T = TypeVar("T")


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: object

    source: TaskSource
    scheduler: ReminderScheduler
    # Only set when running against the local SQLite store.
    store: CalendarTaskStore | None = None
    runner: SchedulerRunner | None = None

    def run(self, coro: Coroutine[Any, Any, T], timeout: float = 30.0) -> T:
        """Run a coroutine on the scheduler's event loop from a sync caller (console thread)."""
        if self.runner is None:
            coro.close()
            raise RuntimeError("Scheduler loop is not running")
        return self.runner.call(coro, timeout=timeout)
