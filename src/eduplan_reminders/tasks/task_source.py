# src/eduplan_reminders/tasks/task_source.py

from __future__ import annotations

import asyncio
import logging
from datetime import date, timedelta

from ..core.ports import TaskSource
from .task_models import Task
from .task_store import CalendarTaskStore, TaskAccessError, TaskNotFoundError
from .time_utils import TimeFormatError, parse_date

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_DAYS = 7


class TaskWindowLoader:
    """
    Loads the tasks a user should be notified about: [today, today + window_days].

    The backend may return more than asked for (the calendar API ignores the range),
    so the window is re-applied here.
    """

    def __init__(self, source: TaskSource, *, window_days: int = DEFAULT_WINDOW_DAYS) -> None:
        self.source = source
        self.window_days = max(0, int(window_days))

    def window(self, today: date | None = None) -> tuple[date, date]:
        start = today or date.today()
        return start, start + timedelta(days=self.window_days)

    async def load(self, user_id: str, today: date | None = None) -> list[Task] | None:
        """
        Fetch tasks for user_id.

        Returns None when the fetch failed so the caller can keep its previous list.
        """
        start, end = self.window(today)
        try:
            tasks = await self.source.list_tasks(user_id, start, end)
        except Exception:
            logger.exception("Task fetch failed user_id=%s range=%s..%s", user_id, start, end)
            return None

        out: list[Task] = []
        for task in tasks:
            try:
                day = parse_date(task.date)
            except TimeFormatError:
                logger.warning("Dropping task %s with bad date %r", task.id, task.date)
                continue
            if start <= day <= end:
                out.append(task)

        logger.debug(
            "Loaded %d/%d task(s) user_id=%s range=%s..%s",
            len(out),
            len(tasks),
            user_id,
            start,
            end,
        )
        return out


class StoreTaskSource:
    """TaskSource backed by the local SQLite store (sqlite calls run in a worker thread)."""

    def __init__(self, store: CalendarTaskStore) -> None:
        self.store = store

    async def list_tasks(self, user_id: str, start: date, end: date) -> list[Task]:
        return await asyncio.to_thread(self.store.list_tasks_for_user, user_id, start=start, end=end)

    async def mark_reminder_sent(self, task_id: str, user_id: str) -> Task | None:
        try:
            return await asyncio.to_thread(self.store.mark_reminder_sent, task_id, user_id)
        except (TaskNotFoundError, TaskAccessError) as e:
            logger.warning("mark_reminder_sent rejected task_id=%s: %s", task_id, e)
            return None
