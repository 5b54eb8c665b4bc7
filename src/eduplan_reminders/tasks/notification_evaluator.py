# src/eduplan_reminders/tasks/notification_evaluator.py

from __future__ import annotations

"""
Notification evaluator.

Given the loaded tasks and the current time, decide which notifications fire now:
- overdue:  scheduled < now, task not completed
- upcoming: scheduled - 24h <= now < scheduled, task not completed
- reminder: reminders enabled and unsent, scheduled - remind_before <= now <= scheduled

Each (task_id, kind) fires at most once per NotificationHistory. The history is owned
by the caller (the scheduler) and survives across ticks.
"""

import itertools
import logging
import math
from collections.abc import Iterable
from datetime import datetime, timedelta, tzinfo

from .task_models import NotificationEvent, NotificationKind, Priority, Task
from .time_utils import TimeFormatError, format_relative_past

logger = logging.getLogger(__name__)

UPCOMING_WINDOW = timedelta(hours=24)


class NotificationHistory:
    """
    Which (task_id, kind) pairs already fired in this session.

    Not thread-safe: the scheduler runs evaluation passes strictly one after another.
    """

    def __init__(self) -> None:
        self._fired: set[tuple[str, NotificationKind]] = set()
        self._seq = itertools.count(1)

    def __len__(self) -> int:
        return len(self._fired)

    def __contains__(self, key: object) -> bool:
        return key in self._fired

    def mark_fired(self, task_id: str, kind: NotificationKind) -> bool:
        """Record a firing. Returns False if it was already recorded."""
        key = (task_id, kind)
        if key in self._fired:
            return False
        self._fired.add(key)
        return True

    def next_event_id(self, task_id: str, kind: NotificationKind) -> str:
        return f"{kind.value}-{task_id}-{next(self._seq)}"

    def clear(self) -> None:
        self._fired.clear()


def _overdue_event(task: Task, scheduled: datetime, now: datetime, event_id: str) -> NotificationEvent:
    return NotificationEvent(
        id=event_id,
        task_id=task.id,
        kind=NotificationKind.OVERDUE,
        title=f"Overdue: {task.title}",
        message=f"This {task.kind.value} was due {format_relative_past(scheduled, now)}",
        # Overdue always escalates.
        priority=Priority.HIGH,
        scheduled_at=scheduled,
    )


def _upcoming_event(task: Task, scheduled: datetime, now: datetime, event_id: str) -> NotificationEvent:
    hours = math.ceil((scheduled - now).total_seconds() / 3600)
    return NotificationEvent(
        id=event_id,
        task_id=task.id,
        kind=NotificationKind.UPCOMING,
        title=f"Upcoming: {task.title}",
        message=f"{task.kind.label} due in {hours} hour{'' if hours == 1 else 's'}",
        priority=task.priority,
        scheduled_at=scheduled,
    )


def _reminder_event(task: Task, scheduled: datetime, event_id: str) -> NotificationEvent:
    return NotificationEvent(
        id=event_id,
        task_id=task.id,
        kind=NotificationKind.REMINDER,
        title=task.title,
        message=f"{task.kind.label} due in {task.reminder.remind_before_minutes} minutes",
        priority=task.priority,
        scheduled_at=scheduled,
    )


def _due_kinds(task: Task, scheduled: datetime, now: datetime) -> list[NotificationKind]:
    # Completed tasks are silent, pending reminder windows included.
    if task.is_completed:
        return []

    kinds: list[NotificationKind] = []

    if scheduled < now:
        kinds.append(NotificationKind.OVERDUE)

    if scheduled - UPCOMING_WINDOW <= now < scheduled:
        kinds.append(NotificationKind.UPCOMING)

    rc = task.reminder
    if rc.enabled and not rc.reminder_sent:
        remind_from = scheduled - timedelta(minutes=rc.remind_before_minutes)
        if remind_from <= now <= scheduled:
            kinds.append(NotificationKind.REMINDER)

    return kinds


def evaluate_notifications(
    tasks: Iterable[Task],
    now: datetime,
    history: NotificationHistory,
    *,
    tz: tzinfo | None = None,
) -> list[NotificationEvent]:
    """
    Return the notifications that should fire at `now`, marking each in `history`.

    Calling this again with the same inputs and the same history returns [].
    """
    events: list[NotificationEvent] = []

    for task in tasks:
        try:
            scheduled = task.scheduled_at(tz)
        except TimeFormatError:
            logger.warning(
                "Skipping task %s: unreadable date/time %r %r", task.id, task.date, task.time
            )
            continue

        for kind in _due_kinds(task, scheduled, now):
            if not history.mark_fired(task.id, kind):
                continue

            event_id = history.next_event_id(task.id, kind)
            if kind == NotificationKind.OVERDUE:
                events.append(_overdue_event(task, scheduled, now, event_id))
            elif kind == NotificationKind.UPCOMING:
                events.append(_upcoming_event(task, scheduled, now, event_id))
            else:
                events.append(_reminder_event(task, scheduled, event_id))

    if events:
        logger.debug(
            "Evaluated %d notification(s): %s",
            len(events),
            ", ".join(e.id for e in events),
        )
    return events
