# src/eduplan_reminders/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the reminder core.

The scheduler depends on Protocols instead of concrete implementations.
This keeps the task backend (HTTP API / local SQLite) and the UI sink swappable
and makes testing easier.
"""

from datetime import date
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..tasks.notification_dispatcher import Toast
    from ..tasks.task_models import Task


class TaskSource(Protocol):
    """
    Where calendar tasks come from.

    Access rules (creator / assignee) belong to the backend, not to the caller.
    """

    async def list_tasks(self, user_id: str, start: date, end: date) -> list[Task]: ...

    async def mark_reminder_sent(self, task_id: str, user_id: str) -> Task | None: ...


class NotificationSink(Protocol):
    """
    UI-side port: how the dispatcher shows a transient notification.

    The sink decides rendering (console line, desktop toast, web push, ...).
    """

    def show(self, toast: Toast) -> None: ...
