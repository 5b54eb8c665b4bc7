# src/eduplan_reminders/tasks/notification_dispatcher.py

from __future__ import annotations

"""
Notification dispatcher.

Turns NotificationEvents into UI toasts and, for reminders, tells the task backend
that the reminder was sent.

The dispatcher decides:
- styling (variant, icon, how long the toast stays up)
- which events go on the persistent reminder board
- when to call mark_reminder_sent (exactly once per reminder event)

The sink decides how a toast is actually rendered.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum

from ..core.ports import NotificationSink, TaskSource
from .task_models import NotificationEvent, NotificationKind, Priority

logger = logging.getLogger(__name__)

OVERDUE_DURATION_MS = 10_000
DEFAULT_DURATION_MS = 5_000


class ToastVariant(StrEnum):
    DEFAULT = "default"
    DESTRUCTIVE = "destructive"


@dataclass(slots=True, frozen=True)
class Toast:
    title: str
    description: str
    variant: ToastVariant
    duration_ms: int
    icon: str
    event_id: str | None = None


_ICONS = {
    NotificationKind.OVERDUE: "alert-triangle",
    NotificationKind.UPCOMING: "calendar",
    NotificationKind.REMINDER: "bell",
}

_PRIORITY_STYLES = {
    Priority.HIGH: "red",
    Priority.MEDIUM: "yellow",
    Priority.LOW: "blue",
}


def build_toast(event: NotificationEvent) -> Toast:
    if event.kind == NotificationKind.OVERDUE:
        variant = ToastVariant.DESTRUCTIVE
        duration = OVERDUE_DURATION_MS
    else:
        variant = ToastVariant.DEFAULT
        duration = DEFAULT_DURATION_MS

    return Toast(
        title=event.title,
        description=event.message,
        variant=variant,
        duration_ms=duration,
        icon=_ICONS.get(event.kind, "clock"),
        event_id=event.id,
    )


def priority_style(priority: Priority | str) -> str:
    try:
        return _PRIORITY_STYLES[Priority(priority)]
    except ValueError:
        return "gray"


class ReminderBoard:
    """
    Persistent on-screen reminder list.

    Unlike toasts, entries stay until the user dismisses them.
    """

    def __init__(self) -> None:
        self._items: list[NotificationEvent] = []

    def add(self, event: NotificationEvent) -> None:
        self._items = [e for e in self._items if not e.dismissed]
        self._items.append(event)

    def dismiss(self, event_id: str) -> bool:
        for e in self._items:
            if e.id == event_id and not e.dismissed:
                e.dismissed = True
                return True
        return False

    def active(self) -> list[NotificationEvent]:
        return [e for e in self._items if not e.dismissed]

    def clear(self) -> None:
        self._items.clear()


class NotificationDispatcher:
    def __init__(
        self,
        sink: NotificationSink,
        source: TaskSource,
        *,
        board: ReminderBoard | None = None,
    ) -> None:
        self._sink = sink
        self._source = source
        self.board = board if board is not None else ReminderBoard()
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def pending_marks(self) -> int:
        return len(self._pending)

    def dispatch(self, event: NotificationEvent, user_id: str) -> None:
        """
        Show one event. Must be called from inside the running event loop
        (reminder events schedule a background mark-as-sent call).
        """
        try:
            self._sink.show(build_toast(event))
        except Exception:
            logger.exception("Notification sink failed event_id=%s", event.id)
        event.shown = True

        if event.kind != NotificationKind.REMINDER:
            return

        self.board.add(event)

        t = asyncio.get_running_loop().create_task(self._mark_sent(event.task_id, user_id))
        self._pending.add(t)
        t.add_done_callback(self._pending.discard)

    def dispatch_all(self, events: list[NotificationEvent], user_id: str) -> None:
        for event in events:
            self.dispatch(event, user_id)

    async def _mark_sent(self, task_id: str, user_id: str) -> None:
        # No retry: a lost update may repeat the reminder after a restart.
        try:
            task = await self._source.mark_reminder_sent(task_id, user_id)
        except Exception:
            logger.exception("mark_reminder_sent failed task_id=%s", task_id)
            return

        if task is None:
            logger.warning("mark_reminder_sent returned nothing task_id=%s", task_id)
            return
        if not task.reminder.reminder_sent:
            # Assignees may only toggle completion; the backend keeps the flag.
            logger.debug("Backend kept reminderSent=false task_id=%s user_id=%s", task_id, user_id)
            return
        logger.info("Reminder marked as sent task_id=%s", task_id)

    async def drain(self) -> None:
        """Wait for in-flight mark-as-sent calls."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
