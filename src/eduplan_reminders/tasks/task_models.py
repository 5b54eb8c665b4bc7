# src/eduplan_reminders/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, tzinfo
from enum import StrEnum
from typing import Any

from .time_utils import TimeFormatError, parse_clock_12h, parse_date, parse_wall_clock_time

DEFAULT_REMIND_BEFORE_MINUTES = 60


class InvalidTaskError(ValueError):
    """Raised when a task payload cannot be decoded into a Task."""


class TaskKind(StrEnum):
    ASSIGNMENT = "assignment"
    REMINDER = "reminder"
    EVENT = "event"
    MEETING = "meeting"

    @property
    def label(self) -> str:
        return self.value.capitalize()


class Priority(StrEnum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class NotificationKind(StrEnum):
    UPCOMING = "upcoming"
    OVERDUE = "overdue"
    REMINDER = "reminder"


@dataclass(slots=True)
class ReminderConfig:
    enabled: bool = False
    remind_before_minutes: int = DEFAULT_REMIND_BEFORE_MINUTES
    reminder_sent: bool = False

    @classmethod
    def from_payload(cls, raw: dict[str, Any] | None) -> ReminderConfig:
        if not raw:
            return cls()
        if not isinstance(raw, dict):
            raise InvalidTaskError(f"'reminderSettings' must be an object, got {type(raw).__name__}")
        try:
            before = int(raw.get("remindBefore") or DEFAULT_REMIND_BEFORE_MINUTES)
        except (TypeError, ValueError) as e:
            raise InvalidTaskError(f"Invalid remindBefore: {raw.get('remindBefore')!r}") from e
        if before < 0:
            raise InvalidTaskError(f"remindBefore must be >= 0, got {before}")
        return cls(
            enabled=bool(raw.get("enabled", False)),
            remind_before_minutes=before,
            reminder_sent=bool(raw.get("reminderSent", False)),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "enabled": self.enabled,
            "remindBefore": self.remind_before_minutes,
            "reminderSent": self.reminder_sent,
        }


@dataclass(slots=True, frozen=True)
class Creator:
    id: str
    name: str = ""
    role: str = ""


@dataclass(slots=True)
class Task:
    """
    A schedulable calendar item.

    date + time (12-hour clock) define the scheduled instant; see scheduled_at().
    """

    id: str
    title: str
    date: str
    time: str
    kind: TaskKind
    priority: Priority
    reminder: ReminderConfig
    created_by: Creator
    is_completed: bool = False

    description: str = ""
    assigned_to: list[str] = field(default_factory=list)
    created_at: str | None = None

    def scheduled_at(self, tz: tzinfo | None = None) -> datetime:
        return parse_wall_clock_time(self.date, self.time, tz)

    def can_access(self, user_id: str) -> bool:
        return self.created_by.id == user_id or user_id in self.assigned_to

    @classmethod
    def from_payload(cls, raw: dict[str, Any]) -> Task:
        """
        Decode the calendar API JSON shape.

        date and time are validated here so a bad row is rejected at the boundary
        instead of silently never (or always) firing.
        """
        if not isinstance(raw, dict):
            raise InvalidTaskError(f"Task payload must be an object, got {type(raw).__name__}")

        task_id = raw.get("id")
        title = str(raw.get("title") or "").strip()
        if task_id is None or str(task_id) == "":
            raise InvalidTaskError("Task payload is missing 'id'")
        if not title:
            raise InvalidTaskError(f"Task {task_id} is missing 'title'")

        date_s = str(raw.get("date") or "")
        time_s = str(raw.get("time") or "")
        try:
            parse_date(date_s)
            parse_clock_12h(time_s)
        except TimeFormatError as e:
            raise InvalidTaskError(f"Task {task_id}: {e}") from e

        try:
            kind = TaskKind(raw.get("type") or TaskKind.REMINDER)
            priority = Priority(raw.get("priority") or Priority.MEDIUM)
        except ValueError as e:
            raise InvalidTaskError(f"Task {task_id}: {e}") from e

        creator_raw = raw.get("createdBy") or {}
        if not isinstance(creator_raw, dict):
            raise InvalidTaskError(f"Task {task_id}: 'createdBy' must be an object")

        assigned = raw.get("assignedTo") or []
        if not isinstance(assigned, list):
            assigned = []

        return cls(
            id=str(task_id),
            title=title,
            date=date_s,
            time=time_s,
            kind=kind,
            priority=priority,
            reminder=ReminderConfig.from_payload(raw.get("reminderSettings")),
            created_by=Creator(
                id=str(creator_raw.get("id") or ""),
                name=str(creator_raw.get("name") or ""),
                role=str(creator_raw.get("role") or ""),
            ),
            is_completed=bool(raw.get("isCompleted", False)),
            description=str(raw.get("description") or ""),
            assigned_to=[str(a) for a in assigned],
            created_at=raw.get("createdAt"),
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "date": self.date,
            "time": self.time,
            "type": self.kind.value,
            "priority": self.priority.value,
            "createdBy": {
                "id": self.created_by.id,
                "name": self.created_by.name,
                "role": self.created_by.role,
            },
            "assignedTo": list(self.assigned_to),
            "isCompleted": self.is_completed,
            "reminderSettings": self.reminder.to_payload(),
            "createdAt": self.created_at,
        }


@dataclass(slots=True)
class NotificationEvent:
    """One firing decision. In-memory only; never persisted."""

    id: str
    task_id: str
    kind: NotificationKind
    title: str
    message: str
    priority: Priority
    scheduled_at: datetime
    shown: bool = False
    dismissed: bool = False
