# src/eduplan_reminders/tasks/task_store.py

from __future__ import annotations

import contextlib
import datetime as dt
import json
import logging
import sqlite3
import time
import uuid
from pathlib import Path
from typing import Any

from .task_models import (
    DEFAULT_REMIND_BEFORE_MINUTES,
    Creator,
    InvalidTaskError,
    Priority,
    ReminderConfig,
    Task,
    TaskKind,
)
from .time_utils import TimeFormatError, minutes_since_midnight, parse_clock_12h, parse_date

logger = logging.getLogger(__name__)

DEFAULT_TIME = "12:00 PM"


class TaskNotFoundError(LookupError):
    pass


class TaskAccessError(PermissionError):
    pass


class CalendarTaskStore:
    """
    SQLite calendar task store.

    Local stand-in for the platform's calendar backend, with the same rules:
    - a user sees tasks they created or are assigned to
    - the creator may update everything; an assignee may only toggle completion
    - only the creator may delete

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "calendar.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        try:
            total = self.count_tasks()
        except Exception:
            total = -1
        logger.info("CalendarTaskStore ready db=%s total=%s", self._db_path, total)

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(Exception):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS calendar_tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    date TEXT NOT NULL,
                    time TEXT NOT NULL DEFAULT '12:00 PM',
                    kind TEXT NOT NULL DEFAULT 'reminder',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    created_by_id TEXT NOT NULL,
                    created_by_name TEXT NOT NULL DEFAULT '',
                    created_by_role TEXT NOT NULL DEFAULT '',
                    assigned_to TEXT NOT NULL DEFAULT '[]',
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    reminder_enabled INTEGER NOT NULL DEFAULT 0,
                    remind_before INTEGER NOT NULL DEFAULT 60,
                    reminder_sent INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT,
                    updated_at REAL NOT NULL DEFAULT 0
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(calendar_tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE calendar_tasks ADD COLUMN {name} {decl}")
                logger.info("CalendarTaskStore migration: added column %s", name)

            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("assigned_to", "TEXT NOT NULL DEFAULT '[]'")
            add_col("is_completed", "INTEGER NOT NULL DEFAULT 0")
            add_col("reminder_enabled", "INTEGER NOT NULL DEFAULT 0")
            add_col("remind_before", "INTEGER NOT NULL DEFAULT 60")
            add_col("reminder_sent", "INTEGER NOT NULL DEFAULT 0")
            add_col("created_at", "TEXT")
            add_col("updated_at", "REAL NOT NULL DEFAULT 0")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_calendar_tasks_date ON calendar_tasks(date)")
            cur.execute(
                "CREATE INDEX IF NOT EXISTS idx_calendar_tasks_creator ON calendar_tasks(created_by_id)"
            )

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _list_to_str(items: list[str] | None) -> str:
        return json.dumps(list(items or []), ensure_ascii=False)

    @staticmethod
    def _str_to_list(s: str | None) -> list[str]:
        if not s:
            return []
        try:
            val = json.loads(s)
        except Exception:
            return []
        return [str(v) for v in val] if isinstance(val, list) else []

    def _row_to_task(self, row: sqlite3.Row) -> Task:
        return Task(
            id=str(row["id"]),
            title=str(row["title"]),
            description=str(row["description"] or ""),
            date=str(row["date"]),
            time=str(row["time"] or DEFAULT_TIME),
            kind=TaskKind(row["kind"]),
            priority=Priority(row["priority"]),
            reminder=ReminderConfig(
                enabled=bool(row["reminder_enabled"]),
                remind_before_minutes=int(row["remind_before"]),
                reminder_sent=bool(row["reminder_sent"]),
            ),
            created_by=Creator(
                id=str(row["created_by_id"]),
                name=str(row["created_by_name"] or ""),
                role=str(row["created_by_role"] or ""),
            ),
            assigned_to=self._str_to_list(row["assigned_to"]),
            is_completed=bool(row["is_completed"]),
            created_at=row["created_at"],
        )

    @staticmethod
    def _validate_schedule(date_s: str, time_s: str) -> None:
        try:
            parse_date(date_s)
            parse_clock_12h(time_s)
        except TimeFormatError as e:
            raise InvalidTaskError(str(e)) from e

    @staticmethod
    def _coerce_kind(kind: TaskKind | str) -> TaskKind:
        try:
            return TaskKind(kind)
        except ValueError as e:
            raise InvalidTaskError(f"Invalid task type {kind!r}") from e

    @staticmethod
    def _coerce_priority(priority: Priority | str) -> Priority:
        try:
            return Priority(priority)
        except ValueError as e:
            raise InvalidTaskError(f"Invalid priority {priority!r}") from e

    def _fetch_row(self, conn: sqlite3.Connection, task_id: str) -> sqlite3.Row:
        cur = conn.execute("SELECT * FROM calendar_tasks WHERE id = ?", (str(task_id),))
        row = cur.fetchone()
        if row is None:
            raise TaskNotFoundError(f"Task not found: {task_id}")
        return row

    # ---- public API ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            cur = conn.cursor()
            cur.execute("SELECT COUNT(*) FROM calendar_tasks")
            (n,) = cur.fetchone()
            return int(n)
        finally:
            conn.close()

    def add_task(
        self,
        *,
        title: str,
        date: str,
        created_by: Creator,
        time_12h: str | None = None,
        kind: TaskKind | str = TaskKind.REMINDER,
        priority: Priority | str = Priority.MEDIUM,
        description: str = "",
        assigned_to: list[str] | None = None,
        reminder_enabled: bool = False,
        remind_before_minutes: int | None = None,
        task_id: str | None = None,
    ) -> Task:
        if not title or not title.strip():
            raise InvalidTaskError("title is required")
        if not created_by.id:
            raise InvalidTaskError("created_by.id is required")

        time_s = (time_12h or DEFAULT_TIME).strip()
        self._validate_schedule(date, time_s)
        kind_e = self._coerce_kind(kind)
        priority_e = self._coerce_priority(priority)
        before = int(remind_before_minutes or DEFAULT_REMIND_BEFORE_MINUTES)

        new_id = str(task_id) if task_id else uuid.uuid4().hex
        now = time.time()
        created_at = dt.datetime.now(dt.UTC).isoformat()

        conn = self._get_conn()
        try:
            conn.execute(
                """
                INSERT INTO calendar_tasks(
                    id, title, description, date, time, kind, priority,
                    created_by_id, created_by_name, created_by_role, assigned_to,
                    is_completed, reminder_enabled, remind_before, reminder_sent,
                    created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, 0, ?, ?, 0, ?, ?)
                """,
                (
                    new_id,
                    title.strip(),
                    (description or "").strip(),
                    date,
                    time_s,
                    kind_e.value,
                    priority_e.value,
                    created_by.id,
                    created_by.name,
                    created_by.role,
                    self._list_to_str(assigned_to),
                    int(bool(reminder_enabled)),
                    before,
                    created_at,
                    now,
                ),
            )
            conn.commit()
            logger.debug("Task added id=%s kind=%s date=%s time=%s", new_id, kind_e.value, date, time_s)
            return self._row_to_task(self._fetch_row(conn, new_id))
        except sqlite3.IntegrityError as e:
            raise InvalidTaskError(f"Task id already exists: {new_id}") from e
        finally:
            conn.close()

    def get_task(self, task_id: str, user_id: str) -> Task:
        conn = self._get_conn()
        try:
            task = self._row_to_task(self._fetch_row(conn, task_id))
        finally:
            conn.close()
        if not task.can_access(user_id):
            raise TaskAccessError(f"Access denied to task {task_id}")
        return task

    def list_tasks_for_user(
        self,
        user_id: str,
        *,
        start: dt.date | None = None,
        end: dt.date | None = None,
        date: str | None = None,
        month: str | None = None,
    ) -> list[Task]:
        """
        Tasks the user created or is assigned to, ordered by date then clock time.

        Filters (all optional): an inclusive [start, end] range, a single
        "YYYY-MM-DD" date, or a "YYYY-MM" month.
        """
        if not user_id:
            return []

        clauses = ["(created_by_id = ? OR EXISTS (SELECT 1 FROM json_each(assigned_to) WHERE value = ?))"]
        params: list[Any] = [user_id, user_id]

        if date:
            clauses.append("date = ?")
            params.append(date)
        elif month:
            clauses.append("date LIKE ?")
            params.append(f"{month}-%")
        if start is not None:
            clauses.append("date >= ?")
            params.append(start.isoformat())
        if end is not None:
            clauses.append("date <= ?")
            params.append(end.isoformat())

        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"SELECT * FROM calendar_tasks WHERE {' AND '.join(clauses)}",
                params,
            )
            rows = cur.fetchall()
        finally:
            conn.close()

        tasks: list[Task] = []
        for row in rows:
            try:
                tasks.append(self._row_to_task(row))
            except ValueError:
                logger.warning("Skipping unreadable task row id=%s", row["id"])

        tasks.sort(key=self._sort_key)
        return tasks

    @staticmethod
    def _sort_key(task: Task) -> tuple[str, int]:
        try:
            return task.date, minutes_since_midnight(task.time)
        except TimeFormatError:
            return task.date, 0

    def update_task(
        self,
        task_id: str,
        user_id: str,
        *,
        title: str | None = None,
        description: str | None = None,
        date: str | None = None,
        time_12h: str | None = None,
        kind: TaskKind | str | None = None,
        priority: Priority | str | None = None,
        is_completed: bool | None = None,
        reminder: dict[str, Any] | None = None,
    ) -> Task:
        """
        Partial update.

        Creator: every field; `reminder` is merged into the current settings
        (keys: enabled, remind_before_minutes, reminder_sent).
        Assignee: only is_completed, everything else is ignored.
        """
        conn = self._get_conn()
        try:
            task = self._row_to_task(self._fetch_row(conn, task_id))

            if task.created_by.id != user_id and user_id not in task.assigned_to:
                raise TaskAccessError(f"Access denied to task {task_id}")

            fields: list[str] = []
            params: list[Any] = []

            if is_completed is not None:
                fields.append("is_completed = ?")
                params.append(int(bool(is_completed)))

            if task.created_by.id == user_id:
                if title:
                    fields.append("title = ?")
                    params.append(title.strip())
                if description is not None:
                    fields.append("description = ?")
                    params.append(description.strip())
                if date or time_12h:
                    self._validate_schedule(date or task.date, time_12h or task.time)
                if date:
                    fields.append("date = ?")
                    params.append(date)
                if time_12h:
                    fields.append("time = ?")
                    params.append(time_12h.strip())
                if kind:
                    fields.append("kind = ?")
                    params.append(self._coerce_kind(kind).value)
                if priority:
                    fields.append("priority = ?")
                    params.append(self._coerce_priority(priority).value)
                if reminder:
                    if "enabled" in reminder:
                        fields.append("reminder_enabled = ?")
                        params.append(int(bool(reminder["enabled"])))
                    if "remind_before_minutes" in reminder:
                        fields.append("remind_before = ?")
                        params.append(int(reminder["remind_before_minutes"]))
                    if "reminder_sent" in reminder:
                        fields.append("reminder_sent = ?")
                        params.append(int(bool(reminder["reminder_sent"])))
            else:
                logger.debug("Assignee update on task %s: only completion applied", task_id)

            if not fields:
                return task

            fields.append("updated_at = ?")
            params.append(time.time())
            params.append(str(task_id))

            conn.execute(f"UPDATE calendar_tasks SET {', '.join(fields)} WHERE id = ?", params)
            conn.commit()
            return self._row_to_task(self._fetch_row(conn, task_id))
        finally:
            conn.close()

    def mark_reminder_sent(self, task_id: str, user_id: str) -> Task:
        return self.update_task(task_id, user_id, reminder={"reminder_sent": True})

    def set_completed(self, task_id: str, user_id: str, completed: bool = True) -> Task:
        return self.update_task(task_id, user_id, is_completed=completed)

    def delete_task(self, task_id: str, user_id: str) -> None:
        conn = self._get_conn()
        try:
            task = self._row_to_task(self._fetch_row(conn, task_id))
            if task.created_by.id != user_id:
                raise TaskAccessError("Only the creator can delete this task")
            conn.execute("DELETE FROM calendar_tasks WHERE id = ?", (str(task_id),))
            conn.commit()
            logger.debug("Task deleted id=%s", task_id)
        finally:
            conn.close()
