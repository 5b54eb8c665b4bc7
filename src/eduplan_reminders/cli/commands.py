# src/eduplan_reminders/cli/commands.py

from __future__ import annotations

import inspect
import logging
from collections.abc import Callable
from typing import cast

from ..core.state import AppState
from ..tasks.notification_dispatcher import priority_style
from ..tasks.task_models import Creator, InvalidTaskError, NotificationEvent, Task, TaskKind
from ..tasks.task_store import TaskAccessError, TaskNotFoundError
from ..tasks.time_utils import TimeFormatError

CommandEmitter = Callable[[str], None]
CommandHandler2 = Callable[[AppState, list[str]], str]
CommandHandler3 = Callable[[AppState, list[str], CommandEmitter | None], str]
CommandHandler = CommandHandler2 | CommandHandler3

logger = logging.getLogger(__name__)


class CommandRegistry:
    """Simple slash-command registry used by the console connector (/help, /tasks, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(
        self,
        state: AppState,
        line: str,
        emit: CommandEmitter | None = None,
    ) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            nparams = len(inspect.signature(handler).parameters)
        except Exception:
            nparams = 3

        if nparams >= 3:
            h3 = cast(CommandHandler3, handler)
            return h3(state, args, emit)

        h2 = cast(CommandHandler2, handler)
        return h2(state, args)

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _require_user(state: AppState) -> str | None:
    return state.scheduler.user_id


# Board and task list belong to the scheduler loop; console reads go through state.run().
async def _snapshot_tasks(state: AppState) -> list[Task]:
    return list(state.scheduler.tasks)


async def _active_reminders(state: AppState) -> list[NotificationEvent]:
    return state.scheduler.dispatcher.board.active()


async def _dismiss_nth(state: AppState, idx: int) -> NotificationEvent | None:
    board = state.scheduler.dispatcher.board
    active = board.active()
    if not 1 <= idx <= len(active):
        return None
    board.dismiss(active[idx - 1].id)
    return active[idx - 1]


def cmd_help(state: AppState, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(state: AppState, args: list[str]) -> str:
    sched = state.scheduler
    backend = "local store" if state.store is not None else "calendar API"
    return (
        "Status:\n"
        f"  Scheduler: {sched.state.value}\n"
        f"  User: {sched.user_id or '-'}\n"
        f"  Backend: {backend}\n"
        f"  Check interval: {sched.interval_seconds:.0f}s\n"
        f"  Loaded tasks: {len(sched.tasks)}\n"
        f"  Notifications fired: {len(sched.history)}\n"
        f"  Active reminders: {len(sched.dispatcher.board.active())}"
    )


def cmd_login(state: AppState, args: list[str], emit: CommandEmitter | None = None) -> str:
    """
    /login <user_id> -> start (or switch) the reminder session
    """
    if not args:
        return "Usage: /login <user_id>"
    user_id = args[0]
    if emit:
        emit(f"Loading tasks for {user_id}...")
    state.run(state.scheduler.set_user(user_id))
    return f"Logged in as {user_id}. {len(state.scheduler.tasks)} task(s) in the next days."


def cmd_logout(state: AppState, args: list[str]) -> str:
    if not state.scheduler.is_active:
        return "Not logged in."
    state.run(state.scheduler.set_user(None))
    return "Logged out. Reminders stopped."


def cmd_tasks(state: AppState, args: list[str]) -> str:
    if not _require_user(state):
        return "Not logged in. Use /login <user_id>."
    tasks = state.run(_snapshot_tasks(state))
    if not tasks:
        return "No upcoming tasks."

    lines = ["Upcoming tasks:"]
    for t in tasks:
        flags = []
        if t.is_completed:
            flags.append("done")
        if t.reminder.enabled:
            sent = "sent" if t.reminder.reminder_sent else f"{t.reminder.remind_before_minutes}m"
            flags.append(f"reminder {sent}")
        flag_str = f" ({', '.join(flags)})" if flags else ""
        lines.append(f"  [{t.id}] {t.date} {t.time} {t.kind.value}/{t.priority.value}: {t.title}{flag_str}")
    return "\n".join(lines)


def cmd_reminders(state: AppState, args: list[str]) -> str:
    active = state.run(_active_reminders(state))
    if not active:
        return "No active reminders."
    lines = ["Active reminders:"]
    for i, r in enumerate(active, start=1):
        lines.append(f"{i}. [{priority_style(r.priority)}] {r.title} - {r.message}")
    return "\n".join(lines)


def cmd_dismiss(state: AppState, args: list[str]) -> str:
    """
    /dismiss <n> -> dismiss the n-th active reminder (as listed by /reminders)
    """
    if not args or not args[0].isdigit():
        return "Usage: /dismiss <n>"
    idx = int(args[0])
    dismissed = state.run(_dismiss_nth(state, idx))
    if dismissed is None:
        return f"No reminder #{idx}."
    return f"Dismissed: {dismissed.title}"


def cmd_reload(state: AppState, args: list[str]) -> str:
    if not _require_user(state):
        return "Not logged in. Use /login <user_id>."
    ok = state.run(state.scheduler.reload())
    if not ok:
        return f"Reload failed; keeping {len(state.scheduler.tasks)} cached task(s)."
    return f"Reloaded {len(state.scheduler.tasks)} task(s)."


def cmd_check(state: AppState, args: list[str]) -> str:
    if not _require_user(state):
        return "Not logged in. Use /login <user_id>."
    events = state.run(state.scheduler.tick(refetch=False))
    return f"Check done: {len(events)} new notification(s)."


def cmd_done(state: AppState, args: list[str]) -> str:
    """
    /done <task_id> -> mark a task completed (local store only)
    """
    user_id = _require_user(state)
    if not user_id:
        return "Not logged in. Use /login <user_id>."
    if state.store is None:
        return "/done is only available with the local store."
    if not args:
        return "Usage: /done <task_id>"

    try:
        task = state.store.set_completed(args[0], user_id)
    except TaskNotFoundError:
        return f"Task not found: {args[0]}"
    except TaskAccessError:
        return f"Access denied to task {args[0]}."

    state.run(state.scheduler.reload())
    return f"Completed: {task.title}"


def cmd_add(state: AppState, args: list[str]) -> str:
    """
    /add <YYYY-MM-DD> <h:mm> <AM|PM> <kind> <remind_before_min> <title...>
    remind_before_min = 0 disables the reminder.
    """
    user_id = _require_user(state)
    if not user_id:
        return "Not logged in. Use /login <user_id>."
    if state.store is None:
        return "/add is only available with the local store."
    if len(args) < 6:
        kinds = "|".join(k.value for k in TaskKind)
        return f"Usage: /add <YYYY-MM-DD> <h:mm> <AM|PM> <{kinds}> <remind_before_min> <title...>"

    date_s, clock, marker, kind, before_s = args[:5]
    title = " ".join(args[5:])
    try:
        before = int(before_s)
    except ValueError:
        return f"Invalid remind_before_min: {before_s}"

    try:
        task = state.store.add_task(
            title=title,
            date=date_s,
            time_12h=f"{clock} {marker}",
            kind=kind,
            created_by=Creator(id=user_id, name=user_id),
            reminder_enabled=before > 0,
            remind_before_minutes=before if before > 0 else None,
        )
    except (InvalidTaskError, TimeFormatError) as e:
        return f"Cannot add task: {e}"

    state.run(state.scheduler.reload())
    return f"Added task {task.id}: {task.title}"


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show scheduler state and counters.")
registry.register("login", cmd_login, help_text="Start reminders for a user: /login <user_id>.")
registry.register("logout", cmd_logout, help_text="Stop reminders and forget the session.")
registry.register("tasks", cmd_tasks, help_text="List loaded upcoming tasks.")
registry.register("reminders", cmd_reminders, help_text="List active (not dismissed) reminders.")
registry.register("dismiss", cmd_dismiss, help_text="Dismiss a reminder: /dismiss <n>.")
registry.register("reload", cmd_reload, help_text="Fetch tasks again now.")
registry.register("check", cmd_check, help_text="Run a notification check now.")
registry.register("done", cmd_done, help_text="Mark a task completed: /done <task_id> (local store).")
registry.register(
    "add",
    cmd_add,
    help_text="Add a task: /add <date> <h:mm> <AM|PM> <kind> <remind_min> <title> (local store).",
)
