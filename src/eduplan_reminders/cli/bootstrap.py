# src/eduplan_reminders/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- picks the task backend (calendar HTTP API or local SQLite store),
- wires loader/dispatcher/scheduler into AppState.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.calendar_api import CalendarApiClient
from ..connectors.console_connector import ConsoleNotificationSink
from ..core.ports import NotificationSink, TaskSource
from ..core.state import AppState
from ..tasks.notification_dispatcher import NotificationDispatcher
from ..tasks.reminder_scheduler import ReminderScheduler
from ..tasks.task_source import StoreTaskSource, TaskWindowLoader
from ..tasks.task_store import CalendarTaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.tasks_db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(*, settings=None, sink: NotificationSink | None = None) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings injectable makes the app easier to test and avoids hidden global config reads.
    If settings is None, falls back to get_settings().
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store: CalendarTaskStore | None = None
    source: TaskSource
    if settings.api_base_url:
        source = CalendarApiClient(
            settings.api_base_url,
            token=settings.api_token,
            timeout_seconds=settings.http_timeout_seconds,
        )
        logger.info("Using calendar API at %s", settings.api_base_url)
    else:
        store = CalendarTaskStore(settings.tasks_db_path)
        source = StoreTaskSource(store)
        logger.info("Using local calendar store at %s", settings.tasks_db_path)

    dispatcher = NotificationDispatcher(sink or ConsoleNotificationSink(), source)
    scheduler = ReminderScheduler(
        TaskWindowLoader(source, window_days=settings.window_days),
        dispatcher,
        interval_seconds=settings.check_interval_seconds,
        refetch_interval_seconds=settings.refetch_interval_seconds,
        tz=settings.tzinfo(),
    )

    return AppState(settings=settings, source=source, scheduler=scheduler, store=store)
