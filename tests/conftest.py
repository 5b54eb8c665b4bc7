# tests/conftest.py

from __future__ import annotations

from datetime import UTC
from pathlib import Path
from types import SimpleNamespace

import pytest

from eduplan_reminders.cli.bootstrap import create_initial_state
from eduplan_reminders.core.state import AppState
from eduplan_reminders.tasks.task_store import CalendarTaskStore

from .fakes import RecordingSink


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and the runner.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic (local store, UTC wall clock).
    """
    return SimpleNamespace(
        app_name="eduplan-test",
        log_level="DEBUG",
        console_enabled=False,
        api_base_url="",
        api_token=None,
        http_timeout_seconds=5.0,
        user_id=None,
        timezone="UTC",
        tzinfo=lambda: UTC,
        check_interval_seconds=3600.0,
        refetch_interval_seconds=0.0,
        window_days=7,
        data_dir=tmp_path / "data",
        tasks_db_path=tmp_path / "data" / "calendar.sqlite3",
    )


@pytest.fixture()
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture()
def state(settings: SimpleNamespace, sink: RecordingSink) -> AppState:
    """AppState wired to a real (tmp) SQLite store and a recording sink."""
    return create_initial_state(settings=settings, sink=sink)


@pytest.fixture()
def store(tmp_path: Path) -> CalendarTaskStore:
    return CalendarTaskStore(tmp_path / "store.sqlite3")
