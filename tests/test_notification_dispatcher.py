# tests/test_notification_dispatcher.py

from __future__ import annotations

import logging
from datetime import UTC, datetime

import pytest

from eduplan_reminders.tasks.notification_dispatcher import (
    NotificationDispatcher,
    ReminderBoard,
    ToastVariant,
    build_toast,
    priority_style,
)
from eduplan_reminders.tasks.task_models import NotificationEvent, NotificationKind, Priority

from .fakes import FakeTaskSource, MarkCall, RecordingSink, make_task


def _event(kind: NotificationKind, event_id: str = "e1", task_id: str = "1") -> NotificationEvent:
    return NotificationEvent(
        id=event_id,
        task_id=task_id,
        kind=kind,
        title="Math Quiz",
        message="Assignment due in 60 minutes",
        priority=Priority.MEDIUM,
        scheduled_at=datetime(2025, 1, 16, 10, 0, tzinfo=UTC),
    )


def test_toast_styling_by_kind() -> None:
    overdue = build_toast(_event(NotificationKind.OVERDUE))
    upcoming = build_toast(_event(NotificationKind.UPCOMING))
    reminder = build_toast(_event(NotificationKind.REMINDER))

    assert overdue.variant == ToastVariant.DESTRUCTIVE
    assert overdue.duration_ms == 10_000
    assert overdue.icon == "alert-triangle"
    assert upcoming.variant == ToastVariant.DEFAULT
    assert upcoming.duration_ms == 5_000
    assert upcoming.icon == "calendar"
    assert reminder.icon == "bell"


def test_priority_style() -> None:
    assert priority_style(Priority.HIGH) == "red"
    assert priority_style("low") == "blue"
    assert priority_style("whatever") == "gray"


@pytest.mark.asyncio
async def test_reminder_is_shown_and_marked_sent_once() -> None:
    sink = RecordingSink()
    source = FakeTaskSource(tasks=[make_task("1")])
    dispatcher = NotificationDispatcher(sink, source)

    event = _event(NotificationKind.REMINDER)
    dispatcher.dispatch(event, "student_1")
    await dispatcher.drain()

    assert event.shown is True
    assert sink.titles == ["Math Quiz"]
    assert [(c.task_id, c.user_id) for c in source.mark_calls] == [("1", "student_1")]
    assert dispatcher.board.active() == [event]
    assert dispatcher.pending_marks == 0


@pytest.mark.asyncio
async def test_non_reminders_do_not_touch_backend() -> None:
    sink = RecordingSink()
    source = FakeTaskSource()
    dispatcher = NotificationDispatcher(sink, source)

    dispatcher.dispatch_all(
        [_event(NotificationKind.OVERDUE, "o"), _event(NotificationKind.UPCOMING, "u")],
        "student_1",
    )
    await dispatcher.drain()

    assert len(sink.toasts) == 2
    assert source.mark_calls == []
    assert dispatcher.board.active() == []


@pytest.mark.asyncio
async def test_mark_failure_is_logged_not_raised(caplog: pytest.LogCaptureFixture) -> None:
    source = FakeTaskSource(fail_mark=True)
    dispatcher = NotificationDispatcher(RecordingSink(), source)

    with caplog.at_level(logging.ERROR, logger="eduplan_reminders"):
        dispatcher.dispatch(_event(NotificationKind.REMINDER), "student_1")
        await dispatcher.drain()

    assert len(source.mark_calls) == 1
    assert "mark_reminder_sent failed" in caplog.text


@pytest.mark.asyncio
async def test_unchanged_reminder_flag_is_not_reported_as_sent(caplog: pytest.LogCaptureFixture) -> None:
    class _AssigneeSource(FakeTaskSource):
        async def mark_reminder_sent(self, task_id: str, user_id: str):
            self.mark_calls.append(MarkCall(task_id=task_id, user_id=user_id))
            return make_task(task_id, reminder_sent=False)

    source = _AssigneeSource()
    dispatcher = NotificationDispatcher(RecordingSink(), source)

    with caplog.at_level(logging.DEBUG, logger="eduplan_reminders"):
        dispatcher.dispatch(_event(NotificationKind.REMINDER), "student_1")
        await dispatcher.drain()

    assert len(source.mark_calls) == 1
    assert "Backend kept reminderSent=false" in caplog.text
    assert "Reminder marked as sent" not in caplog.text


@pytest.mark.asyncio
async def test_sink_failure_still_marks_event_shown() -> None:
    class BrokenSink:
        def show(self, toast) -> None:
            raise RuntimeError("no display")

    source = FakeTaskSource(tasks=[make_task("1")])
    dispatcher = NotificationDispatcher(BrokenSink(), source)
    event = _event(NotificationKind.REMINDER)

    dispatcher.dispatch(event, "student_1")
    await dispatcher.drain()

    assert event.shown is True
    assert len(source.mark_calls) == 1


def test_reminder_board_dismiss_and_prune() -> None:
    board = ReminderBoard()
    first = _event(NotificationKind.REMINDER, "r1", "1")
    second = _event(NotificationKind.REMINDER, "r2", "2")

    board.add(first)
    assert board.dismiss("r1") is True
    assert board.dismiss("r1") is False
    assert board.active() == []

    board.add(second)
    assert board.active() == [second]
    assert board.dismiss("missing") is False
