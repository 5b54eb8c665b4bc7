# tests/test_reminder_scheduler.py

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from eduplan_reminders.tasks.notification_dispatcher import NotificationDispatcher
from eduplan_reminders.tasks.reminder_scheduler import ReminderScheduler, SchedulerState
from eduplan_reminders.tasks.task_models import NotificationKind
from eduplan_reminders.tasks.task_source import TaskWindowLoader

from .fakes import FakeClock, FakeTaskSource, RecordingSink, make_task


def _build(
    source: FakeTaskSource,
    clock: FakeClock,
    *,
    interval_seconds: float = 3600.0,
    refetch_interval_seconds: float = 0.0,
) -> tuple[ReminderScheduler, RecordingSink]:
    sink = RecordingSink()
    scheduler = ReminderScheduler(
        TaskWindowLoader(source, window_days=7),
        NotificationDispatcher(sink, source),
        interval_seconds=interval_seconds,
        refetch_interval_seconds=refetch_interval_seconds,
        clock=clock,
        tz=UTC,
    )
    return scheduler, sink


async def _wait_for(predicate, timeout: float = 2.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_login_loads_and_evaluates_immediately() -> None:
    source = FakeTaskSource(tasks=[make_task("1")])
    clock = FakeClock(datetime(2025, 1, 16, 9, 15, tzinfo=UTC))
    scheduler, sink = _build(source, clock)

    await scheduler.set_user("student_1")
    await scheduler.dispatcher.drain()

    assert scheduler.state == SchedulerState.ACTIVE
    assert len(source.list_calls) == 1
    user_id, start, end = source.list_calls[0]
    assert (user_id, start.isoformat(), end.isoformat()) == ("student_1", "2025-01-16", "2025-01-23")
    assert sorted(sink.titles) == ["Math Quiz", "Upcoming: Math Quiz"]
    assert len(source.mark_calls) == 1

    await scheduler.stop()


@pytest.mark.asyncio
async def test_ticks_never_repeat_an_event() -> None:
    source = FakeTaskSource(tasks=[make_task("1")])
    clock = FakeClock(datetime(2025, 1, 16, 9, 15, tzinfo=UTC))
    scheduler, sink = _build(source, clock)
    await scheduler.set_user("student_1")

    clock.now = datetime(2025, 1, 16, 9, 20, tzinfo=UTC)
    assert await scheduler.tick() == []

    clock.now = datetime(2025, 1, 16, 11, 0, tzinfo=UTC)
    events = await scheduler.tick()
    assert [e.kind for e in events] == [NotificationKind.OVERDUE]
    assert events[0].message == "This assignment was due 1 hour ago"

    for minute in (5, 10, 15):
        clock.now = datetime(2025, 1, 16, 11, minute, tzinfo=UTC)
        assert await scheduler.tick(refetch=True) == []

    assert sink.titles.count("Overdue: Math Quiz") == 1
    await scheduler.stop()


@pytest.mark.asyncio
async def test_failed_fetch_keeps_cached_tasks() -> None:
    source = FakeTaskSource(tasks=[make_task("1", reminder_enabled=False)])
    clock = FakeClock(datetime(2025, 1, 15, 8, 0, tzinfo=UTC))
    scheduler, sink = _build(source, clock)
    await scheduler.set_user("student_1")
    assert len(scheduler.tasks) == 1

    source.fail_list = True
    assert await scheduler.reload() is False
    assert len(scheduler.tasks) == 1

    clock.now = datetime(2025, 1, 16, 11, 0, tzinfo=UTC)
    events = await scheduler.tick(refetch=True)
    assert [e.kind for e in events] == [NotificationKind.OVERDUE]
    await scheduler.stop()


@pytest.mark.asyncio
async def test_logout_cancels_timer_and_forgets_session() -> None:
    source = FakeTaskSource(tasks=[make_task("1")])
    clock = FakeClock(datetime(2025, 1, 16, 9, 15, tzinfo=UTC))
    scheduler, _sink = _build(source, clock, interval_seconds=0.01)

    await scheduler.set_user("student_1")
    timer = scheduler._timer
    assert timer is not None and not timer.done()

    await scheduler.set_user(None)

    assert scheduler.state == SchedulerState.IDLE
    assert scheduler.user_id is None
    assert timer.cancelled()
    assert scheduler.tasks == []
    assert len(scheduler.history) == 0
    assert await scheduler.tick() == []
    await scheduler.stop()


@pytest.mark.asyncio
async def test_timer_drives_periodic_evaluation() -> None:
    source = FakeTaskSource(tasks=[make_task("1", reminder_enabled=False)])
    clock = FakeClock(datetime(2025, 1, 15, 8, 0, tzinfo=UTC))
    scheduler, sink = _build(source, clock, interval_seconds=0.01)

    await scheduler.set_user("student_1")
    assert sink.toasts == []

    clock.now = datetime(2025, 1, 16, 11, 0, tzinfo=UTC)
    await _wait_for(lambda: "Overdue: Math Quiz" in sink.titles)

    await asyncio.sleep(0.05)
    assert sink.titles.count("Overdue: Math Quiz") == 1
    await scheduler.stop()


@pytest.mark.asyncio
async def test_fetch_finishing_after_logout_is_discarded() -> None:
    source = FakeTaskSource(tasks=[make_task("1")], gate=asyncio.Event())
    clock = FakeClock(datetime(2025, 1, 16, 9, 15, tzinfo=UTC))
    scheduler, sink = _build(source, clock)

    login = asyncio.create_task(scheduler.set_user("student_1"))
    await _wait_for(lambda: len(source.list_calls) == 1)

    await scheduler.set_user(None)
    assert source.gate is not None
    source.gate.set()
    await login

    assert scheduler.state == SchedulerState.IDLE
    assert scheduler.tasks == []
    assert scheduler._timer is None
    assert sink.toasts == []


@pytest.mark.asyncio
async def test_switching_user_starts_a_fresh_session() -> None:
    source = FakeTaskSource(tasks=[make_task("1", reminder_enabled=False)])
    clock = FakeClock(datetime(2025, 1, 16, 9, 15, tzinfo=UTC))
    scheduler, sink = _build(source, clock)

    await scheduler.set_user("student_1")
    await scheduler.set_user("student_1")
    await scheduler.set_user("student_2")

    assert [c[0] for c in source.list_calls] == ["student_1", "student_2"]
    assert sink.titles == ["Upcoming: Math Quiz", "Upcoming: Math Quiz"]
    assert scheduler.user_id == "student_2"
    await scheduler.stop()


@pytest.mark.asyncio
async def test_periodic_refetch_when_enabled() -> None:
    source = FakeTaskSource(tasks=[])
    clock = FakeClock(datetime(2025, 1, 16, 9, 15, tzinfo=UTC))
    scheduler, sink = _build(source, clock, refetch_interval_seconds=1e-9)

    await scheduler.set_user("student_1")
    assert scheduler.tasks == []

    source.tasks.append(make_task("late", reminder_enabled=False))
    await asyncio.sleep(0.001)
    events = await scheduler.tick()

    assert len(source.list_calls) == 2
    assert [e.task_id for e in events] == ["late"]
    await scheduler.stop()


@pytest.mark.asyncio
async def test_tasks_outside_window_are_ignored() -> None:
    source = FakeTaskSource(
        tasks=[
            make_task("past", date="2025-01-10"),
            make_task("far", date="2025-02-01"),
            make_task("soon", date="2025-01-16", reminder_enabled=False),
        ]
    )
    clock = FakeClock(datetime(2025, 1, 16, 9, 15, tzinfo=UTC))
    scheduler, _sink = _build(source, clock)

    await scheduler.set_user("student_1")

    assert [t.id for t in scheduler.tasks] == ["soon"]
    await scheduler.stop()
