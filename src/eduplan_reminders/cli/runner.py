# src/eduplan_reminders/cli/runner.py

"""
Background host for the reminder scheduler.

The console REPL blocks on input(), so the async scheduler runs in a
daemon thread with its own event loop. Console commands submit
coroutines to that loop through SchedulerRunner.call().
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Coroutine
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any, TypeVar

from ..core.state import AppState

logger = logging.getLogger(__name__)

T = TypeVar("T")


async def _run_scheduler(state: AppState, stop_event: asyncio.Event) -> None:
    """
    init -> optional auto-login -> wait for stop -> teardown

    Shutdown model:
    - main thread sets stop_event via loop.call_soon_threadsafe(stop_event.set)
    """
    settings = state.settings
    auto_user = getattr(settings, "user_id", None)

    try:
        if auto_user:
            try:
                await state.scheduler.set_user(auto_user)
            except Exception:
                logger.exception("Auto-login failed user_id=%s", auto_user)

        await stop_event.wait()
    finally:
        try:
            await state.scheduler.stop()
        except Exception:
            logger.exception("Scheduler stop failed.")

        aclose = getattr(state.source, "aclose", None)
        if aclose is not None:
            try:
                await aclose()
            except Exception:
                logger.debug("Task source close failed.", exc_info=True)


@dataclass
class SchedulerRunner:
    thread: threading.Thread
    loop: asyncio.AbstractEventLoop
    stop_event: asyncio.Event

    def call(self, coro: Coroutine[Any, Any, T], timeout: float | None = 30.0) -> T:
        fut: Future[T] = asyncio.run_coroutine_threadsafe(coro, self.loop)
        return fut.result(timeout=timeout)

    def stop(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.stop_event.set)
        except Exception:
            logger.debug("Failed to signal scheduler stop.", exc_info=True)

    def join(self, timeout: float | None = None) -> None:
        self.thread.join(timeout=timeout)


def start_scheduler_in_background(state: AppState) -> SchedulerRunner | None:
    """Start the scheduler loop in a daemon thread and attach the runner to state."""
    ready = threading.Event()
    holder: dict[str, object] = {}

    def runner() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        stop_event = asyncio.Event()

        holder["loop"] = loop
        holder["stop_event"] = stop_event
        ready.set()

        try:
            loop.run_until_complete(_run_scheduler(state, stop_event))
        finally:
            with contextlib.suppress(Exception):
                loop.run_until_complete(loop.shutdown_asyncgens())
            with contextlib.suppress(Exception):
                loop.close()

    t = threading.Thread(target=runner, name="reminder-scheduler", daemon=True)
    t.start()

    ready.wait(timeout=5.0)
    loop = holder.get("loop")
    stop_event = holder.get("stop_event")

    if not isinstance(loop, asyncio.AbstractEventLoop) or not isinstance(stop_event, asyncio.Event):
        logger.error("Scheduler thread did not initialize properly.")
        return None

    runner_obj = SchedulerRunner(thread=t, loop=loop, stop_event=stop_event)
    state.runner = runner_obj
    logger.info("Scheduler background thread started.")
    return runner_obj
