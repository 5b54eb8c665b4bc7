# tests/test_calendar_api.py

from __future__ import annotations

import json
from datetime import date

import httpx
import pytest

from eduplan_reminders.connectors.calendar_api import CalendarApiClient, CalendarApiError
from eduplan_reminders.tasks.task_source import TaskWindowLoader

from .fakes import make_task


def _client(handler) -> CalendarApiClient:
    http = httpx.AsyncClient(
        base_url="https://school.example",
        transport=httpx.MockTransport(handler),
    )
    return CalendarApiClient("https://school.example", client=http)


@pytest.mark.asyncio
async def test_list_tasks_sends_range_and_skips_invalid_rows() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        good = make_task("1").to_payload()
        bad = {**make_task("2").to_payload(), "time": "10 o'clock"}
        return httpx.Response(200, json={"tasks": [good, bad]})

    api = _client(handler)
    tasks = await api.list_tasks("student_1", date(2025, 1, 16), date(2025, 1, 23))

    assert [t.id for t in tasks] == ["1"]
    req = seen[0]
    assert req.method == "GET"
    assert req.url.path == "/api/calendar"
    assert req.url.params["userId"] == "student_1"
    assert req.url.params["startDate"] == "2025-01-16"
    assert req.url.params["endDate"] == "2025-01-23"


@pytest.mark.asyncio
async def test_mark_reminder_sent_puts_partial_settings() -> None:
    bodies: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        bodies.append(body)
        task = make_task("1", reminder_sent=True).to_payload()
        return httpx.Response(200, json={"task": task, "success": True})

    api = _client(handler)
    task = await api.mark_reminder_sent("1", "student_1")

    assert bodies == [{"id": "1", "userId": "student_1", "reminderSettings": {"reminderSent": True}}]
    assert task is not None and task.reminder.reminder_sent is True


@pytest.mark.asyncio
async def test_mark_reminder_sent_without_success_returns_none() -> None:
    api = _client(lambda request: httpx.Response(200, json={"success": False}))
    assert await api.mark_reminder_sent("1", "student_1") is None


@pytest.mark.asyncio
async def test_error_status_raises_with_server_message() -> None:
    api = _client(lambda request: httpx.Response(403, json={"error": "Access denied"}))

    with pytest.raises(CalendarApiError) as excinfo:
        await api.mark_reminder_sent("1", "parent_1")

    assert excinfo.value.status_code == 403
    assert "Access denied" in str(excinfo.value)


@pytest.mark.asyncio
async def test_transport_error_is_wrapped() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    api = _client(handler)
    with pytest.raises(CalendarApiError):
        await api.list_tasks("student_1", date(2025, 1, 16), date(2025, 1, 23))


@pytest.mark.asyncio
async def test_loader_degrades_to_none_on_api_failure() -> None:
    api = _client(lambda request: httpx.Response(500, text="boom"))
    loader = TaskWindowLoader(api)

    assert await loader.load("student_1", today=date(2025, 1, 16)) is None


@pytest.mark.asyncio
async def test_loader_keeps_good_rows_when_one_row_is_malformed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        good = make_task("1", date="2025-01-17").to_payload()
        bad = {**make_task("2", date="2025-01-17").to_payload(), "reminderSettings": ["oops"]}
        return httpx.Response(200, json={"tasks": [good, bad, "not-a-task"]})

    loader = TaskWindowLoader(_client(handler))
    tasks = await loader.load("student_1", today=date(2025, 1, 16))

    assert tasks is not None
    assert [t.id for t in tasks] == ["1"]


@pytest.mark.asyncio
async def test_bearer_token_header() -> None:
    api = CalendarApiClient("https://school.example/", token="secret")
    try:
        assert api._client.headers["Authorization"] == "Bearer secret"
        assert api._client.base_url.host == "school.example"
    finally:
        await api.aclose()
