# src/eduplan_reminders/connectors/calendar_api.py

from __future__ import annotations

"""
HTTP client for the platform calendar route (/api/calendar).

- GET  ?userId=&startDate=&endDate=                      -> {"tasks": [...]}
- PUT  {"id", "userId", "reminderSettings": {...}}       -> {"task": {...}, "success": true}
"""

import logging
from datetime import date
from typing import Any

import httpx

from ..tasks.task_models import InvalidTaskError, Task

logger = logging.getLogger(__name__)

CALENDAR_PATH = "/api/calendar"


class CalendarApiError(RuntimeError):
    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _error_text(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return resp.text[:200]
    if isinstance(data, dict) and data.get("error"):
        return str(data["error"])
    return str(data)[:200]


class CalendarApiClient:
    """
    TaskSource over HTTP.

    The client owns its httpx.AsyncClient unless one is injected (tests pass one
    built on httpx.MockTransport).
    """

    def __init__(
        self,
        base_url: str,
        *,
        token: str | None = None,
        timeout_seconds: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout_seconds,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _request(self, method: str, **kwargs: Any) -> dict[str, Any]:
        try:
            resp = await self._client.request(method, CALENDAR_PATH, **kwargs)
        except httpx.HTTPError as e:
            raise CalendarApiError(f"{method} {CALENDAR_PATH} failed: {e}") from e

        if resp.status_code >= 300:
            raise CalendarApiError(
                f"{method} {CALENDAR_PATH} -> {resp.status_code}: {_error_text(resp)}",
                status_code=resp.status_code,
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise CalendarApiError(f"{method} {CALENDAR_PATH}: response is not JSON") from e
        if not isinstance(data, dict):
            raise CalendarApiError(f"{method} {CALENDAR_PATH}: unexpected body {type(data).__name__}")
        return data

    async def list_tasks(self, user_id: str, start: date, end: date) -> list[Task]:
        data = await self._request(
            "GET",
            params={
                "userId": user_id,
                "startDate": start.isoformat(),
                "endDate": end.isoformat(),
            },
        )

        tasks: list[Task] = []
        for raw in data.get("tasks") or []:
            try:
                tasks.append(Task.from_payload(raw))
            except InvalidTaskError as e:
                logger.warning("Skipping invalid task from API: %s", e)
        return tasks

    async def mark_reminder_sent(self, task_id: str, user_id: str) -> Task | None:
        data = await self._request(
            "PUT",
            json={
                "id": task_id,
                "userId": user_id,
                "reminderSettings": {"reminderSent": True},
            },
        )

        if not data.get("success"):
            logger.warning("Calendar API did not confirm reminderSent task_id=%s", task_id)
            return None

        raw = data.get("task")
        if raw is None:
            return None
        try:
            return Task.from_payload(raw)
        except InvalidTaskError as e:
            logger.warning("Calendar API returned an invalid task: %s", e)
            return None
