"""HTTP clients for the routines REST API and the reminder service."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import aiohttp

from routine_board.errors import (
    NetworkError,
    PersistenceError,
    ReminderSyncError,
    ValidationError,
)
from routine_board.scheduling.reminders import Reminder, reminder_from_wire
from routine_board.scheduling.routines import Routine, from_wire, to_wire

log = logging.getLogger(__name__)


def _error_message(body: Any, default: str) -> str:
    """Pull the server's message out of an error body, if it sent one."""
    if isinstance(body, dict):
        for key in ("message", "error"):
            value = body.get(key)
            if isinstance(value, str) and value:
                return value
    if isinstance(body, str) and body.strip():
        return body.strip()[:200]
    return default


def _unwrap(data: Any, key: str) -> Any:
    """Accept both a bare document and one wrapped as {key: document}."""
    if isinstance(data, dict) and key in data and isinstance(data[key], (dict, list)):
        return data[key]
    return data


class JsonClient:
    """Owns one aiohttp session; every call gets the configured timeout."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> JsonClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            )
            self._owns_session = True
        return self._session

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str | None] | None = None,
        payload: Any = None,
    ) -> Any:
        """Send a JSON request. Returns the decoded body, or None when empty."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        query = {k: v for k, v in (params or {}).items() if v is not None}
        session = self._get_session()
        try:
            async with session.request(method, url, params=query, json=payload) as resp:
                text = await resp.text()
                status = resp.status
        except asyncio.TimeoutError as e:
            raise NetworkError(f"{method} {path} timed out after {self.timeout:g}s") from e
        except aiohttp.ClientError as e:
            raise NetworkError(f"{method} {path} failed: {str(e) or type(e).__name__}") from e

        body: Any = None
        if text:
            try:
                body = json.loads(text)
            except ValueError:
                body = text
        if status >= 400:
            raise PersistenceError(_error_message(body, f"{method} {path} failed"), status)
        if isinstance(body, str):
            raise PersistenceError(f"{method} {path} returned invalid JSON", status)
        return body


class RoutineApi(JsonClient):
    async def list_routines(
        self,
        *,
        status: str | None = None,
        user_id: str | None = None,
    ) -> list[Routine]:
        """Skips documents that fail validation instead of failing the whole load."""
        data = _unwrap(
            await self.request("GET", "routines", params={"status": status, "userId": user_id}),
            "routines",
        )
        if not isinstance(data, list):
            raise PersistenceError("GET routines returned an unexpected body")
        result: list[Routine] = []
        for item in data:
            try:
                result.append(from_wire(item))
            except (ValidationError, TypeError, KeyError):
                log.warning("Skipping corrupt routine: %.200s", item)
        return result

    async def create_routine(self, draft: Routine) -> Routine:
        data = await self.request("POST", "routines", payload=to_wire(draft))
        return self._decode(_unwrap(data, "routine"), "POST routines")

    async def update_routine(self, routine_id: str, changes: dict[str, Any]) -> Routine:
        data = await self.request("PUT", f"routines/{routine_id}", payload=changes)
        return self._decode(_unwrap(data, "routine"), f"PUT routines/{routine_id}")

    async def delete_routine(self, routine_id: str) -> None:
        await self.request("DELETE", f"routines/{routine_id}")

    @staticmethod
    def _decode(data: Any, what: str) -> Routine:
        if not isinstance(data, dict):
            raise PersistenceError(f"{what} returned an unexpected body")
        try:
            routine = from_wire(data)
        except ValidationError as e:
            raise PersistenceError(f"{what} returned an invalid routine: {e}") from e
        if routine.id is None:
            raise PersistenceError(f"{what} returned a routine without an id")
        return routine


class ReminderApi(JsonClient):
    """Reminder lookups and deletes. Every failure surfaces as ReminderSyncError."""

    async def list_for_entity(self, entity_type: str, entity_id: str) -> list[Reminder]:
        try:
            data = await self.request(
                "GET",
                "reminder",
                params={"entityType": entity_type, "entityId": entity_id},
            )
        except PersistenceError as e:
            raise ReminderSyncError(f"could not list reminders: {e}") from e
        items = _unwrap(data, "reminders") or []
        if not isinstance(items, list):
            raise ReminderSyncError("GET reminder returned an unexpected body")
        reminders = []
        for item in items:
            try:
                reminders.append(reminder_from_wire(item))
            except (ValueError, AttributeError):
                log.warning("Skipping corrupt reminder: %.200s", item)
        # The service may ignore the filter; only trust matching keys.
        return [
            r for r in reminders
            if r.entity_type == entity_type and r.entity_id == entity_id
        ]

    async def delete_reminder(self, reminder_id: str) -> None:
        try:
            await self.request("DELETE", f"reminder/{reminder_id}")
        except PersistenceError as e:
            raise ReminderSyncError(f"could not delete reminder {reminder_id}: {e}") from e
