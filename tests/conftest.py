"""Shared fixtures for routine-board tests."""

import os

os.environ.setdefault("ROUTINE_BOARD_API_URL", "http://127.0.0.1:9/api")
os.environ.setdefault("ROUTINE_BOARD_TIMEZONE", "America/New_York")

import asyncio
from datetime import datetime
from itertools import count
from typing import Any

import pytest

from routine_board.dates import TZ
from routine_board.errors import PersistenceError, ReminderSyncError
from routine_board.scheduling.reminders import Reminder
from routine_board.scheduling.routines import Routine, from_wire, to_wire

NOW = datetime(2024, 1, 3, 9, 30, tzinfo=TZ)


def make_routine(**overrides: Any) -> Routine:
    fields: dict[str, Any] = {
        "id": "r1",
        "title": "Stretch",
        "start_time": datetime(2024, 1, 1, 7, 0, tzinfo=TZ),
        "end_time": datetime(2024, 1, 1, 7, 30, tzinfo=TZ),
    }
    fields.update(overrides)
    return Routine(**fields)


class FakeRoutineApi:
    """In-memory stand-in for the REST API.

    Changes are applied when a call arrives; `hold_next()` makes the next
    call wait on an event before its response is delivered.
    """

    def __init__(self) -> None:
        self.docs: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, Any]] = []
        self.fail_next: PersistenceError | None = None
        self._holds: list[asyncio.Event] = []
        self._ids = count(1)

    def seed(self, routine: Routine) -> Routine:
        doc = to_wire(routine)
        doc["_id"] = routine.id or f"srv-{next(self._ids)}"
        self.docs[doc["_id"]] = doc
        return from_wire(doc)

    def hold_next(self) -> asyncio.Event:
        event = asyncio.Event()
        self._holds.append(event)
        return event

    def _check_fail(self) -> None:
        if self.fail_next is not None:
            error, self.fail_next = self.fail_next, None
            raise error

    async def list_routines(self, *, status=None, user_id=None) -> list[Routine]:
        self.calls.append(("list", {"status": status, "userId": user_id}))
        hold = self._holds.pop(0) if self._holds else None
        self._check_fail()
        docs = [d for d in self.docs.values() if status is None or d.get("status") == status]
        snapshot = [from_wire(d) for d in docs]
        if hold is not None:
            await hold.wait()
        return snapshot

    async def create_routine(self, draft: Routine) -> Routine:
        self.calls.append(("create", draft))
        hold = self._holds.pop(0) if self._holds else None
        self._check_fail()
        doc = to_wire(draft)
        doc["_id"] = f"srv-{next(self._ids)}"
        self.docs[doc["_id"]] = doc
        result = from_wire(doc)
        if hold is not None:
            await hold.wait()
        return result

    async def update_routine(self, routine_id: str, changes: dict[str, Any]) -> Routine:
        self.calls.append(("update", (routine_id, changes)))
        hold = self._holds.pop(0) if self._holds else None
        self._check_fail()
        if routine_id not in self.docs:
            raise PersistenceError("Routine not found", 404)
        self.docs[routine_id].update(changes)
        result = from_wire(self.docs[routine_id])
        if hold is not None:
            await hold.wait()
        return result

    async def delete_routine(self, routine_id: str) -> None:
        self.calls.append(("delete", routine_id))
        hold = self._holds.pop(0) if self._holds else None
        self._check_fail()
        if routine_id not in self.docs:
            raise PersistenceError("Routine not found", 404)
        del self.docs[routine_id]
        if hold is not None:
            await hold.wait()


class FakeReminderApi:
    def __init__(
        self,
        reminders: list[Reminder] | None = None,
        *,
        fail: bool = False,
        fail_ids: tuple[str, ...] = (),
    ) -> None:
        self.reminders = list(reminders or [])
        self.deleted: list[str] = []
        self.fail = fail
        self.fail_ids = set(fail_ids)

    async def list_for_entity(self, entity_type: str, entity_id: str) -> list[Reminder]:
        return [r for r in self.reminders if r.entity_type == entity_type and r.entity_id == entity_id]

    async def delete_reminder(self, reminder_id: str) -> None:
        if self.fail or reminder_id in self.fail_ids:
            raise ReminderSyncError(f"could not delete reminder {reminder_id}")
        self.deleted.append(reminder_id)
        self.reminders = [r for r in self.reminders if r.id != reminder_id]


@pytest.fixture()
def clock():
    return lambda: NOW


@pytest.fixture()
def fake_api():
    return FakeRoutineApi()
