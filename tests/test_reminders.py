"""Tests for reminders.py — wire decoding and lead times."""

from datetime import datetime

import pytest

from conftest import make_routine
from routine_board.dates import TZ
from routine_board.scheduling.reminders import ENTITY_ROUTINE, reminder_from_wire, reminder_time


def test_reminder_from_wire():
    reminder = reminder_from_wire(
        {
            "_id": "rem1",
            "title": "Stretch soon",
            "entityType": "routine",
            "entityId": 42,
            "date": "2024-01-03T06:45:00-05:00",
            "time": "06:45",
        }
    )

    assert reminder.id == "rem1"
    assert reminder.entity_type == ENTITY_ROUTINE
    assert reminder.entity_id == "42"
    assert reminder.time == "06:45"
    assert reminder.status == "pending"


def test_reminder_from_wire_accepts_plain_id():
    reminder = reminder_from_wire({"id": 7, "entityType": "task"})

    assert reminder.id == "7"
    assert reminder.entity_id is None


def test_reminder_from_wire_requires_id():
    with pytest.raises(ValueError, match="no id"):
        reminder_from_wire({"title": "orphan"})


def test_reminder_time_subtracts_lead():
    routine = make_routine(reminder_minutes=15)

    assert reminder_time(routine) == datetime(2024, 1, 1, 6, 45, tzinfo=TZ)


def test_reminder_time_none_without_lead():
    assert reminder_time(make_routine()) is None
