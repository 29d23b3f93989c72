"""Reminder data model.

Reminders live in a separate service and point at the entity they remind
about through `entity_type` / `entity_id`. Routine deletion cleans up the
reminders keyed to it; nothing else here creates or delivers them.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from routine_board.scheduling.routines import Routine

ENTITY_ROUTINE = "routine"


@dataclass(frozen=True, slots=True)
class Reminder:
    id: str
    title: str
    entity_type: str
    entity_id: str | None = None
    date: str | None = None  # ISO datetime
    time: str | None = None  # HH:MM
    status: str = "pending"


def reminder_from_wire(data: dict[str, Any]) -> Reminder:
    rid = data.get("_id") or data.get("id")
    if rid is None:
        raise ValueError("reminder has no id")
    entity_id = data.get("entityId")
    return Reminder(
        id=str(rid),
        title=data.get("title", ""),
        entity_type=data.get("entityType", ""),
        entity_id=str(entity_id) if entity_id is not None else None,
        date=data.get("date"),
        time=data.get("time"),
        status=data.get("status") or "pending",
    )


def reminder_time(routine: Routine) -> datetime | None:
    """When the routine's reminder fires, or None if it has no lead time."""
    if not routine.reminder_minutes:
        return None
    return routine.start_time - timedelta(minutes=routine.reminder_minutes)
