"""Completion ledger: per-routine, date-keyed completion records.

One entry per calendar date (upsert, never append a duplicate). A date with
no entry counts as not completed.
"""

from collections.abc import Iterable
from dataclasses import replace
from datetime import date, timedelta

from routine_board.dates import to_date
from routine_board.scheduling.routines import CompletionEntry, Routine


def record_completion(routine: Routine, day: date, completed: bool) -> Routine:
    """Overwrite the entry for `day` if present, else append one."""
    day = to_date(day)
    entries = list(routine.completion_status)
    for i, entry in enumerate(entries):
        if entry.date == day:
            entries[i] = CompletionEntry(day, completed)
            break
    else:
        entries.append(CompletionEntry(day, completed))
    return replace(routine, completion_status=tuple(entries))


def completion_for(routine: Routine, day: date) -> bool:
    day = to_date(day)
    for entry in routine.completion_status:
        if entry.date == day:
            return entry.completed
    return False


def history_for(routine: Routine, days: int, today: date) -> list[CompletionEntry]:
    """Exactly `days` entries ending at `today`, oldest first; gaps are False."""
    if days < 0:
        raise ValueError("days must be non-negative")
    today = to_date(today)
    recorded = {e.date: e.completed for e in routine.completion_status}
    history = []
    for offset in range(days - 1, -1, -1):
        d = today - timedelta(days=offset)
        history.append(CompletionEntry(d, recorded.get(d, False)))
    return history


def completed_on(routines: Iterable[Routine], day: date) -> list[Routine]:
    """Routines with a completed entry on `day`."""
    day = to_date(day)
    return [r for r in routines if completion_for(r, day)]
