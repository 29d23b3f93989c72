"""Time-of-day buckets for grouping routines by start hour."""

from collections.abc import Iterable
from typing import Literal

from routine_board.dates import to_datetime
from routine_board.scheduling.routines import Routine

TimeOfDay = Literal["morning", "afternoon", "evening", "other"]

# (bucket, first hour, end hour exclusive)
BUCKETS: tuple[tuple[TimeOfDay, int, int], ...] = (
    ("morning", 5, 12),
    ("afternoon", 12, 17),
    ("evening", 17, 22),
)


def classify(routine: Routine) -> TimeOfDay:
    hour = to_datetime(routine.start_time).hour
    for name, start, end in BUCKETS:
        if start <= hour < end:
            return name
    return "other"


def group_by_time_of_day(routines: Iterable[Routine]) -> dict[TimeOfDay, list[Routine]]:
    """All four buckets, always present, input order preserved."""
    groups: dict[TimeOfDay, list[Routine]] = {
        "morning": [],
        "afternoon": [],
        "evening": [],
        "other": [],
    }
    for routine in routines:
        groups[classify(routine)].append(routine)
    return groups
