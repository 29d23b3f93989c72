"""Recurrence rules: is a routine scheduled on a given calendar date?

Pure functions. Routine status is not consulted here; `is_due_on` combines
the schedule with the active-status check.

Biweekly routines run on their selected weekdays in every other ISO week,
counted from the week that contains the routine's start time. Custom
routines defer to a caller-supplied predicate and are always eligible
without one.
"""

from collections.abc import Callable
from datetime import date

from routine_board.dates import iso_week_parity, to_date, weekday
from routine_board.scheduling.routines import Routine

CustomRule = Callable[[Routine, date], bool]


def _on_selected_weekday(routine: Routine, day: date) -> bool:
    return weekday(day) in routine.days_of_week


def is_scheduled_on(
    routine: Routine,
    day: date,
    *,
    custom: CustomRule | None = None,
) -> bool:
    day = to_date(day)
    if routine.frequency == "daily":
        return True
    if routine.frequency == "weekly":
        return _on_selected_weekday(routine, day)
    if routine.frequency == "biweekly":
        anchor = to_date(routine.start_time)
        return _on_selected_weekday(routine, day) and iso_week_parity(day) == iso_week_parity(anchor)
    if routine.frequency == "monthly":
        # No clamping: the 31st never lands in a 30-day month.
        return day.day == routine.monthly_date
    if routine.frequency == "custom":
        return custom(routine, day) if custom is not None else True
    raise ValueError(f"unknown frequency: {routine.frequency!r}")


def is_due_on(
    routine: Routine,
    day: date,
    *,
    custom: CustomRule | None = None,
) -> bool:
    """Scheduled on `day` and currently active."""
    return routine.is_active and is_scheduled_on(routine, day, custom=custom)
