"""Scheduling: routine model, recurrence, completion ledger, streaks."""

from routine_board.scheduling.ledger import (
    completed_on,
    completion_for,
    history_for,
    record_completion,
)
from routine_board.scheduling.recurrence import is_due_on, is_scheduled_on
from routine_board.scheduling.reminders import Reminder, reminder_time
from routine_board.scheduling.routines import (
    CompletionEntry,
    Routine,
    from_wire,
    to_wire,
)
from routine_board.scheduling.streaks import current_streak
from routine_board.scheduling.timeofday import classify, group_by_time_of_day

__all__ = [
    "CompletionEntry",
    "Reminder",
    "Routine",
    "classify",
    "completed_on",
    "completion_for",
    "current_streak",
    "from_wire",
    "group_by_time_of_day",
    "history_for",
    "is_due_on",
    "is_scheduled_on",
    "record_completion",
    "reminder_time",
    "to_wire",
]
