"""Streak counting over the completion ledger."""

from datetime import date, timedelta

from routine_board.dates import to_date
from routine_board.scheduling.routines import Routine


def current_streak(routine: Routine, reference: date) -> int:
    """Consecutive completed days ending at `reference`.

    Walks backward one calendar day at a time and stops at the first day
    without a completed entry. Every calendar day counts, whether or not the
    routine was scheduled on it, so a day off breaks the streak the same way
    a missed day does. Entries after `reference` are ignored.
    """
    reference = to_date(reference)
    completed = {e.date for e in routine.completion_status if e.completed}
    streak = 0
    while reference - timedelta(days=streak) in completed:
        streak += 1
    return streak
