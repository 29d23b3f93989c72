"""Human-readable labels for routines."""

from routine_board.dates import to_datetime
from routine_board.scheduling.routines import Routine

DAY_LETTERS = ("S", "M", "T", "W", "T", "F", "S")


def ordinal(n: int) -> str:
    """1 -> 1st, 2 -> 2nd, 11 -> 11th, 23 -> 23rd."""
    if 10 <= n % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(n % 10, "th")
    return f"{n}{suffix}"


def format_days(days: tuple[int, ...]) -> str:
    """Week strip like ``-M-W-F-``; selected days show their letter."""
    return "".join(letter if i in days else "-" for i, letter in enumerate(DAY_LETTERS))


def format_frequency(routine: Routine) -> str:
    if routine.frequency == "daily":
        return "Daily"
    if routine.frequency == "weekly":
        return f"Weekly {format_days(routine.days_of_week)}"
    if routine.frequency == "biweekly":
        return f"Every 2 weeks {format_days(routine.days_of_week)}"
    if routine.frequency == "monthly":
        return f"{ordinal(routine.monthly_date or 1)} day of every month"
    return routine.frequency.capitalize()


def format_time_range(routine: Routine) -> str:
    start = to_datetime(routine.start_time).strftime("%H:%M")
    end = to_datetime(routine.end_time).strftime("%H:%M")
    return f"{start}-{end}"


def format_history(flags: list[bool]) -> str:
    return "".join("x" if done else "." for done in flags)
