"""Canonical calendar-date handling.

Every ledger key and recurrence check goes through `to_date`, which resolves
instants to a plain `datetime.date` in the configured timezone (config.TZ).
Naive datetimes are taken to already be in that timezone.
"""

from collections.abc import Callable
from datetime import date, datetime

from routine_board.config import TZ as TZ

Clock = Callable[[], datetime]

WEEKDAY_NAMES = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")


def now_local() -> datetime:
    return datetime.now(TZ)


def to_datetime(value: datetime | str) -> datetime:
    """Parse an ISO string or datetime into an aware datetime in TZ."""
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip())
    if value.tzinfo is None:
        return value.replace(tzinfo=TZ)
    return value.astimezone(TZ)


def to_date(value: date | datetime | str) -> date:
    """Normalize a date, datetime or ISO string to a calendar date in TZ."""
    if isinstance(value, datetime):
        return to_datetime(value).date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if len(text) == 10:
        return date.fromisoformat(text)
    return to_datetime(text).date()


def today(clock: Clock = now_local) -> date:
    return to_date(clock())


def weekday(day: date) -> int:
    """Day of week with Sunday=0 through Saturday=6."""
    return (day.weekday() + 1) % 7


def iso_week_parity(day: date) -> int:
    return day.isocalendar()[1] % 2
