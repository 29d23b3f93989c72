"""CLI handler for `routine-board routine` subcommand."""

import argparse
import asyncio
import contextlib
import sys
from collections.abc import AsyncIterator
from datetime import date, datetime

from routine_board import config
from routine_board.api import ReminderApi, RoutineApi
from routine_board.dates import TZ, now_local
from routine_board.errors import RoutineBoardError, ValidationError
from routine_board.formatting import format_frequency, format_history, format_time_range
from routine_board.scheduling.routines import FREQUENCIES, STATUSES, Routine
from routine_board.store import SORT_FIELDS, RoutineStore


@contextlib.asynccontextmanager
async def _make_clients() -> AsyncIterator[tuple[RoutineApi, ReminderApi]]:
    async with RoutineApi(config.API_URL, timeout=config.REQUEST_TIMEOUT) as api:
        async with ReminderApi(config.API_URL, timeout=config.REQUEST_TIMEOUT) as reminders:
            yield api, reminders


def _parse_time(value: str, day: date) -> datetime:
    try:
        parsed = datetime.strptime(value, "%H:%M")
    except ValueError:
        raise ValidationError(f"invalid time {value!r} (expected HH:MM)") from None
    return datetime.combine(day, parsed.time(), tzinfo=TZ)


def _parse_days(value: str | None) -> list[int]:
    if not value:
        return []
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError:
        raise ValidationError(f"invalid days {value!r} (expected e.g. 1,3,5)") from None


def _parse_date(value: str | None) -> date | None:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"invalid date {value!r} (expected YYYY-MM-DD)") from None


def _fmt_line(r: Routine, done: bool) -> str:
    mark = "[x]" if done else "[ ]"
    return f"  {r.id}  {mark}  {format_time_range(r)}  {format_frequency(r):28s}  {r.status:9s}  {r.title}"


def run_routine_command(argv: list[str]) -> None:
    parser = argparse.ArgumentParser(prog="routine-board routine")
    sub = parser.add_subparsers(dest="action")

    list_p = sub.add_parser("list", help="Show routines")
    list_p.add_argument("--status", choices=STATUSES, help="Only this status")
    list_p.add_argument("--search", default="", help="Match title, description or tags")
    list_p.add_argument("--category", default=None, help="Only this category")
    list_p.add_argument("--frequency", choices=FREQUENCIES, default=None, help="Only this frequency")
    list_p.add_argument("--user", default=None, help="Only routines owned by this user id")
    list_p.add_argument("--sort", choices=SORT_FIELDS, default=None, help="Sort field")
    list_p.add_argument("--desc", action="store_true", help="Sort descending")

    add_p = sub.add_parser("add", help="Add a routine")
    add_p.add_argument("--title", "-t", required=True, help="Routine title")
    add_p.add_argument("--start", required=True, help="Start time HH:MM")
    add_p.add_argument("--end", required=True, help="End time HH:MM")
    add_p.add_argument("--frequency", "-f", choices=FREQUENCIES, default="daily")
    add_p.add_argument("--days", default=None, help="Weekdays, Sunday=0 (e.g. 1,3,5)")
    add_p.add_argument("--monthly-date", type=int, default=None, help="Day of month 1-31")
    add_p.add_argument("--category", default="General")
    add_p.add_argument("--tag", action="append", default=[], help="Tag (repeatable)")
    add_p.add_argument("--reminder", type=int, default=0, help="Reminder lead time in minutes")
    add_p.add_argument("--description", "-d", default="")

    done_p = sub.add_parser("done", help="Mark a routine done for a day")
    done_p.add_argument("id", help="Routine ID")
    done_p.add_argument("--date", default=None, help="YYYY-MM-DD (default today)")
    done_p.add_argument("--undo", action="store_true", help="Clear the completion instead")

    for name, help_text in (("pause", "Pause a routine"), ("resume", "Resume a paused routine")):
        p = sub.add_parser(name, help=help_text)
        p.add_argument("id", help="Routine ID")

    status_p = sub.add_parser("status", help="Set a routine's status")
    status_p.add_argument("id", help="Routine ID")
    status_p.add_argument("status", choices=STATUSES)

    hist_p = sub.add_parser("history", help="Recent completions and streak")
    hist_p.add_argument("id", help="Routine ID")
    hist_p.add_argument("--days", type=int, default=7)

    sub.add_parser("today", help="Routines due today, by time of day")

    del_p = sub.add_parser("delete", help="Delete a routine and its reminders")
    del_p.add_argument("id", help="Routine ID")

    args = parser.parse_args(argv)

    if args.action is None:
        parser.print_help()
        sys.exit(1)

    try:
        asyncio.run(_dispatch(args))
    except RoutineBoardError as e:
        print(f"error: {e}")
        sys.exit(1)


async def _dispatch(args: argparse.Namespace) -> None:
    async with _make_clients() as (api, reminders):
        store = RoutineStore(api, reminders=reminders, clock=now_local)
        # `status` is a positional for the status action, a filter only for list
        status = args.status if args.action == "list" else None
        await store.load(status=status, user_id=config.USER_ID)
        handler = _HANDLERS[args.action]
        await handler(store, args)


async def _handle_list(store: RoutineStore, args: argparse.Namespace) -> None:
    store.search(args.search)
    store.filter_category(args.category)
    store.filter_frequency(args.frequency)
    store.select_user(args.user)
    if args.sort:
        store.sort_by(args.sort)
        if args.desc:
            store.sort_by(args.sort)
    routines = store.visible()
    if not routines:
        print("no routines")
        return
    done = store.today_completions()
    for r in routines:
        print(_fmt_line(r, done.get(r.id, False)))  # type: ignore[arg-type]


async def _handle_add(store: RoutineStore, args: argparse.Namespace) -> None:
    day = store.today()
    draft = Routine.new(
        args.title,
        start_time=_parse_time(args.start, day),
        end_time=_parse_time(args.end, day),
        frequency=args.frequency,
        days_of_week=_parse_days(args.days),
        monthly_date=args.monthly_date,
        reminder_minutes=args.reminder,
        description=args.description,
        category=args.category,
        tags=args.tag,
        user_id=config.USER_ID,
    )
    m = await store.create(draft)
    created = m.result
    assert created is not None
    print(f"added {created.id}: {format_frequency(created)} {format_time_range(created)} -- {created.title}")


async def _handle_done(store: RoutineStore, args: argparse.Namespace) -> None:
    day = _parse_date(args.date) or store.today()
    if args.undo:
        await store.record_completion(args.id, day, False)
        print(f"cleared {args.id} for {day.isoformat()}")
        return
    if store.completion_on(args.id, day):
        print(f"{args.id} already done for {day.isoformat()}")
        return
    await store.toggle_completion(args.id, day)
    print(f"done {args.id} for {day.isoformat()} (streak {store.streak(args.id)})")


async def _handle_pause(store: RoutineStore, args: argparse.Namespace) -> None:
    await store.pause(args.id)
    print(f"paused {args.id}")


async def _handle_resume(store: RoutineStore, args: argparse.Namespace) -> None:
    if await store.resume(args.id) is None:
        print(f"{args.id} is not paused")
        return
    print(f"resumed {args.id}")


async def _handle_status(store: RoutineStore, args: argparse.Namespace) -> None:
    await store.set_status(args.id, args.status)
    print(f"{args.id} is now {args.status}")


async def _handle_history(store: RoutineStore, args: argparse.Namespace) -> None:
    history = store.history(args.id, args.days)
    if history:
        print(f"{history[0].date.isoformat()} .. {history[-1].date.isoformat()}")
    print(f"  {format_history([e.completed for e in history])}")
    print(f"streak: {store.streak(args.id)}")


async def _handle_today(store: RoutineStore, args: argparse.Namespace) -> None:
    due = store.due_today()
    if not due:
        print("nothing due today")
        return
    done = store.today_completions()
    due_ids = {r.id for r in due}
    for bucket, routines in store.by_time_of_day().items():
        routines = [r for r in routines if r.id in due_ids]
        if not routines:
            continue
        print(f"{bucket}:")
        for r in routines:
            print(_fmt_line(r, done.get(r.id, False)))  # type: ignore[arg-type]


async def _handle_delete(store: RoutineStore, args: argparse.Namespace) -> None:
    await store.delete(args.id)
    print(f"deleted {args.id}")


_HANDLERS = {
    "list": _handle_list,
    "add": _handle_add,
    "done": _handle_done,
    "pause": _handle_pause,
    "resume": _handle_resume,
    "status": _handle_status,
    "history": _handle_history,
    "today": _handle_today,
    "delete": _handle_delete,
}
