"""Entry point for routine-board."""

import logging
import sys
from importlib import import_module

HELP = """\
routine-board -- recurring routines, completion tracking and streaks

commands:
  routine-board routine list      Show routines (filter, search, sort)
  routine-board routine add       Add a routine
  routine-board routine done      Mark a routine done (or --undo) for a day
  routine-board routine pause     Pause a routine
  routine-board routine resume    Resume a paused routine
  routine-board routine status    Set a routine's status
  routine-board routine history   Recent completions and current streak
  routine-board routine today     Routines due today, by time of day
  routine-board routine delete    Delete a routine and its reminders
  routine-board help              Show this help message

examples:
  routine-board routine add -t "Stretch" --start 07:00 --end 07:15
  routine-board routine add -t "Gym" --start 18:00 --end 19:00 -f weekly --days 1,3,5
  routine-board routine done 65f1c0 --date 2024-01-03
  routine-board routine list --sort start_time --search gym
"""

_ROUTES: dict[str, tuple[str, str]] = {
    "routine": ("routine_board.routine_cmd", "run_routine_command"),
}


def _dispatch_subcommand(argv: list[str]) -> bool:
    """Route CLI subcommands. Returns True if handled."""
    if not argv:
        return False
    cmd, rest = argv[0], argv[1:]
    if cmd in ("help", "--help", "-h"):
        print(HELP)
        return True
    if cmd in _ROUTES:
        mod_path, func_name = _ROUTES[cmd]
        getattr(import_module(mod_path), func_name)(rest)
        return True
    return False


def main() -> None:
    from routine_board.config import LOG_LEVEL

    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if not _dispatch_subcommand(sys.argv[1:]):
        print(HELP)
        raise SystemExit(1)


if __name__ == "__main__":
    main()
