"""Routine data model, validation and JSON wire codec.

A routine is a recurring activity with a start/end time of day, a frequency
rule and a completion ledger (one entry per calendar date). The REST API
speaks camelCase JSON; `from_wire` / `to_wire` translate at the boundary so
the rest of the package only sees `Routine` values.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Literal

from jsonschema import Draft7Validator

from routine_board.dates import to_date, to_datetime
from routine_board.errors import ValidationError


Frequency = Literal["daily", "weekly", "biweekly", "monthly", "custom"]
RoutineStatus = Literal["active", "paused", "completed", "inactive"]

FREQUENCIES: tuple[str, ...] = ("daily", "weekly", "biweekly", "monthly", "custom")
STATUSES: tuple[str, ...] = ("active", "paused", "completed", "inactive")
DEFAULT_CATEGORY = "General"


@dataclass(frozen=True, slots=True)
class CompletionEntry:
    date: date
    completed: bool


@dataclass(frozen=True, slots=True)
class Routine:
    id: str | None  # None until the server assigns one
    title: str
    start_time: datetime
    end_time: datetime
    frequency: Frequency = "daily"
    days_of_week: tuple[int, ...] = ()
    monthly_date: int | None = None
    status: RoutineStatus = "active"
    reminder_minutes: int = 0
    description: str = ""
    category: str = DEFAULT_CATEGORY
    tags: tuple[str, ...] = ()
    completion_status: tuple[CompletionEntry, ...] = ()
    user_id: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def __post_init__(self) -> None:
        errors = check_routine(self)
        if errors:
            raise ValidationError(errors)

    @staticmethod
    def new(
        title: str,
        *,
        start_time: datetime,
        end_time: datetime,
        frequency: Frequency = "daily",
        days_of_week: list[int] | tuple[int, ...] = (),
        monthly_date: int | None = None,
        reminder_minutes: int = 0,
        description: str = "",
        category: str = DEFAULT_CATEGORY,
        tags: list[str] | tuple[str, ...] = (),
        user_id: str | None = None,
    ) -> Routine:
        """Build a draft routine (no id). Times are normalized to the configured zone."""
        return Routine(
            id=None,
            title=title.strip(),
            start_time=to_datetime(start_time),
            end_time=to_datetime(end_time),
            frequency=frequency,
            days_of_week=tuple(sorted(days_of_week)),
            monthly_date=monthly_date,
            reminder_minutes=reminder_minutes,
            description=description,
            category=category or DEFAULT_CATEGORY,
            tags=tuple(tags),
            user_id=user_id,
        )

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def duration_minutes(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() // 60)


def check_routine(routine: Routine) -> list[str]:
    """Cross-field checks. Returns a list of messages; empty means valid."""
    errors: list[str] = []
    if not routine.title or not routine.title.strip():
        errors.append("title is required")
    if routine.frequency not in FREQUENCIES:
        errors.append(f"invalid frequency: {routine.frequency!r}")
    if routine.status not in STATUSES:
        errors.append(f"invalid status: {routine.status!r}")
    if routine.start_time >= routine.end_time:
        errors.append("start time must be before end time")
    if any(not 0 <= d <= 6 for d in routine.days_of_week):
        errors.append("days of week must be between 0 (Sunday) and 6 (Saturday)")
    if len(set(routine.days_of_week)) != len(routine.days_of_week):
        errors.append("days of week must be unique")
    if routine.frequency in ("weekly", "biweekly") and not routine.days_of_week:
        errors.append(f"at least one day must be selected for {routine.frequency} routines")
    if routine.monthly_date is not None and not 1 <= routine.monthly_date <= 31:
        errors.append("monthly date must be between 1 and 31")
    if routine.frequency == "monthly" and routine.monthly_date is None:
        errors.append("monthly date is required for monthly routines")
    if routine.reminder_minutes < 0:
        errors.append("reminder minutes must be non-negative")
    seen = [e.date for e in routine.completion_status]
    if len(set(seen)) != len(seen):
        errors.append("completion ledger has duplicate dates")
    return errors


# --- Wire format ---

ROUTINE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["title", "startTime", "endTime", "frequency"],
    "properties": {
        "_id": {"type": "string"},
        "id": {"type": "string"},
        "title": {"type": "string", "minLength": 1},
        "startTime": {"type": "string"},
        "endTime": {"type": "string"},
        "frequency": {"type": "string", "enum": list(FREQUENCIES)},
        "daysOfWeek": {
            "type": "array",
            "items": {"type": "integer", "minimum": 0, "maximum": 6},
            "uniqueItems": True,
        },
        "monthlyDate": {"type": ["integer", "null"], "minimum": 1, "maximum": 31},
        "status": {"type": "string", "enum": list(STATUSES)},
        "reminderMinutes": {"type": "integer", "minimum": 0},
        "description": {"type": ["string", "null"]},
        "category": {"type": ["string", "null"]},
        "tags": {"type": "array", "items": {"type": "string"}},
        "completionStatus": {"$ref": "#/definitions/ledger"},
        "dailyCompletionStatus": {"$ref": "#/definitions/ledger"},
        "userId": {"type": ["string", "null"]},
    },
    "definitions": {
        "ledger": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["date", "completed"],
                "properties": {
                    "date": {"type": "string"},
                    "completed": {"type": "boolean"},
                },
            },
        },
    },
}

_VALIDATOR = Draft7Validator(ROUTINE_SCHEMA)

# Python field -> camelCase wire key
_WIRE_KEYS: dict[str, str] = {
    "title": "title",
    "start_time": "startTime",
    "end_time": "endTime",
    "frequency": "frequency",
    "days_of_week": "daysOfWeek",
    "monthly_date": "monthlyDate",
    "status": "status",
    "reminder_minutes": "reminderMinutes",
    "description": "description",
    "category": "category",
    "tags": "tags",
    "completion_status": "completionStatus",
    "user_id": "userId",
}


def validate_payload(data: dict[str, Any]) -> list[str]:
    """Validate a wire dict against ROUTINE_SCHEMA. Returns error messages."""
    return [err.message for err in _VALIDATOR.iter_errors(data)]


def _decode_ledger(items: list[dict[str, Any]]) -> tuple[CompletionEntry, ...]:
    """Collapse duplicate dates (last write wins, first position kept)."""
    by_date: dict[date, bool] = {}
    for item in items:
        by_date[to_date(item["date"])] = bool(item["completed"])
    return tuple(CompletionEntry(d, c) for d, c in by_date.items())


def from_wire(data: dict[str, Any]) -> Routine:
    """Build a Routine from an API document. Unknown keys are ignored."""
    errors = validate_payload(data)
    if errors:
        raise ValidationError(errors)
    ledger = data.get("completionStatus")
    if ledger is None:
        ledger = data.get("dailyCompletionStatus") or []
    try:
        start_time = to_datetime(data["startTime"])
        end_time = to_datetime(data["endTime"])
        completion_status = _decode_ledger(ledger)
    except ValueError as e:
        raise ValidationError(f"invalid date: {e}") from e
    rid = data.get("_id") or data.get("id")
    return Routine(
        id=str(rid) if rid is not None else None,
        title=data["title"].strip(),
        start_time=start_time,
        end_time=end_time,
        frequency=data["frequency"],
        days_of_week=tuple(sorted(data.get("daysOfWeek") or ())),
        monthly_date=data.get("monthlyDate"),
        status=data.get("status") or "active",
        reminder_minutes=data.get("reminderMinutes") or 0,
        description=data.get("description") or "",
        category=data.get("category") or DEFAULT_CATEGORY,
        tags=tuple(data.get("tags") or ()),
        completion_status=completion_status,
        user_id=data.get("userId"),
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
    )


def _encode(name: str, value: Any) -> Any:
    if name in ("start_time", "end_time"):
        return to_datetime(value).isoformat()
    if name == "completion_status":
        return [{"date": e.date.isoformat(), "completed": e.completed} for e in value]
    if name in ("days_of_week", "tags"):
        return list(value)
    return value


def changes_to_wire(changes: dict[str, Any]) -> dict[str, Any]:
    """Encode a partial update keyed by Routine field names."""
    unknown = set(changes) - set(_WIRE_KEYS)
    if unknown:
        raise ValidationError(f"unknown routine fields: {', '.join(sorted(unknown))}")
    return {_WIRE_KEYS[k]: _encode(k, v) for k, v in changes.items()}


def to_wire(routine: Routine) -> dict[str, Any]:
    """Full document for POST. The id is never sent; the server assigns it."""
    changes = {name: getattr(routine, name) for name in _WIRE_KEYS}
    if routine.user_id is None:
        del changes["user_id"]
    return changes_to_wire(changes)


def apply_changes(routine: Routine, changes: dict[str, Any]) -> Routine:
    """Return a copy with `changes` applied; runs full validation."""
    unknown = set(changes) - set(_WIRE_KEYS)
    if unknown:
        raise ValidationError(f"unknown routine fields: {', '.join(sorted(unknown))}")
    normalized = dict(changes)
    for key in ("start_time", "end_time"):
        if key in normalized:
            normalized[key] = to_datetime(normalized[key])
    for key in ("days_of_week", "tags"):
        if key in normalized:
            normalized[key] = tuple(normalized[key])
    if "days_of_week" in normalized:
        normalized["days_of_week"] = tuple(sorted(normalized["days_of_week"]))
    if "title" in normalized and isinstance(normalized["title"], str):
        normalized["title"] = normalized["title"].strip()
    return replace(routine, **normalized)
