"""Routine aggregate store: the single owner of a session's routines.

Reads go through selectors, which return tuples and are cached until the
next state change. Writes are async actions that run in three phases:

1. optimistic local mutation,
2. the persistence call through the injected API,
3. reconciliation: the server's entity replaces the optimistic one, or the
   local state rolls back to the last confirmed entity on failure.

Each action returns a `Mutation` record; when the call fails, the rolled-back
record is attached to the re-raised `PersistenceError`.

Responses are ordered by when their request was initiated: a response older
than one already confirmed for the same routine is discarded, and a response
never overwrites the local state while a newer mutation of that routine is
still in flight.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Literal, Protocol
from uuid import uuid4

from routine_board.dates import Clock, now_local, to_date, to_datetime
from routine_board.errors import NotFound, PersistenceError, ReminderSyncError, ValidationError
from routine_board.scheduling import ledger
from routine_board.scheduling.recurrence import CustomRule, is_due_on, is_scheduled_on
from routine_board.scheduling.reminders import ENTITY_ROUTINE, Reminder, reminder_time
from routine_board.scheduling.routines import (
    FREQUENCIES,
    STATUSES,
    CompletionEntry,
    Routine,
    apply_changes,
    changes_to_wire,
)
from routine_board.scheduling.streaks import current_streak
from routine_board.scheduling.timeofday import TimeOfDay, group_by_time_of_day

log = logging.getLogger(__name__)

LoadState = Literal["idle", "loading", "succeeded", "failed"]
MutationState = Literal["pending", "committed", "rolled_back"]
SortField = Literal["title", "start_time", "status"]
SORT_FIELDS: tuple[str, ...] = ("title", "start_time", "status")
TEMP_PREFIX = "tmp-"


class RoutinePersistence(Protocol):
    async def list_routines(
        self, *, status: str | None = None, user_id: str | None = None
    ) -> list[Routine]: ...

    async def create_routine(self, draft: Routine) -> Routine: ...

    async def update_routine(self, routine_id: str, changes: dict[str, Any]) -> Routine: ...

    async def delete_routine(self, routine_id: str) -> None: ...


class ReminderService(Protocol):
    async def list_for_entity(self, entity_type: str, entity_id: str) -> list[Reminder]: ...

    async def delete_reminder(self, reminder_id: str) -> None: ...


@dataclass(slots=True)
class Mutation:
    seq: int
    kind: str
    routine_id: str
    state: MutationState = "pending"
    result: Routine | None = None
    error: str | None = None


_SORT_KEYS: dict[str, Callable[[Routine], Any]] = {
    "title": lambda r: r.title.lower(),
    "start_time": lambda r: r.start_time,
    "status": lambda r: r.status,
}


def _require_saved(routine: Routine) -> None:
    if routine.id is None or routine.id.startswith(TEMP_PREFIX):
        raise ValidationError(f"routine {routine.title!r} is still being created")


class RoutineStore:
    def __init__(
        self,
        api: RoutinePersistence,
        *,
        reminders: ReminderService | None = None,
        clock: Clock = now_local,
        custom_rule: CustomRule | None = None,
    ) -> None:
        self._api = api
        self._reminders = reminders
        self._clock = clock
        self._custom_rule = custom_rule

        self._routines: list[Routine] = []
        self._confirmed: dict[str, Routine] = {}
        self._confirmed_seq: dict[str, int] = {}
        self._inflight: dict[str, set[int]] = {}
        self._seq = itertools.count(1)

        self.load_state: LoadState = "idle"
        self.error: str | None = None
        self.notifications: list[str] = []

        self.search_term = ""
        self.category_filter: str | None = None
        self.frequency_filter: str | None = None
        self.status_filter: str | None = None
        self.user_filter: str | None = None
        self.sort_field: SortField | None = None
        self.sort_direction: Literal["asc", "desc"] = "asc"

        self._revision = 0
        self._cache: dict[tuple[Any, ...], Any] = {}

    # --- internal state helpers ---

    def _touch(self) -> None:
        self._revision += 1
        self._cache.clear()

    def _memo(self, key: tuple[Any, ...], compute: Callable[[], Any]) -> Any:
        if key not in self._cache:
            self._cache[key] = compute()
        return self._cache[key]

    def _index(self, routine_id: str) -> int | None:
        for i, r in enumerate(self._routines):
            if r.id == routine_id:
                return i
        return None

    def _put(self, routine: Routine, *, at: int | None = None, replacing: str | None = None) -> None:
        """Replace the entry with id `replacing` (default: routine.id) or insert it."""
        idx = self._index(replacing or routine.id)  # type: ignore[arg-type]
        if idx is not None:
            self._routines[idx] = routine
        elif at is not None:
            self._routines.insert(min(at, len(self._routines)), routine)
        else:
            self._routines.append(routine)
        self._touch()

    def _remove(self, routine_id: str) -> None:
        idx = self._index(routine_id)
        if idx is not None:
            del self._routines[idx]
            self._touch()

    def _begin(self, kind: str, routine_id: str) -> Mutation:
        seq = next(self._seq)
        self._inflight.setdefault(routine_id, set()).add(seq)
        return Mutation(seq=seq, kind=kind, routine_id=routine_id)

    def _finish(self, m: Mutation) -> None:
        pending = self._inflight.get(m.routine_id)
        if pending is not None:
            pending.discard(m.seq)
            if not pending:
                del self._inflight[m.routine_id]

    def _superseded(self, m: Mutation) -> bool:
        return any(seq > m.seq for seq in self._inflight.get(m.routine_id, ()))

    def _is_stale(self, m: Mutation) -> bool:
        return m.seq < self._confirmed_seq.get(m.routine_id, 0)

    def _commit(self, m: Mutation, confirmed: Routine | None) -> None:
        """Reconcile a successful response. `confirmed` is None for deletes."""
        m.state = "committed"
        m.result = confirmed
        if self._is_stale(m):
            log.debug("Discarding stale %s response for %s (#%d)", m.kind, m.routine_id, m.seq)
            return
        self._confirmed_seq[m.routine_id] = m.seq
        if confirmed is None:
            self._confirmed.pop(m.routine_id, None)
            if not self._superseded(m):
                self._remove(m.routine_id)
        else:
            self._confirmed[m.routine_id] = confirmed
            if not self._superseded(m):
                self._put(confirmed)
        log.info("Committed %s of routine %s", m.kind, m.routine_id)

    def _rollback(self, m: Mutation, before: Routine | None, at: int | None, error: PersistenceError) -> None:
        m.state = "rolled_back"
        m.error = error.message
        error.mutation = m
        if not self._superseded(m):
            target = self._confirmed.get(m.routine_id, before)
            if target is None:
                self._remove(m.routine_id)
            else:
                self._put(target, at=at)
        self.notifications.append(f"Failed to {m.kind} routine: {error.message}")
        self._touch()
        log.warning("Rolled back %s of routine %s: %s", m.kind, m.routine_id, error)

    def _holds_newer(self, routine_id: str, seq: int) -> bool:
        """A mutation of `routine_id` started after `seq` or is still in flight."""
        return routine_id in self._inflight or self._confirmed_seq.get(routine_id, 0) > seq

    def _merge_loaded(self, loaded: list[Routine], seq: int) -> None:
        """Adopt a list response without undoing anything newer than request `seq`.

        Routines with a newer local state keep it (including being absent after
        a newer delete); pending creates survive. Everything else mirrors the
        server's list.
        """
        local = {r.id: r for r in self._routines}
        merged: list[Routine] = []
        seen: set[str] = set()
        for routine in loaded:
            rid = routine.id
            if rid is None or rid in seen:
                continue
            seen.add(rid)
            if self._holds_newer(rid, seq):
                if rid in local:
                    merged.append(local[rid])
                continue
            merged.append(routine)
            self._confirmed[rid] = routine
            self._confirmed_seq[rid] = seq
        for rid, routine in local.items():
            if rid in seen or rid is None:
                continue
            if rid.startswith(TEMP_PREFIX) or self._holds_newer(rid, seq):
                merged.append(routine)
            else:
                self._confirmed.pop(rid, None)
        self._routines = merged

    async def _persist_update(self, before: Routine, optimistic: Routine, changes: dict[str, Any]) -> Mutation:
        _require_saved(before)
        payload = changes_to_wire(changes)
        m = self._begin("update", before.id)  # type: ignore[arg-type]
        self._put(optimistic)
        try:
            confirmed = await self._api.update_routine(m.routine_id, payload)
        except PersistenceError as e:
            self._finish(m)
            self._rollback(m, before, None, e)
            raise
        self._finish(m)
        self._commit(m, confirmed)
        return m

    # --- selectors ---

    @property
    def routines(self) -> tuple[Routine, ...]:
        return self._memo(("all",), lambda: tuple(self._routines))

    def today(self) -> date:
        return to_date(self._clock())

    def by_id(self, routine_id: str) -> Routine | None:
        idx = self._index(routine_id)
        return self._routines[idx] if idx is not None else None

    def get(self, routine_id: str) -> Routine:
        routine = self.by_id(routine_id)
        if routine is None:
            raise NotFound(routine_id)
        return routine

    def visible(self) -> tuple[Routine, ...]:
        """User, search, category, frequency and status filters, then sort."""
        return self._memo(("visible",), self._compute_visible)

    def _compute_visible(self) -> tuple[Routine, ...]:
        result = list(self._routines)
        if self.user_filter:
            result = [r for r in result if r.user_id == self.user_filter]
        if self.search_term:
            term = self.search_term.lower()
            result = [
                r for r in result
                if term in r.title.lower()
                or term in r.description.lower()
                or any(term in tag.lower() for tag in r.tags)
            ]
        if self.category_filter:
            result = [r for r in result if r.category == self.category_filter]
        if self.frequency_filter:
            result = [r for r in result if r.frequency == self.frequency_filter]
        if self.status_filter:
            result = [r for r in result if r.status == self.status_filter]
        if self.sort_field:
            result.sort(key=_SORT_KEYS[self.sort_field], reverse=self.sort_direction == "desc")
        return tuple(result)

    def total(self) -> int:
        return len(self.visible())

    def by_status(self, status: str) -> tuple[Routine, ...]:
        return self._memo(("status", status), lambda: tuple(r for r in self.visible() if r.status == status))

    def active(self) -> tuple[Routine, ...]:
        return self.by_status("active")

    def paused(self) -> tuple[Routine, ...]:
        return self.by_status("paused")

    def completed(self) -> tuple[Routine, ...]:
        return self.by_status("completed")

    def by_category(self, category: str) -> tuple[Routine, ...]:
        return self._memo(("category", category), lambda: tuple(r for r in self.visible() if r.category == category))

    def by_tag(self, tag: str) -> tuple[Routine, ...]:
        return self._memo(("tag", tag), lambda: tuple(r for r in self.visible() if tag in r.tags))

    def by_frequency(self, frequency: str) -> tuple[Routine, ...]:
        return self._memo(
            ("frequency", frequency),
            lambda: tuple(r for r in self.visible() if r.frequency == frequency),
        )

    def categories(self) -> list[str]:
        return sorted({r.category for r in self._routines})

    def by_time_of_day(self) -> dict[TimeOfDay, list[Routine]]:
        return group_by_time_of_day(self.visible())

    def upcoming(self, now: datetime | None = None) -> tuple[Routine, ...]:
        now = to_datetime(now) if now is not None else self._clock()
        return tuple(r for r in self.visible() if r.start_time > now)

    def scheduled_on(self, day: date) -> tuple[Routine, ...]:
        return tuple(r for r in self._routines if is_scheduled_on(r, day, custom=self._custom_rule))

    def due_today(self) -> tuple[Routine, ...]:
        today = self.today()
        return self._memo(
            ("due", today),
            lambda: tuple(r for r in self._routines if is_due_on(r, today, custom=self._custom_rule)),
        )

    def completed_on(self, day: date) -> list[Routine]:
        return ledger.completed_on(self._routines, day)

    def completion_on(self, routine_id: str, day: date) -> bool:
        return ledger.completion_for(self.get(routine_id), day)

    def today_completion(self, routine_id: str) -> bool:
        """False for unknown ids, matching how a card renders before hydration."""
        routine = self.by_id(routine_id)
        return routine is not None and ledger.completion_for(routine, self.today())

    def today_completions(self) -> dict[str, bool]:
        """Today's completion flag per routine id."""
        today = self.today()
        return self._memo(
            ("today", today),
            lambda: {r.id: ledger.completion_for(r, today) for r in self._routines if r.id is not None},
        )

    def history(self, routine_id: str, days: int = 7) -> list[CompletionEntry]:
        return ledger.history_for(self.get(routine_id), days, self.today())

    def streak(self, routine_id: str, reference: date | None = None) -> int:
        routine = self.by_id(routine_id)
        if routine is None:
            return 0
        return current_streak(routine, reference if reference is not None else self.today())

    def reminder_time(self, routine_id: str) -> datetime | None:
        routine = self.by_id(routine_id)
        return reminder_time(routine) if routine is not None else None

    # --- filter actions ---

    def search(self, term: str) -> None:
        self.search_term = term.strip()
        self._touch()

    def filter_category(self, category: str | None) -> None:
        self.category_filter = category or None
        self._touch()

    def filter_frequency(self, frequency: str | None) -> None:
        if frequency and frequency not in FREQUENCIES:
            raise ValidationError(f"invalid frequency: {frequency!r}")
        self.frequency_filter = frequency or None
        self._touch()

    def filter_status(self, status: str | None) -> None:
        if status and status not in STATUSES:
            raise ValidationError(f"invalid status: {status!r}")
        self.status_filter = status or None
        self._touch()

    def select_user(self, user_id: str | None) -> None:
        self.user_filter = user_id or None
        self._touch()

    def sort_by(self, field: str) -> None:
        """Same field flips the direction; a new field starts ascending."""
        if field not in SORT_FIELDS:
            raise ValidationError(f"cannot sort by {field!r}")
        if self.sort_field == field:
            self.sort_direction = "desc" if self.sort_direction == "asc" else "asc"
        else:
            self.sort_field = field  # type: ignore[assignment]
            self.sort_direction = "asc"
        self._touch()

    def clear_filters(self) -> None:
        self.search_term = ""
        self.category_filter = None
        self.frequency_filter = None
        self.status_filter = None
        self.user_filter = None
        self.sort_field = None
        self.sort_direction = "asc"
        self._touch()

    def dismiss_notification(self, index: int = 0) -> None:
        if 0 <= index < len(self.notifications):
            del self.notifications[index]

    # --- mutating actions ---

    async def load(self, *, status: str | None = None, user_id: str | None = None) -> None:
        """Hydrate from the API. On failure the store holds no routines at all."""
        self.load_state = "loading"
        self.error = None
        self._touch()
        seq = next(self._seq)
        try:
            routines = await self._api.list_routines(status=status, user_id=user_id)
        except PersistenceError as e:
            self.load_state = "failed"
            self.error = e.message
            self._routines = []
            self._confirmed.clear()
            self._touch()
            log.warning("Failed to load routines: %s", e)
            raise
        self._merge_loaded(routines, seq)
        self.load_state = "succeeded"
        self._touch()
        log.info("Loaded %d routines", len(routines))

    async def create(self, draft: Routine) -> Mutation:
        if draft.id is not None:
            raise ValidationError("a new routine must not carry an id")
        temp_id = f"{TEMP_PREFIX}{uuid4().hex[:8]}"
        m = self._begin("create", temp_id)
        self._put(replace(draft, id=temp_id))
        try:
            created = await self._api.create_routine(draft)
        except PersistenceError as e:
            self._finish(m)
            self._rollback(m, None, None, e)
            raise
        self._finish(m)
        m.state = "committed"
        m.result = created
        self._confirmed[created.id] = created  # type: ignore[index]
        self._confirmed_seq[created.id] = max(m.seq, self._confirmed_seq.get(created.id, 0))  # type: ignore[index,arg-type]
        if self._index(created.id) is not None:  # type: ignore[arg-type]
            # a reload already listed it
            self._remove(temp_id)
            self._put(created)
        else:
            self._put(created, replacing=temp_id)
        log.info("Created routine %s", created.id)
        return m

    async def update(self, routine_id: str, **changes: Any) -> Mutation:
        before = self.get(routine_id)
        if not changes:
            raise ValidationError("no changes given")
        optimistic = apply_changes(before, changes)
        normalized = {name: getattr(optimistic, name) for name in changes}
        return await self._persist_update(before, optimistic, normalized)

    async def set_status(self, routine_id: str, status: str) -> Mutation:
        if status not in STATUSES:
            raise ValidationError(f"invalid status: {status!r}")
        return await self.update(routine_id, status=status)

    async def pause(self, routine_id: str) -> Mutation:
        return await self.set_status(routine_id, "paused")

    async def resume(self, routine_id: str) -> Mutation | None:
        """Only paused routines resume; anything else is left alone."""
        if self.get(routine_id).status != "paused":
            return None
        return await self.set_status(routine_id, "active")

    async def record_completion(self, routine_id: str, day: date, completed: bool) -> Mutation:
        before = self.get(routine_id)
        optimistic = ledger.record_completion(before, day, completed)
        changes = {"completion_status": optimistic.completion_status}
        return await self._persist_update(before, optimistic, changes)

    async def toggle_completion(self, routine_id: str, day: date | None = None) -> Mutation:
        """Flip the ledger entry for `day` (default today).

        Completing today's entry also marks the routine itself completed.
        """
        before = self.get(routine_id)
        today = self.today()
        day = to_date(day) if day is not None else today
        completed = not ledger.completion_for(before, day)
        optimistic = ledger.record_completion(before, day, completed)
        changes: dict[str, Any] = {"completion_status": optimistic.completion_status}
        if completed and day == today:
            optimistic = replace(optimistic, status="completed")
            changes["status"] = "completed"
        return await self._persist_update(before, optimistic, changes)

    async def delete(self, routine_id: str) -> Mutation:
        """Delete the routine, then best-effort delete its reminders."""
        before = self.get(routine_id)
        _require_saved(before)
        at = self._index(routine_id)
        m = self._begin("delete", routine_id)
        self._remove(routine_id)
        try:
            await self._api.delete_routine(routine_id)
        except PersistenceError as e:
            self._finish(m)
            self._rollback(m, before, at, e)
            raise
        self._finish(m)
        self._commit(m, None)
        await self._drop_reminders(routine_id)
        return m

    async def _drop_reminders(self, routine_id: str) -> None:
        if self._reminders is None:
            return
        try:
            reminders = await self._reminders.list_for_entity(ENTITY_ROUTINE, routine_id)
        except ReminderSyncError as e:
            log.warning("Reminder cleanup for routine %s failed: %s", routine_id, e)
            return
        for reminder in reminders:
            try:
                await self._reminders.delete_reminder(reminder.id)
            except ReminderSyncError as e:
                log.warning("Reminder cleanup for routine %s failed: %s", routine_id, e)
