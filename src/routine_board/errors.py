"""Error taxonomy for routine operations."""

from __future__ import annotations

from typing import Any


class RoutineBoardError(Exception):
    """Base class for every error raised by routine-board."""


class ValidationError(RoutineBoardError, ValueError):
    """Malformed routine input. Raised before anything reaches the server."""

    def __init__(self, errors: list[str] | str) -> None:
        self.errors = [errors] if isinstance(errors, str) else list(errors)
        super().__init__("; ".join(self.errors))


class NotFound(RoutineBoardError):
    def __init__(self, routine_id: str) -> None:
        self.routine_id = routine_id
        super().__init__(f"routine {routine_id} not found")


class PersistenceError(RoutineBoardError):
    """The REST API rejected a call or could not be reached."""

    def __init__(self, message: str, status: int | None = None) -> None:
        self.message = message
        self.status = status
        self.mutation: Any = None  # set by the store when it rolls back
        super().__init__(message if status is None else f"{message} (HTTP {status})")


class NetworkError(PersistenceError):
    """Transport failure or timeout; there was no HTTP response."""


class ReminderSyncError(RoutineBoardError):
    """Best-effort reminder cleanup failed. Never fails the parent operation."""
