"""Failure taxonomy for leveling commands and the entity store."""

from __future__ import annotations


class LevelingError(Exception):
    """Base class for failures surfaced to leveling callers."""


class ValidationFailure(LevelingError):
    """Command rejected before any store call, e.g. a mutation while a snapshot is selected."""


class PersistenceFailure(LevelingError):
    """A store call failed; the caller's unsaved state is left untouched."""

    def __init__(self, operation: str, detail: str = "") -> None:
        self.operation = operation
        self.detail = detail
        message = f"{operation} failed"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class NotFoundFailure(LevelingError):
    """A referenced project, trade, sub, bid, or snapshot no longer exists."""

    def __init__(self, kind: str, key: str) -> None:
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} not found: {key}")
