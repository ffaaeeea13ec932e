"""
memo error kinds.

Every failure the core can report is a MemoError subclass. Library code
raises them unchanged; only the CLI boundary turns them into exit codes.

Exit code contract:
    0  Success (including an empty listing)
    1  Operational error (InvalidInput, InvalidOrdinal, MalformedSelection,
       NotFound)
    2  Internal failure (StorageError, unexpected exception)
"""

from __future__ import annotations


class MemoError(Exception):
    """Base class for all memo failures."""

    exit_code = 1


class InvalidInput(MemoError):
    """Raised when a command to save is empty or whitespace-only."""


class InvalidOrdinal(MemoError):
    """Raised when an ordinal is non-numeric or outside the ranked result set."""

    def __init__(self, message: str, ordinal=None):
        self.ordinal = ordinal
        super().__init__(message)


class MalformedSelection(MemoError):
    """Raised when a picker line lacks the ``<ordinal>\\t`` prefix."""


class NotFound(MemoError):
    """Raised when a mutation targets an id that no longer exists."""

    def __init__(self, entry_id: int):
        self.entry_id = entry_id
        super().__init__(f"Entry not found: id={entry_id}")


class StorageError(MemoError):
    """Raised on I/O failure, corruption, or exhausted lock retries."""

    exit_code = 2
