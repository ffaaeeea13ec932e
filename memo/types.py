"""
Memo Data Model

One MemoEntry per distinct command string. Entries handed out by the store
are immutable snapshots; mutations always go back through the store.

Timestamps are ISO-8601 UTC strings with fixed microsecond precision, so
comparing them as strings matches comparing them as instants.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Any, Dict

from memo.errors import InvalidInput


def now_iso() -> str:
    """Current UTC time as a fixed-width ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat(timespec="microseconds")


def normalize_command(text: str) -> str:
    """Strip surrounding whitespace; reject empty commands."""
    command = (text or "").strip()
    if not command:
        raise InvalidInput("Refusing to save an empty command")
    return command


@dataclass(frozen=True)
class MemoEntry:
    """A saved command with its usage metadata.

    ``id`` is a storage key only. Users address entries by ordinal, which
    is recomputed on every invocation (see memo.ranking).
    """

    id: int
    command: str
    created_at: str
    last_used_at: str
    use_count: int = 1

    def to_dict(self) -> Dict[str, Any]:
        """Serialize entry to a plain dictionary."""
        return asdict(self)


@dataclass(frozen=True)
class RankedEntry:
    """An entry paired with its 1-based position in one ranked result set."""

    ordinal: int
    entry: MemoEntry

    @property
    def command(self) -> str:
        return self.entry.command
