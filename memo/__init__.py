"""
memo: save shell commands and recall them by number.

One file, one truth: every saved command lives in a single SQLite database
under the per-user state directory. Listing ranks entries by recency, then
frequency; the ordinals shown are what print, run and copy accept.
"""

__version__ = "0.1.0"

from memo.errors import (
    MemoError,
    InvalidInput,
    InvalidOrdinal,
    MalformedSelection,
    NotFound,
    StorageError,
)
from memo.types import MemoEntry, RankedEntry
from memo.store import MemoStore, SCHEMA_VERSION
from memo.config import MemoConfig

__all__ = [
    "__version__",
    "MemoEntry",
    "RankedEntry",
    "MemoStore",
    "MemoConfig",
    "SCHEMA_VERSION",
    "MemoError",
    "InvalidInput",
    "InvalidOrdinal",
    "MalformedSelection",
    "NotFound",
    "StorageError",
]
