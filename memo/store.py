"""
Memo Store: SQLite Persistent Backend

Tables:
    memos        - One row per distinct command (UNIQUE command text)
    schema_meta  - Schema metadata for forward compatibility

Every mutation is a single statement committed on its own, so concurrent
invocations from several shells never observe a half-applied write.
Transient "database is locked" contention is retried with exponential
backoff before it surfaces as StorageError.
"""

from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from memo.errors import NotFound, StorageError
from memo.types import MemoEntry, normalize_command, now_iso

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1

# ---------------------------------------------------------------------------
# Schema DDL
# ---------------------------------------------------------------------------

_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS memos (
    id            INTEGER PRIMARY KEY AUTOINCREMENT,  -- ids never reused
    command       TEXT NOT NULL UNIQUE,
    created_at    TEXT NOT NULL,
    last_used_at  TEXT NOT NULL,
    use_count     INTEGER NOT NULL DEFAULT 1 CHECK(use_count >= 1)
);

CREATE TABLE IF NOT EXISTS schema_meta (
    key   TEXT PRIMARY KEY,
    value TEXT NOT NULL
);
"""

# ---------------------------------------------------------------------------
# Lock contention retry
# ---------------------------------------------------------------------------

DEFAULT_RETRY_ATTEMPTS = 5
DEFAULT_RETRY_BASE_DELAY = 0.05  # seconds
DEFAULT_BUSY_TIMEOUT_MS = 2000

_TRANSIENT_MESSAGES = ("database is locked", "database is busy", "database table is locked")


def _is_transient(exc: sqlite3.Error) -> bool:
    """True for lock/busy errors that a later attempt may not hit."""
    msg = str(exc).lower()
    return isinstance(exc, sqlite3.OperationalError) and any(
        m in msg for m in _TRANSIENT_MESSAGES
    )


# ---------------------------------------------------------------------------
# MemoStore
# ---------------------------------------------------------------------------


class MemoStore:
    """
    SQLite-backed store for memo entries.

    Meant to be opened per operation and closed right after::

        with MemoStore(db_path) as store:
            store.insert_or_touch("git status")
    """

    def __init__(
        self,
        db_path: str = ":memory:",
        wal_mode: bool = True,
        busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS,
        retry_attempts: int = DEFAULT_RETRY_ATTEMPTS,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        clock: Optional[Callable[[], str]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Open (and create if needed) the memo database.

        Args:
            db_path: SQLite database path (or ":memory:" for in-memory).
            wal_mode: Enable WAL journal mode for concurrent readers.
            busy_timeout_ms: SQLite busy handler timeout per statement.
            retry_attempts: Total attempts for a statement hitting a lock.
            retry_base_delay: First backoff delay; doubles per attempt.
            clock: Returns the current timestamp string (tests inject one).
            sleep: Backoff sleeper (tests inject a no-op).
        """
        self._db_path = db_path
        self._retry_attempts = max(1, retry_attempts)
        self._retry_base_delay = retry_base_delay
        self._clock = clock or now_iso
        self._sleep = sleep
        try:
            # Auto-create parent directory for disk-backed databases.
            if db_path != ":memory:":
                Path(db_path).parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(db_path, timeout=busy_timeout_ms / 1000.0)
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"Cannot open database {db_path}: {exc}") from exc
        self._conn.row_factory = sqlite3.Row
        try:
            self._retry(self._init_schema, wal_mode and db_path != ":memory:")
        except StorageError:
            self._conn.close()
            raise
        logger.debug("MemoStore opened: %s", db_path)

    def _init_schema(self, wal: bool) -> None:
        if wal:
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA_SQL)
        self._conn.execute(
            "INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('schema_version', ?)",
            (str(SCHEMA_VERSION),),
        )
        self._conn.execute(
            "INSERT OR IGNORE INTO schema_meta (key, value) VALUES ('created_by', 'memo')",
        )
        self._conn.commit()

    @property
    def db_path(self) -> str:
        return self._db_path

    def close(self) -> None:
        """Close the underlying SQLite connection."""
        self._conn.close()

    def __enter__(self) -> MemoStore:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # -- Retry wrapper -----------------------------------------------------

    def _retry(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run fn, retrying transient lock errors; wrap every failure as StorageError."""
        for attempt in range(self._retry_attempts):
            try:
                return fn(*args)
            except sqlite3.Error as exc:
                self._rollback()
                if _is_transient(exc) and attempt < self._retry_attempts - 1:
                    delay = self._retry_base_delay * (2 ** attempt)
                    logger.warning(
                        "%s (attempt %d/%d), retrying in %.2fs",
                        exc, attempt + 1, self._retry_attempts, delay,
                    )
                    self._sleep(delay)
                    continue
                if _is_transient(exc):
                    raise StorageError(
                        f"Database busy after {self._retry_attempts} attempts: {exc}"
                    ) from exc
                raise StorageError(f"Storage failure on {self._db_path}: {exc}") from exc

    def _rollback(self) -> None:
        try:
            self._conn.rollback()
        except sqlite3.Error:
            logger.debug("rollback failed on %s", self._db_path)

    # -- Write operations --------------------------------------------------

    def insert_or_touch(self, command: str) -> MemoEntry:
        """
        Save a command. An identical command already present is touched
        instead (use_count + 1, last_used_at refreshed); never a second row.
        """
        command = normalize_command(command)
        return self._retry(self._upsert, command, self._clock())

    def _upsert(self, command: str, now: str) -> MemoEntry:
        with self._conn:
            self._conn.execute(
                """INSERT INTO memos (command, created_at, last_used_at, use_count)
                   VALUES (?, ?, ?, 1)
                   ON CONFLICT(command) DO UPDATE SET
                       use_count = use_count + 1,
                       last_used_at = MAX(last_used_at, excluded.last_used_at)""",
                (command, now, now),
            )
            row = self._conn.execute(
                "SELECT * FROM memos WHERE command=?", (command,)
            ).fetchone()
        return self._row_to_entry(row)

    def touch_by_id(self, entry_id: int) -> MemoEntry:
        """Record a use of an entry. Raises NotFound if it was deleted."""
        return self._retry(self._touch, entry_id, self._clock())

    def _touch(self, entry_id: int, now: str) -> MemoEntry:
        with self._conn:
            cur = self._conn.execute(
                """UPDATE memos SET use_count = use_count + 1,
                       last_used_at = MAX(last_used_at, ?)
                   WHERE id=?""",
                (now, entry_id),
            )
            if cur.rowcount == 0:
                raise NotFound(entry_id)
            row = self._conn.execute(
                "SELECT * FROM memos WHERE id=?", (entry_id,)
            ).fetchone()
        return self._row_to_entry(row)

    def delete_by_id(self, entry_id: int) -> None:
        """Delete an entry. Deleting a missing id is a no-op."""
        self._retry(self._delete, entry_id)

    def _delete(self, entry_id: int) -> None:
        with self._conn:
            cur = self._conn.execute("DELETE FROM memos WHERE id=?", (entry_id,))
        if cur.rowcount:
            logger.debug("deleted memo id=%d", entry_id)

    # -- Query operations --------------------------------------------------

    def query(self, filter: Optional[str] = None) -> List[MemoEntry]:
        """
        Return entries whose command contains ``filter`` (case-insensitive),
        or all entries when filter is empty. Order is unspecified; callers
        rank with memo.ranking.
        """
        rows = self._retry(self._fetch_all)
        entries = [self._row_to_entry(r) for r in rows]
        if not filter:
            return entries
        # Filter in Python: SQLite lower() only folds ASCII.
        needle = filter.casefold()
        return [e for e in entries if needle in e.command.casefold()]

    def _fetch_all(self) -> List[sqlite3.Row]:
        return self._conn.execute("SELECT * FROM memos").fetchall()

    def get_by_id(self, entry_id: int) -> MemoEntry:
        """Read a single entry by id without touching it."""
        row = self._retry(
            lambda: self._conn.execute(
                "SELECT * FROM memos WHERE id=?", (entry_id,)
            ).fetchone()
        )
        if row is None:
            raise NotFound(entry_id)
        return self._row_to_entry(row)

    def count(self) -> int:
        """Number of stored entries."""
        row = self._retry(
            lambda: self._conn.execute("SELECT COUNT(*) AS cnt FROM memos").fetchone()
        )
        return row["cnt"]

    def stats(self) -> Dict[str, Any]:
        """Store metrics for `memo stats`."""

        def _collect() -> Dict[str, Any]:
            agg = self._conn.execute(
                """SELECT COUNT(*) AS cnt, COALESCE(SUM(use_count), 0) AS uses,
                          MIN(created_at) AS oldest, MAX(last_used_at) AS newest
                   FROM memos"""
            ).fetchone()
            meta = {
                r["key"]: r["value"]
                for r in self._conn.execute("SELECT key, value FROM schema_meta")
            }
            return {
                "db_path": self._db_path,
                "schema_version": meta.get("schema_version"),
                "total_entries": agg["cnt"],
                "total_uses": agg["uses"],
                "oldest_created_at": agg["oldest"],
                "last_used_at": agg["newest"],
            }

        return self._retry(_collect)

    # -- Internal helpers --------------------------------------------------

    @staticmethod
    def _row_to_entry(row: sqlite3.Row) -> MemoEntry:
        """Convert a SQLite Row to MemoEntry."""
        return MemoEntry(
            id=row["id"],
            command=row["command"],
            created_at=row["created_at"],
            last_used_at=row["last_used_at"],
            use_count=row["use_count"],
        )
