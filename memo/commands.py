"""
Command Surface: save, list, pick, print, run, copy, select, delete, prune.

Each operation opens the store for its own duration and closes it before
returning; nothing holds the database open while a picker waits for the
user. Operations raise memo.errors exceptions and never write to stdout;
rendering is the CLI's job.

A "pick" (the step behind print, run, copy and select) is resolve then
touch. A failed resolve touches nothing. Across processes the pair is
best-effort: an ordinal may land on a different entry if another shell
wrote in between.
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from memo.config import MemoConfig
from memo.errors import InvalidInput
from memo.history import read_last_command
from memo.ranking import assign_ordinals, resolve
from memo.selector import emit_selectable, parse_selection
from memo.types import MemoEntry, RankedEntry, normalize_command

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Save / list
# ---------------------------------------------------------------------------


def list_entries(
    config: MemoConfig,
    filter: Optional[str] = None,
    limit: Optional[int] = None,
) -> List[RankedEntry]:
    """Ranked, numbered view of the store. Never touches usage stats.

    ``limit=None`` uses the configured display limit; a negative limit
    returns the whole sequence.
    """
    if limit is None:
        limit = config.list.limit
    with config.open_store() as store:
        entries = store.query(filter)
    return assign_ordinals(entries, limit=limit if limit >= 0 else None)


def save(config: MemoConfig, command: str) -> Tuple[MemoEntry, List[RankedEntry]]:
    """Save (or re-touch) a command, then list the store for context."""
    command = normalize_command(command)
    with config.open_store() as store:
        entry = store.insert_or_touch(command)
    logger.info("saved id=%d use_count=%d", entry.id, entry.use_count)
    return entry, list_entries(config)


def save_last(
    config: MemoConfig,
    history_file: Optional[str] = None,
    prog: str = "memo",
) -> Tuple[Optional[MemoEntry], List[RankedEntry]]:
    """Default invocation: save the last shell command, then list.

    When no usable history line exists nothing is saved and the plain
    listing is returned with ``None`` in place of the entry.
    """
    command = read_last_command(history_file, prog=prog)
    if command is None:
        logger.info("no history command found")
        return None, list_entries(config)
    return save(config, command)


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def pick(config: MemoConfig, ordinal: int, filter: Optional[str] = None) -> MemoEntry:
    """Resolve an ordinal and record the use. Returns the touched entry."""
    with config.open_store() as store:
        entry = resolve(store, ordinal, filter)
        return store.touch_by_id(entry.id)


def print_command(config: MemoConfig, ordinal: int, filter: Optional[str] = None) -> str:
    """Raw command text for ordinal (stats updated)."""
    return pick(config, ordinal, filter).command


def copy_command(
    config: MemoConfig,
    ordinal: int,
    filter: Optional[str] = None,
    copier: Optional[Callable[[str], bool]] = None,
) -> Tuple[str, bool]:
    """Pick an entry and put it on the clipboard.

    Returns ``(command, copied)``; ``copied`` is False when no clipboard
    tool worked, so the caller can print the text instead.
    """
    if copier is None:
        from memo.clipboard import copy_to_clipboard
        copier = copy_to_clipboard
    command = pick(config, ordinal, filter).command
    return command, copier(command)


def run_command(
    config: MemoConfig,
    ordinal: int,
    filter: Optional[str] = None,
    executor: Optional[Callable[[str], int]] = None,
    confirm: Optional[Callable[[str], bool]] = None,
) -> Tuple[str, Optional[int]]:
    """Pick an entry and execute it.

    Usage is recorded before execution is attempted, so a selection counts
    even if the command then fails. A dangerous command declined at the
    confirmation prompt is not a selection: nothing is touched and the
    returned status is None.

    Args:
        executor: Runs the command text, returns its exit status.
        confirm: Called with the command text when it looks destructive;
            returning False cancels. None skips confirmation.
    """
    from memo import runner

    if executor is None:
        shell = config.run.shell

        def executor(cmd: str) -> int:
            return runner.execute(cmd, shell=shell)

    with config.open_store() as store:
        entry = resolve(store, ordinal, filter)
    if confirm is not None and runner.is_dangerous(entry.command):
        if not confirm(entry.command):
            logger.info("run of id=%d declined", entry.id)
            return entry.command, None
    with config.open_store() as store:
        entry = store.touch_by_id(entry.id)
    return entry.command, executor(entry.command)


def select(
    config: MemoConfig,
    selector,
    filter: Optional[str] = None,
) -> Optional[MemoEntry]:
    """Interactive pick through a line selector.

    The feed is materialized and the store closed before the selector
    runs; the chosen ordinal is resolved with a fresh store access.
    Returns None if the user chose nothing.
    """
    with config.open_store() as store:
        lines = emit_selectable(store, filter)
    chosen = selector.choose(lines)
    if not chosen:
        return None
    return pick(config, parse_selection(chosen), filter)


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


def delete(config: MemoConfig, ordinal: int, filter: Optional[str] = None) -> MemoEntry:
    """Delete the entry at ordinal. Returns the removed entry."""
    with config.open_store() as store:
        entry = resolve(store, ordinal, filter)
        store.delete_by_id(entry.id)
    return entry


def prune(config: MemoConfig, keep: Optional[int] = None) -> List[MemoEntry]:
    """Keep the ``keep`` best-ranked entries, delete the rest.

    Returns the deleted entries (lowest ranked last).
    """
    if keep is None:
        keep = config.store.keep
    if keep < 0:
        raise InvalidInput(f"Cannot keep a negative number of entries: {keep}")
    with config.open_store() as store:
        ranked = assign_ordinals(store.query())
        doomed = [r.entry for r in ranked[keep:]]
        for entry in doomed:
            store.delete_by_id(entry.id)
    if doomed:
        logger.info("pruned %d entries (kept %d)", len(doomed), keep)
    return doomed


def stats(config: MemoConfig) -> dict:
    with config.open_store() as store:
        return store.stats()
