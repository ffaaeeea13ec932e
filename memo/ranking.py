"""
Ranking & Resolver

Deterministic total order over a store snapshot:

    1. last_used_at  descending   (most recently touched first)
    2. use_count     descending   (more frequently used first)
    3. id            descending   (newest entry wins remaining ties)

Ordinals 1..N follow that order. Resolution always re-queries the store,
so an ordinal shown by an earlier `list` may point elsewhere if another
process wrote in between. That race is accepted: resolve-then-touch is
best-effort, not a reservation.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from memo.errors import InvalidOrdinal
from memo.types import MemoEntry, RankedEntry

_DIGITS = re.compile(r"^[0-9]+$")


def _sort_key(entry: MemoEntry):
    return (entry.last_used_at, entry.use_count, entry.id)


def rank(entries: Iterable[MemoEntry]) -> List[MemoEntry]:
    """Order entries by recency, then frequency, then id (all descending)."""
    return sorted(entries, key=_sort_key, reverse=True)


def assign_ordinals(
    entries: Iterable[MemoEntry], limit: Optional[int] = None,
) -> List[RankedEntry]:
    """Rank entries and number them from 1.

    ``limit`` truncates the returned window only; ordinals are computed on
    the full sequence, so truncation never renumbers anything.
    """
    ranked = [RankedEntry(i, e) for i, e in enumerate(rank(entries), start=1)]
    if limit is not None and limit >= 0:
        return ranked[:limit]
    return ranked


def parse_ordinal(text) -> int:
    """Parse a user-supplied ordinal. Raises InvalidOrdinal on non-numeric input."""
    if isinstance(text, int):
        return text
    value = str(text).strip()
    if not _DIGITS.match(value):
        raise InvalidOrdinal(f"Not a valid entry number: {text!r}", ordinal=text)
    return int(value)


def pick_ordinal(ranked: List[RankedEntry], ordinal: int) -> MemoEntry:
    """Return the entry at a 1-based ordinal of a full ranked sequence."""
    if ordinal < 1 or ordinal > len(ranked):
        if not ranked:
            raise InvalidOrdinal(f"No entry {ordinal}: nothing matches", ordinal=ordinal)
        raise InvalidOrdinal(
            f"No entry {ordinal}: choose 1..{len(ranked)}", ordinal=ordinal,
        )
    return ranked[ordinal - 1].entry


def resolve(store, ordinal: int, filter: Optional[str] = None) -> MemoEntry:
    """Re-run the filtered query, rank it, and return the entry at ``ordinal``.

    Args:
        store: An open MemoStore.
        ordinal: 1-based position in the full (untruncated) ranked sequence.
        filter: Same case-insensitive substring filter used for listing.

    Raises:
        InvalidOrdinal: If ordinal < 1 or beyond the number of matches.
        StorageError: If the store cannot be read.
    """
    return pick_ordinal(assign_ordinals(store.query(filter)), ordinal)
