"""
Selector Protocol: tab-delimited feed for interactive pickers.

Wire format, one line per ranked entry, unbounded by the display limit:

    <ordinal>\t<command>

A picker may filter or reorder lines on screen but must hand back the
chosen line (at least its ordinal field) verbatim. The chosen ordinal is
then resolved against a fresh store read, never against the snapshot the
lines were built from.

Any object with ``choose(lines) -> Optional[str]`` is a line selector.
FzfSelector drives the external fzf picker; PromptSelector is the
non-interactive fallback (numbered listing plus a typed ordinal).
"""

from __future__ import annotations

import logging
import re
import shutil
import subprocess
import sys
from typing import Callable, List, Optional, Sequence, TextIO

from memo.errors import InvalidOrdinal, MalformedSelection
from memo.ranking import assign_ordinals, parse_ordinal
from memo.types import RankedEntry

logger = logging.getLogger(__name__)

SEPARATOR = "\t"
_LINE_BREAKS = re.compile(r"\r\n|\r|\n")


# ---------------------------------------------------------------------------
# Emit / parse
# ---------------------------------------------------------------------------


def _one_line(command: str) -> str:
    return _LINE_BREAKS.sub(r"\\n", command)


def format_line(ranked: RankedEntry) -> str:
    """Render one ranked entry as a protocol line (no trailing newline).

    Line breaks inside a multi-line command are shown as a literal ``\\n``
    so every entry stays on one physical line. The command field is for
    display only; `memo print N` returns the stored text unchanged.
    """
    return f"{ranked.ordinal}{SEPARATOR}{_one_line(ranked.command)}"


def emit_selectable(store, filter: Optional[str] = None) -> List[str]:
    """Materialize the full ranked feed for a picker.

    The returned list holds no reference to the store, so the caller can
    close it before the picker starts waiting for input.
    """
    return [format_line(r) for r in assign_ordinals(store.query(filter))]


def parse_selection(line: str) -> int:
    """Extract the ordinal in front of the first tab of a picker line.

    Raises:
        MalformedSelection: No tab, or the prefix is not a non-negative integer.
    """
    line = line.rstrip("\r\n")
    if SEPARATOR not in line:
        raise MalformedSelection(f"Selection has no ordinal field: {line!r}")
    prefix = line.split(SEPARATOR, 1)[0]
    try:
        if prefix != prefix.strip():
            raise InvalidOrdinal(prefix)
        return parse_ordinal(prefix)
    except InvalidOrdinal:
        raise MalformedSelection(
            f"Selection ordinal is not a number: {prefix!r}"
        ) from None


# ---------------------------------------------------------------------------
# Line selectors
# ---------------------------------------------------------------------------


class FzfSelector:
    """Pipe the feed through fzf, showing only the command column."""

    def __init__(self, executable: str = "fzf", prompt: str = "memo> "):
        self.executable = executable
        self.prompt = prompt

    def choose(self, lines: Sequence[str]) -> Optional[str]:
        if not lines:
            return None
        args = [
            self.executable,
            f"--delimiter={SEPARATOR}",
            "--with-nth=2..",
            f"--prompt={self.prompt}",
        ]
        try:
            result = subprocess.run(
                args,
                input="\n".join(lines) + "\n",
                stdout=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError:
            logger.debug("picker not found: %s", self.executable)
            return None
        # fzf: 1 = no match, 130 = aborted with Esc/Ctrl-C
        if result.returncode != 0:
            return None
        chosen = result.stdout.rstrip("\n")
        return chosen or None


class PromptSelector:
    """Numbered listing on stderr; the user types an ordinal."""

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        out: Optional[TextIO] = None,
    ):
        self._input = input_fn
        self._out = out

    def choose(self, lines: Sequence[str]) -> Optional[str]:
        if not lines:
            return None
        out = self._out or sys.stderr
        for line in lines:
            ordinal, command = line.split(SEPARATOR, 1)
            print(f"[{ordinal}] {command}", file=out)
        try:
            answer = self._input("memo number: ").strip()
        except EOFError:
            return None
        if not answer:
            return None
        # Echo the matching protocol line back, as a picker would.
        for line in lines:
            if line.split(SEPARATOR, 1)[0] == answer:
                return line
        return f"{answer}{SEPARATOR}"


def default_selector(
    executable: str = "fzf", input_fn: Callable[[str], str] = input,
):
    """fzf when it is on PATH and we have a terminal, else the prompt fallback."""
    if shutil.which(executable) and sys.stdin.isatty():
        return FzfSelector(executable)
    return PromptSelector(input_fn=input_fn)
