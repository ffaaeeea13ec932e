"""
Shell history reader for the default `memo` invocation.

Reads the last command from the user's history file, skipping blank lines
and invocations of memo itself. Understands zsh extended history
(``: <epoch>:<duration>;<command>``) as well as plain one-per-line files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

_FALLBACK_HISTFILES = ("~/.zsh_history", "~/.bash_history")


def history_candidates(path: Optional[str] = None) -> List[Path]:
    """History files to try, most specific first."""
    if path:
        return [Path(path).expanduser()]
    env = os.environ.get("HISTFILE")
    paths = [Path(env).expanduser()] if env else []
    paths.extend(Path(p).expanduser() for p in _FALLBACK_HISTFILES)
    return paths


def _strip_extended(line: str) -> str:
    """Drop the zsh extended-history ``: ts:dur;`` prefix if present."""
    if line.startswith(":"):
        _, sep, rest = line.partition(";")
        if sep:
            return rest
    return line


def is_self_invocation(command: str, prog: str = "memo") -> bool:
    return command == prog or command.startswith(prog + " ")


def last_command(lines: List[str], prog: str = "memo") -> Optional[str]:
    """Return the newest usable command from history lines."""
    for raw in reversed(lines):
        if not raw.strip():
            continue
        command = _strip_extended(raw).strip()
        if not command or is_self_invocation(command, prog):
            continue
        return command
    return None


def read_last_command(path: Optional[str] = None, prog: str = "memo") -> Optional[str]:
    """Read the most recent non-memo command from the shell history file.

    Args:
        path: Explicit history file. Defaults to $HISTFILE, then
            ~/.zsh_history, then ~/.bash_history (first one that exists).
        prog: Invocation name to skip.

    Returns:
        The command text, or None when no history file or no usable line.
    """
    for candidate in history_candidates(path):
        if not candidate.is_file():
            continue
        # zsh metafies non-ASCII bytes; decode leniently rather than fail.
        text = candidate.read_bytes().decode("utf-8", errors="replace")
        command = last_command(text.splitlines(), prog)
        logger.debug("history %s -> %r", candidate, command)
        return command
    return None
