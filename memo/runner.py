"""
Process execution for `memo run`.

The selected command runs through the user's shell (``$SHELL -c``, falling
back to /bin/sh) with inherited stdio; its exit status becomes memo's.
Commands matching a small list of destructive patterns ask for
confirmation first.
"""

from __future__ import annotations

import logging
import os
import re
import subprocess
from typing import Callable, Optional

logger = logging.getLogger(__name__)

_DANGEROUS_PATTERNS = [
    re.compile(p)
    for p in (
        r"\brm\b",
        r"\bsudo\b",
        r"\bdd\b",
        r"\bmkfs",
        r"\bshutdown\b",
        r"\breboot\b",
        r"\bpoweroff\b",
        r"\|\s*(ba|z)?sh\b",
    )
]


def is_dangerous(command: str) -> bool:
    """True if the command matches a destructive pattern."""
    return any(p.search(command) for p in _DANGEROUS_PATTERNS)


def confirm(
    prompt: str = "dangerous command, run? [y/N] ",
    input_fn: Callable[[str], str] = input,
) -> bool:
    """Ask a yes/no question; anything but y/yes (or EOF) means no."""
    try:
        answer = input_fn(prompt)
    except EOFError:
        return False
    return answer.strip().lower() in ("y", "yes")


def default_shell() -> str:
    return os.environ.get("SHELL") or "/bin/sh"


def execute(command: str, shell: Optional[str] = None) -> int:
    """Run a command string in a shell and return its exit status.

    A child killed by signal N reports 128 + N, as the shell itself would.
    """
    sh = shell or default_shell()
    logger.debug("exec %s -c %r", sh, command)
    try:
        status = subprocess.run([sh, "-c", command]).returncode
    except FileNotFoundError:
        logger.warning("shell not found: %s", sh)
        return 127
    if status < 0:
        return 128 - status
    return status
