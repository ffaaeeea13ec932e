"""
Clipboard copy for `memo copy` / `memo <N>`.

Uses whichever platform tool is available: pbcopy on macOS, then
wl-copy, xclip and xsel elsewhere.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import sys
from typing import List, Optional

logger = logging.getLogger(__name__)

_LINUX_TOOLS = (
    ["wl-copy"],
    ["xclip", "-selection", "clipboard"],
    ["xsel", "--clipboard", "--input"],
)


def clipboard_command(platform: Optional[str] = None) -> Optional[List[str]]:
    """Argv of the first available clipboard tool, or None."""
    platform = platform or sys.platform
    if platform == "darwin":
        return ["pbcopy"] if shutil.which("pbcopy") else None
    for argv in _LINUX_TOOLS:
        if shutil.which(argv[0]):
            return list(argv)
    return None


def copy_to_clipboard(text: str) -> bool:
    """Copy text to the system clipboard. Returns False if that failed."""
    argv = clipboard_command()
    if argv is None:
        return False
    try:
        result = subprocess.run(argv, input=text, text=True, timeout=5)
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("clipboard %s failed: %s", argv[0], exc)
        return False
    return result.returncode == 0
