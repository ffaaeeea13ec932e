"""
memo CLI: save shell commands, recall them by number

Commands:
    memo                            save last shell command, then list
    memo save   [CMD ...]           save CMD (or the last shell command)
    memo list   [QUERY ...] [-n N]  ranked listing, optionally filtered
    memo print  N [-f QUERY]        raw command text of entry N → stdout
    memo run    N [-f QUERY] [-y]   execute entry N in $SHELL
    memo copy   N [-f QUERY]        copy entry N to the clipboard
    memo select [-f QUERY]          pick interactively (fzf or prompt)
    memo delete N [-f QUERY]        remove entry N
    memo prune  [--keep N]          keep the N best-ranked entries
    memo stats                      store metrics
    memo init   [zsh|bash]          print the shell key-binding widget
    memo _list  [-f QUERY]          picker feed: "<N>\\t<command>" lines

Shorthands:
    memo N          same as `memo copy N`
    memo WORDS...   same as `memo list WORDS...`

Environment variables:
    MEMO_DB       Path to SQLite database
                  (default: $XDG_STATE_HOME/memo/memo.sqlite3)
    MEMO_CONFIG   Path to config.json (default: $XDG_CONFIG_HOME/memo/config.json)
    MEMO_LIMIT    Entries shown by list (default: 10)
    MEMO_KEEP     Entries kept by prune (default: 200)
    HISTFILE      Shell history file read by the default invocation

Precedence (invariant):
    CLI --flag  >  MEMO_* env var  >  config.json  >  compiled default

Exit codes:
    0  Success (including an empty listing)
    1  Operational error (empty command, bad ordinal, malformed selection)
    2  Internal failure (storage error, unexpected exception)
    `memo run` exits with the status of the command it ran.
"""

from __future__ import annotations

import argparse
import json
import logging
import os
import re
import sys
from pathlib import Path
from typing import List, Optional

from memo import commands
from memo.config import MemoConfig, ValidationError, default_config_path, load_config
from memo.errors import MemoError
from memo.ranking import parse_ordinal
from memo.selector import format_line

logger = logging.getLogger(__name__)

PROG = "memo"

_SHELL_DIR = Path(__file__).resolve().parent / "shell"


# ---------------------------------------------------------------------------
# Env parsing (bad exports fall back to defaults)
# ---------------------------------------------------------------------------


def _env_int(name: str, default: int) -> int:
    """Parse integer env var with fallback. Never raises on bad input."""
    v = os.environ.get(name)
    if not v:
        return default
    try:
        return int(v)
    except ValueError:
        return default


def _env_str(name: str, default: str) -> str:
    """Parse string env var with fallback."""
    return os.environ.get(name, default)


# ---------------------------------------------------------------------------
# Resolvers
# ---------------------------------------------------------------------------


def _resolve_config(args: argparse.Namespace) -> MemoConfig:
    """Config file, then MEMO_* env, then --flags on top."""
    path = getattr(args, "config", None) or _env_str("MEMO_CONFIG", default_config_path())
    cfg = load_config(path)
    cfg.store.db_path = _env_str("MEMO_DB", cfg.store.db_path)
    cfg.list.limit = _env_int("MEMO_LIMIT", cfg.list.limit)
    cfg.store.keep = _env_int("MEMO_KEEP", cfg.store.keep)
    if getattr(args, "db", None):
        cfg.store.db_path = args.db
    errors = cfg.validate()
    if errors:
        raise ValidationError(f"Config validation failed: {'; '.join(errors)}")
    return cfg


def _query(args: argparse.Namespace) -> Optional[str]:
    """Filter text from -f/--filter or positional words."""
    words = getattr(args, "filter", None) or getattr(args, "query", None)
    if isinstance(words, list):
        words = " ".join(words)
    return words or None


# ---------------------------------------------------------------------------
# Stderr helpers (respect --quiet)
# ---------------------------------------------------------------------------

_quiet = False


def _info(msg: str) -> None:
    """Print progress to stderr (suppressed by --quiet)."""
    if not _quiet:
        print(msg, file=sys.stderr)


def _warn(msg: str) -> None:
    """Print warning to stderr (always visible)."""
    print(msg, file=sys.stderr)


def _stderr_input(prompt: str) -> str:
    """input() with the prompt on stderr, keeping stdout data-only."""
    print(prompt, end="", file=sys.stderr, flush=True)
    return input()


def _print_listing(ranked, as_json: bool = False) -> None:
    if as_json:
        print(json.dumps(
            [dict(r.entry.to_dict(), ordinal=r.ordinal) for r in ranked],
            indent=2, ensure_ascii=False,
        ))
        return
    if not ranked:
        _info("no entries")
        return
    for r in ranked:
        print(f"[{r.ordinal}] {r.command}")


# ===========================================================================
# Commands
# ===========================================================================


def cmd_default(args: argparse.Namespace, cfg: MemoConfig) -> None:
    """Save the last shell command and show the list."""
    entry, ranked = commands.save_last(cfg, prog=PROG)
    if entry is None:
        _info("no history command found")
    else:
        _info(f"saved: {entry.command}")
    _print_listing(ranked)


def cmd_save(args: argparse.Namespace, cfg: MemoConfig) -> None:
    """Save an explicit command, or the last shell command."""
    if args.cmd:
        entry, ranked = commands.save(cfg, " ".join(args.cmd))
    else:
        entry, ranked = commands.save_last(cfg, prog=PROG)
        if entry is None:
            _warn("no history command found")
            sys.exit(1)
    _info(f"saved: {entry.command}")
    _print_listing(ranked)


def cmd_list(args: argparse.Namespace, cfg: MemoConfig) -> None:
    """Ranked listing (never updates usage)."""
    limit = -1 if args.all else args.limit
    ranked = commands.list_entries(cfg, _query(args), limit=limit)
    _print_listing(ranked, as_json=getattr(args, "json", False))


def cmd_print(args: argparse.Namespace, cfg: MemoConfig) -> None:
    """Raw command text only, so callers can capture it."""
    print(commands.print_command(cfg, parse_ordinal(args.n), _query(args)))


def cmd_run(args: argparse.Namespace, cfg: MemoConfig) -> None:
    """Execute an entry; exit with its status."""
    confirm = None
    if cfg.run.confirm_dangerous and not args.yes:
        from memo.runner import confirm as ask

        def confirm(command: str) -> bool:
            _warn(command)
            return ask(input_fn=_stderr_input)

    command, status = commands.run_command(
        cfg, parse_ordinal(args.n), _query(args), confirm=confirm,
    )
    if status is None:
        _info("cancelled")
        sys.exit(1)
    sys.exit(status)


def cmd_copy(args: argparse.Namespace, cfg: MemoConfig) -> None:
    """Copy to clipboard; print the text when no clipboard tool works."""
    ordinal = parse_ordinal(args.n)
    command, copied = commands.copy_command(cfg, ordinal, _query(args))
    if copied:
        _info(f"copied [{ordinal}]")
    else:
        print(command)
        _warn("warning: clipboard unavailable")


def cmd_select(args: argparse.Namespace, cfg: MemoConfig) -> None:
    """Interactive pick; chosen command text → stdout."""
    from memo.selector import default_selector

    selector = default_selector(cfg.run.picker, input_fn=_stderr_input)
    entry = commands.select(cfg, selector, _query(args))
    if entry is None:
        sys.exit(1)
    print(entry.command)


def cmd_feed(args: argparse.Namespace, cfg: MemoConfig) -> None:
    """Selector feed: every ranked entry as an ``N<TAB>command`` line."""
    for r in commands.list_entries(cfg, _query(args), limit=-1):
        print(format_line(r))


def cmd_delete(args: argparse.Namespace, cfg: MemoConfig) -> None:
    entry = commands.delete(cfg, parse_ordinal(args.n), _query(args))
    _info(f"deleted: {entry.command}")


def cmd_prune(args: argparse.Namespace, cfg: MemoConfig) -> None:
    """Drop everything ranked below --keep."""
    keep = args.keep if args.keep is not None else cfg.store.keep
    removed = commands.prune(cfg, keep)
    _info(f"pruned {len(removed)} entr{'y' if len(removed) == 1 else 'ies'} (kept {keep})")


def cmd_stats(args: argparse.Namespace, cfg: MemoConfig) -> None:
    """Show store statistics."""
    stats = commands.stats(cfg)
    if getattr(args, "json", False):
        stats["status"] = "ok"
        print(json.dumps(stats, indent=2, ensure_ascii=False))
        return
    print("Memo Store Statistics")
    print("=" * 40)
    print(f"  Database:   {stats['db_path']}")
    print(f"  Schema:     v{stats['schema_version']}")
    print(f"  Entries:    {stats['total_entries']}")
    print(f"  Total uses: {stats['total_uses']}")
    if stats["total_entries"]:
        print(f"  Oldest:     {stats['oldest_created_at']}")
        print(f"  Last used:  {stats['last_used_at']}")


def cmd_init(args: argparse.Namespace, cfg: Optional[MemoConfig] = None) -> None:
    """Print the shell widget; eval or source it from your shell rc."""
    script = _SHELL_DIR / f"memo.{args.shell}"
    print(script.read_text(encoding="utf-8"), end="")


# ===========================================================================
# Argument rewriting (shorthands)
# ===========================================================================

_COMMANDS = {
    "save", "list", "print", "run", "copy", "select",
    "delete", "prune", "stats", "init", "_list",
}
_VALUE_FLAGS = {"--db", "--config"}
_DIGITS = re.compile(r"^[0-9]+$")


def _rewrite_argv(argv: List[str]) -> List[str]:
    """Expand `memo N` → `memo copy N` and `memo words` → `memo list words`."""
    i = 0
    while i < len(argv):
        tok = argv[i]
        if tok in _VALUE_FLAGS:
            i += 2
            continue
        if tok.startswith("-"):
            i += 1
            continue
        break
    if i >= len(argv) or argv[i] in _COMMANDS:
        return argv
    verb = "copy" if _DIGITS.match(argv[i]) else "list"
    return argv[:i] + [verb] + argv[i:]


# ===========================================================================
# Entry point
# ===========================================================================


def build_parser() -> argparse.ArgumentParser:
    # SUPPRESS defaults keep subparser defaults from overriding values
    # parsed at the main-parser level (argparse parents quirk).
    _common = argparse.ArgumentParser(add_help=False)
    _common.add_argument(
        "--db", default=argparse.SUPPRESS,
        help="Path to SQLite database (default: MEMO_DB or "
             "$XDG_STATE_HOME/memo/memo.sqlite3)",
    )
    _common.add_argument(
        "--config", default=argparse.SUPPRESS,
        help="Path to config.json (default: MEMO_CONFIG or "
             "$XDG_CONFIG_HOME/memo/config.json)",
    )
    _common.add_argument(
        "--quiet", "-q", action="store_true", default=argparse.SUPPRESS,
        help="Suppress stderr progress messages",
    )
    _common.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS,
        help="Enable verbose logging",
    )

    parser = argparse.ArgumentParser(
        prog=PROG,
        description="memo: save shell commands and recall them by number",
        parents=[_common],
    )
    sub = parser.add_subparsers(dest="command", help="Available commands")

    def _filter_arg(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "-f", "--filter", default=None,
            help="Case-insensitive substring filter (same as used with list)",
        )

    # -- save --------------------------------------------------------------
    p_save = sub.add_parser("save", parents=[_common], help="Save a command")
    p_save.add_argument(
        "cmd", nargs=argparse.REMAINDER,
        help="Command to save (default: last shell history command)",
    )
    p_save.set_defaults(func=cmd_save)

    # -- list --------------------------------------------------------------
    p_list = sub.add_parser("list", parents=[_common], help="List saved commands")
    p_list.add_argument("query", nargs="*", help="Case-insensitive substring filter")
    p_list.add_argument(
        "-n", "--limit", type=int, default=None,
        help="Max entries shown (default: MEMO_LIMIT or 10)",
    )
    p_list.add_argument("--all", action="store_true", help="Show every entry")
    p_list.add_argument(
        "--json", action="store_true", default=False,
        help="Machine-readable JSON output",
    )
    p_list.set_defaults(func=cmd_list)

    # -- print / run / copy / delete ---------------------------------------
    p_print = sub.add_parser("print", parents=[_common], help="Print command N")
    p_print.add_argument("n", help="Entry number from list")
    _filter_arg(p_print)
    p_print.set_defaults(func=cmd_print)

    p_run = sub.add_parser("run", parents=[_common], help="Execute command N")
    p_run.add_argument("n", help="Entry number from list")
    _filter_arg(p_run)
    p_run.add_argument(
        "-y", "--yes", action="store_true",
        help="Do not ask before running destructive-looking commands",
    )
    p_run.set_defaults(func=cmd_run)

    p_copy = sub.add_parser("copy", parents=[_common], help="Copy command N to the clipboard")
    p_copy.add_argument("n", help="Entry number from list")
    _filter_arg(p_copy)
    p_copy.set_defaults(func=cmd_copy)

    p_delete = sub.add_parser("delete", parents=[_common], help="Delete command N")
    p_delete.add_argument("n", help="Entry number from list")
    _filter_arg(p_delete)
    p_delete.set_defaults(func=cmd_delete)

    # -- select / _list ----------------------------------------------------
    p_select = sub.add_parser("select", parents=[_common], help="Pick a command interactively")
    _filter_arg(p_select)
    p_select.set_defaults(func=cmd_select)

    p_feed = sub.add_parser("_list", parents=[_common])
    _filter_arg(p_feed)
    p_feed.set_defaults(func=cmd_feed)

    # -- prune / stats / init ----------------------------------------------
    p_prune = sub.add_parser("prune", parents=[_common], help="Keep only the best-ranked entries")
    p_prune.add_argument(
        "--keep", type=int, default=None,
        help="Entries to keep (default: MEMO_KEEP or 200)",
    )
    p_prune.set_defaults(func=cmd_prune)

    p_stats = sub.add_parser("stats", parents=[_common], help="Store statistics")
    p_stats.add_argument(
        "--json", action="store_true", default=False,
        help="Machine-readable JSON output",
    )
    p_stats.set_defaults(func=cmd_stats)

    p_init = sub.add_parser("init", parents=[_common], help="Print shell integration")
    p_init.add_argument("shell", nargs="?", default="zsh", choices=["zsh", "bash"])
    p_init.set_defaults(func=cmd_init)

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """CLI entry point: memo [command] [args]."""
    global _quiet

    parser = build_parser()
    args = parser.parse_args(_rewrite_argv(list(sys.argv[1:] if argv is None else argv)))

    _quiet = getattr(args, "quiet", False)

    if getattr(args, "verbose", False):
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(name)s %(levelname)s %(message)s",
        )
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        if args.command == "init":
            cmd_init(args)
            return
        cfg = _resolve_config(args)
        if not args.command:
            cmd_default(args, cfg)
        else:
            args.func(args, cfg)
    except MemoError as e:
        _warn(f"Error: {e}")
        sys.exit(e.exit_code)
    except ValidationError as e:
        _warn(f"Error: {e}")
        sys.exit(1)
    except BrokenPipeError:
        # Handle broken pipe gracefully (e.g. memo _list | head)
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, sys.stdout.fileno())
        sys.exit(0)
    except KeyboardInterrupt:
        sys.exit(0)
    except Exception as e:
        _warn(f"Internal error: {e}")
        if getattr(args, "verbose", False):
            import traceback
            traceback.print_exc(file=sys.stderr)
        sys.exit(2)


if __name__ == "__main__":
    main()
