"""
memo Configuration

Configuration dataclasses for store, listing and run settings, plus
load_config() for reading a JSON config file with silent fallback to
compiled defaults.

Precedence (invariant):
    CLI --flag  >  MEMO_* env var  >  config.json  >  compiled default
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(ValueError):
    """Raised when config values are out of valid range."""

    pass


def _check_range(
    errors: List[str], name: str, value, lo, hi, typ=None,
) -> None:
    """Append an error message if value is out of [lo, hi] or wrong type."""
    if typ is not None and not isinstance(value, typ):
        errors.append(f"{name}: expected {typ.__name__}, got {type(value).__name__}")
        return
    if value < lo or value > hi:
        errors.append(f"{name}: {value} not in [{lo}, {hi}]")


# ---------------------------------------------------------------------------
# Well-known locations
# ---------------------------------------------------------------------------


def _xdg_dir(var: str, fallback: str) -> Path:
    value = os.environ.get(var)
    if value:
        return Path(value).expanduser()
    return Path(fallback).expanduser()


def default_db_path() -> str:
    """$XDG_STATE_HOME/memo/memo.sqlite3 (default ~/.local/state)."""
    return str(_xdg_dir("XDG_STATE_HOME", "~/.local/state") / "memo" / "memo.sqlite3")


def default_config_path() -> str:
    """$XDG_CONFIG_HOME/memo/config.json (default ~/.config)."""
    return str(_xdg_dir("XDG_CONFIG_HOME", "~/.config") / "memo" / "config.json")


# ---------------------------------------------------------------------------
# Sections
# ---------------------------------------------------------------------------


@dataclass
class StoreConfig:
    """SQLite store configuration."""
    db_path: str = field(default_factory=default_db_path)
    wal_mode: bool = True
    busy_timeout_ms: int = 2000
    retry_attempts: int = 5
    retry_base_delay: float = 0.05
    keep: int = 200  # `memo prune` default

    def validate(self) -> List[str]:
        """Return list of validation error messages (empty = valid)."""
        errors: List[str] = []
        if not self.db_path:
            errors.append("store.db_path: must not be empty")
        _check_range(errors, "store.busy_timeout_ms",
                     self.busy_timeout_ms, 0, 600000, int)
        _check_range(errors, "store.retry_attempts",
                     self.retry_attempts, 1, 100, int)
        _check_range(errors, "store.retry_base_delay",
                     self.retry_base_delay, 0.0, 10.0, float)
        _check_range(errors, "store.keep", self.keep, 1, 1000000, int)
        return errors


@dataclass
class ListConfig:
    """Plain listing configuration."""
    limit: int = 10

    def validate(self) -> List[str]:
        errors: List[str] = []
        _check_range(errors, "list.limit", self.limit, 0, 100000, int)
        return errors


@dataclass
class RunConfig:
    """Execution and picker configuration."""
    shell: Optional[str] = None  # None = $SHELL, then /bin/sh
    confirm_dangerous: bool = True
    picker: str = "fzf"

    def validate(self) -> List[str]:
        return []


@dataclass
class MemoConfig:
    """Top-level memo configuration."""
    store: StoreConfig = field(default_factory=StoreConfig)
    list: ListConfig = field(default_factory=ListConfig)
    run: RunConfig = field(default_factory=RunConfig)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> MemoConfig:
        """Build config from a nested dict (e.g. JSON)."""
        kwargs: Dict[str, Any] = {}
        if "store" in d:
            kwargs["store"] = StoreConfig(**d["store"])
        if "list" in d:
            kwargs["list"] = ListConfig(**d["list"])
        if "run" in d:
            kwargs["run"] = RunConfig(**d["run"])
        return cls(**kwargs)

    def validate(self) -> List[str]:
        """Validate all config sections. Returns list of error messages."""
        errors: List[str] = []
        errors.extend(self.store.validate())
        errors.extend(self.list.validate())
        errors.extend(self.run.validate())
        return errors

    def open_store(self):
        """Open a MemoStore for one operation (caller closes it)."""
        from memo.store import MemoStore
        return MemoStore(
            db_path=self.store.db_path,
            wal_mode=self.store.wal_mode,
            busy_timeout_ms=self.store.busy_timeout_ms,
            retry_attempts=self.store.retry_attempts,
            retry_base_delay=self.store.retry_base_delay,
        )


def load_config(
    path: Optional[str] = None, *, strict: bool = False,
) -> MemoConfig:
    """Load config from a JSON file. Returns defaults if file missing/invalid.

    Args:
        path: Path to config.json. If None, returns compiled defaults.
        strict: If True, raise ValidationError on invalid config values.

    Returns:
        MemoConfig with values from file or defaults.

    Raises:
        ValidationError: If strict=True and config values are out of range.
    """
    if path is None:
        cfg = MemoConfig()
    else:
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            cfg = MemoConfig.from_dict(data)
        except (FileNotFoundError, json.JSONDecodeError, TypeError, KeyError):
            cfg = MemoConfig()

    if strict:
        errors = cfg.validate()
        if errors:
            raise ValidationError(
                f"Config validation failed: {'; '.join(errors)}"
            )

    return cfg
