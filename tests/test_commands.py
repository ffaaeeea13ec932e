"""
Tests for memo.commands: the command surface over a temporary store.
"""

import pytest

from memo.commands import (
    copy_command,
    delete,
    list_entries,
    pick,
    print_command,
    prune,
    run_command,
    save,
    save_last,
    select,
    stats,
)
from memo.config import MemoConfig, StoreConfig
from memo.errors import InvalidInput, InvalidOrdinal, MalformedSelection


@pytest.fixture
def config(tmp_path):
    return MemoConfig(store=StoreConfig(db_path=str(tmp_path / "memo.sqlite3")))


def _counts(config):
    return {r.command: r.entry.use_count for r in list_entries(config, limit=-1)}


def _snapshot(config):
    return [(r.ordinal, r.command, r.entry.use_count, r.entry.last_used_at)
            for r in list_entries(config, limit=-1)]


class ScriptedSelector:
    def __init__(self, answer):
        self.answer = answer
        self.lines = None

    def choose(self, lines):
        self.lines = list(lines)
        return self.answer(self.lines) if callable(self.answer) else self.answer


# ---------------------------------------------------------------------------
# save / list
# ---------------------------------------------------------------------------


class TestSave:
    def test_scenario_dedup_and_rank(self, config):
        save(config, "ls -la")
        save(config, "git status")
        entry, listing = save(config, "ls -la")
        assert entry.use_count == 2
        assert [r.command for r in listing] == ["ls -la", "git status"]
        assert listing[0].entry.use_count == 2

    def test_twice_is_one_entry(self, config):
        save(config, "make")
        save(config, "make")
        assert _counts(config) == {"make": 2}

    def test_empty_rejected(self, config):
        save(config, "ls")
        before = _snapshot(config)
        with pytest.raises(InvalidInput):
            save(config, "  \t ")
        assert _snapshot(config) == before

    def test_save_returns_default_limited_listing(self, config):
        for i in range(12):
            save(config, f"echo {i}")
        _, listing = save(config, "echo last")
        assert len(listing) == 10
        assert listing[0].command == "echo last"


class TestSaveLast:
    def test_reads_history(self, config, tmp_path):
        hist = tmp_path / "hist"
        hist.write_text(": 1700000000:0;git log --oneline\n: 1700000001:0;memo\n")
        entry, listing = save_last(config, str(hist))
        assert entry.command == "git log --oneline"
        assert listing[0].command == "git log --oneline"

    def test_no_history(self, config, tmp_path):
        save(config, "ls")
        entry, listing = save_last(config, str(tmp_path / "missing"))
        assert entry is None
        assert [r.command for r in listing] == ["ls"]


class TestList:
    def test_no_match(self, config):
        save(config, "ls")
        assert list_entries(config, "nonexistent") == []

    def test_does_not_mutate(self, config):
        save(config, "ls")
        save(config, "pwd")
        before = _snapshot(config)
        list_entries(config)
        list_entries(config, "l")
        assert _snapshot(config) == before

    def test_consecutive_lists_identical(self, config):
        for c in ("a", "b", "c", "b"):
            save(config, c)
        assert _snapshot(config) == _snapshot(config)

    def test_limit(self, config):
        for i in range(5):
            save(config, f"echo {i}")
        assert len(list_entries(config, limit=2)) == 2
        assert len(list_entries(config, limit=-1)) == 5


# ---------------------------------------------------------------------------
# pick / print / run / copy
# ---------------------------------------------------------------------------


class TestPick:
    def test_print_touches(self, config):
        save(config, "ls")
        save(config, "pwd")
        assert print_command(config, 2) == "ls"
        counts = _counts(config)
        assert counts == {"ls": 2, "pwd": 1}
        # the touched entry now ranks first
        assert list_entries(config)[0].command == "ls"

    def test_print_empty_store(self, config):
        with pytest.raises(InvalidOrdinal):
            print_command(config, 1)

    def test_invalid_ordinal_touches_nothing(self, config):
        save(config, "ls")
        before = _snapshot(config)
        for bad in (0, 2):
            with pytest.raises(InvalidOrdinal):
                pick(config, bad)
        assert _snapshot(config) == before

    def test_pick_with_filter(self, config):
        for c in ("git status", "ls", "git push"):
            save(config, c)
        assert pick(config, 2, "git").command == "git status"

    def test_usage_monotonic(self, config):
        save(config, "ls")
        seen = []
        for _ in range(3):
            e = pick(config, 1)
            seen.append((e.use_count, e.last_used_at))
        assert seen == sorted(seen)
        assert seen[-1][0] == 4


class TestRun:
    def test_runs_and_records(self, config):
        save(config, "echo hi")
        ran = []
        command, status = run_command(config, 1, executor=lambda c: ran.append(c) or 0)
        assert (command, status) == ("echo hi", 0)
        assert ran == ["echo hi"]
        assert _counts(config) == {"echo hi": 2}

    def test_recorded_even_if_execution_fails(self, config):
        save(config, "false")
        _, status = run_command(config, 1, executor=lambda c: 1)
        assert status == 1
        assert _counts(config) == {"false": 2}

    def test_out_of_range(self, config):
        save(config, "ls")
        ran = []
        with pytest.raises(InvalidOrdinal):
            run_command(config, 2, executor=ran.append)
        assert ran == []
        assert _counts(config) == {"ls": 1}

    def test_dangerous_declined(self, config):
        save(config, "sudo reboot")
        ran = []
        command, status = run_command(
            config, 1, executor=ran.append, confirm=lambda c: False,
        )
        assert status is None
        assert ran == []
        assert _counts(config) == {"sudo reboot": 1}

    def test_dangerous_confirmed(self, config):
        save(config, "rm -rf build")
        asked = []
        _, status = run_command(
            config, 1, executor=lambda c: 0,
            confirm=lambda c: asked.append(c) or True,
        )
        assert status == 0
        assert asked == ["rm -rf build"]

    def test_safe_command_not_confirmed(self, config):
        save(config, "ls")
        asked = []
        run_command(config, 1, executor=lambda c: 0, confirm=asked.append)
        assert asked == []


class TestCopy:
    def test_copy(self, config):
        save(config, "kubectl get pods")
        copied = []
        command, ok = copy_command(config, 1, copier=lambda t: copied.append(t) or True)
        assert ok is True
        assert copied == ["kubectl get pods"]
        assert _counts(config) == {"kubectl get pods": 2}

    def test_clipboard_unavailable(self, config):
        save(config, "ls")
        command, ok = copy_command(config, 1, copier=lambda t: False)
        assert (command, ok) == ("ls", False)


# ---------------------------------------------------------------------------
# select
# ---------------------------------------------------------------------------


class TestSelect:
    def test_feed_and_pick(self, config):
        for i in range(12):
            save(config, f"echo {i}")
        sel = ScriptedSelector(lambda lines: lines[11])
        entry = select(config, sel)
        assert len(sel.lines) == 12  # not truncated to the display limit
        assert entry.command == "echo 0"
        assert entry.use_count == 2

    def test_nothing_chosen(self, config):
        save(config, "ls")
        before = _snapshot(config)
        assert select(config, ScriptedSelector(None)) is None
        assert _snapshot(config) == before

    def test_malformed(self, config):
        save(config, "ls")
        with pytest.raises(MalformedSelection):
            select(config, ScriptedSelector("ls"))

    def test_resolves_against_fresh_state(self, config):
        save(config, "old")

        def answer(lines):
            # another shell writes while the picker is open
            save(config, "new")
            return lines[0]  # "1\told"

        entry = select(config, ScriptedSelector(answer))
        assert entry.command == "new"

    def test_filtered(self, config):
        for c in ("git status", "ls", "git push"):
            save(config, c)
        sel = ScriptedSelector(lambda lines: lines[-1])
        entry = select(config, sel, "git")
        assert sel.lines == ["1\tgit push", "2\tgit status"]
        assert entry.command == "git status"


# ---------------------------------------------------------------------------
# delete / prune / stats
# ---------------------------------------------------------------------------


class TestDelete:
    def test_delete_by_ordinal(self, config):
        save(config, "a")
        save(config, "b")
        removed = delete(config, 2)
        assert removed.command == "a"
        assert list(_counts(config)) == ["b"]

    def test_delete_out_of_range(self, config):
        with pytest.raises(InvalidOrdinal):
            delete(config, 1)


class TestPrune:
    def test_keeps_best_ranked(self, config):
        for i in range(5):
            save(config, f"echo {i}")
        removed = prune(config, keep=2)
        assert [e.command for e in removed] == ["echo 2", "echo 1", "echo 0"]
        assert [r.command for r in list_entries(config)] == ["echo 4", "echo 3"]

    def test_default_keep(self, config):
        config.store.keep = 1
        save(config, "a")
        save(config, "b")
        assert len(prune(config)) == 1

    def test_nothing_to_prune(self, config):
        save(config, "a")
        assert prune(config, keep=10) == []

    def test_negative_keep(self, config):
        with pytest.raises(InvalidInput):
            prune(config, keep=-1)


class TestStats:
    def test_stats(self, config):
        save(config, "a")
        save(config, "a")
        s = stats(config)
        assert s["total_entries"] == 1
        assert s["total_uses"] == 2
        assert s["db_path"] == config.store.db_path
