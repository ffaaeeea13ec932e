"""
Tests for CLI exit code conformance.

Exit code contract:
    0  Success (including an empty listing)
    1  Operational error (InvalidInput, InvalidOrdinal, MalformedSelection,
       NotFound)
    2  Internal failure (StorageError, unexpected exception)

Failure paths never write to stdout.
"""

import os
import subprocess
import sys
import pytest

PYTHON = sys.executable
CLI = [PYTHON, "-m", "memo.cli"]


def run(args, *, db, stdin=None):
    merged_env = {
        **os.environ,
        "MEMO_DB": db,
        "MEMO_CONFIG": db + ".no-config.json",
        "HISTFILE": db + ".no-history",
        "SHELL": "/bin/sh",
    }
    return subprocess.run(
        CLI + args,
        capture_output=True,
        text=True,
        env=merged_env,
        input=stdin,
        timeout=30,
    )


@pytest.fixture
def db(tmp_path):
    return str(tmp_path / "memo.sqlite3")


@pytest.fixture
def one_entry(db):
    r = run(["save", "echo only"], db=db)
    assert r.returncode == 0
    return db


class TestSuccess:
    def test_list_empty(self, db):
        r = run(["list"], db=db)
        assert (r.returncode, r.stdout) == (0, "")

    def test_list_no_match(self, one_entry):
        r = run(["list", "nonexistent"], db=one_entry)
        assert (r.returncode, r.stdout) == (0, "")

    def test_feed_empty(self, db):
        r = run(["_list"], db=db)
        assert (r.returncode, r.stdout) == (0, "")

    def test_prune_noop(self, db):
        assert run(["prune"], db=db).returncode == 0

    def test_stats(self, db):
        assert run(["stats"], db=db).returncode == 0


class TestOperationalErrors:
    @pytest.mark.parametrize("args", [
        ["print", "1"],
        ["run", "1"],
        ["copy", "1"],
        ["delete", "1"],
    ])
    def test_empty_store(self, db, args):
        r = run(args, db=db)
        assert r.returncode == 1
        assert r.stdout == ""

    @pytest.mark.parametrize("ordinal", ["0", "2", "x"])
    def test_bad_ordinal(self, one_entry, ordinal):
        r = run(["print", ordinal], db=one_entry)
        assert r.returncode == 1
        assert r.stdout == ""

    def test_empty_command(self, db):
        r = run(["save", ""], db=db)
        assert r.returncode == 1

    def test_malformed_selection(self, one_entry):
        r = run(["select"], db=one_entry, stdin="nope\n")
        assert r.returncode == 1
        assert r.stdout == ""

    def test_invalid_env_config(self, db):
        env_db = db
        r = subprocess.run(
            CLI + ["list"], capture_output=True, text=True, timeout=30,
            env={**os.environ, "MEMO_DB": env_db, "MEMO_LIMIT": "0",
                 "MEMO_CONFIG": db + ".none"},
        )
        assert r.returncode == 1
        assert "list.limit" in r.stderr

    def test_failed_run_does_not_touch(self, one_entry):
        run(["run", "2"], db=one_entry)
        r = run(["list", "--json"], db=one_entry)
        assert '"use_count": 1' in r.stdout


class TestInternalFailures:
    def test_corrupt_database(self, tmp_path):
        path = tmp_path / "memo.sqlite3"
        path.write_bytes(b"garbage" * 500)
        r = run(["list"], db=str(path))
        assert r.returncode == 2
        assert r.stdout == ""
        assert "Error" in r.stderr

    def test_usage_error(self, db):
        assert run(["print"], db=db).returncode == 2
