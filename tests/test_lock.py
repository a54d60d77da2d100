"""Tests for tasque.lock — the store write lock and concurrent writers."""

from __future__ import annotations

import multiprocessing
from pathlib import Path

import pytest

from tasque.config import StorePaths
from tasque.errors import LOCK_TIMEOUT, TasqueError
from tasque.lock import store_lock, write_lock
from tasque.store import TaskStore


# ── Helpers ─────────────────────────────────────────────────────────


def _create_many(root: str, count: int) -> None:
    """Worker: create *count* tasks, one transaction each."""
    paths = StorePaths(Path(root))
    for i in range(count):
        with TaskStore.transaction(paths, timeout=60) as store:
            store.create(f"task {i}")


# ═══════════════════════════════════════════════════════════════════
#  Acquire / Release
# ═══════════════════════════════════════════════════════════════════


class TestWriteLock:
    """Tests for write_lock()."""

    def test_lock_is_held_inside_block(self, tmp_path):
        """The lock is held for the block and released after it."""
        lock_file = tmp_path / ".lock"
        with write_lock(lock_file, timeout=1) as lock:
            assert lock.is_locked
        assert not lock.is_locked

    def test_released_on_error(self, tmp_path):
        """An exception in the block still releases the lock."""
        lock_file = tmp_path / ".lock"
        with pytest.raises(RuntimeError):
            with write_lock(lock_file, timeout=1):
                raise RuntimeError("boom")
        with write_lock(lock_file, timeout=0.1) as lock:
            assert lock.is_locked

    def test_timeout_when_held(self, tmp_path):
        """A second holder times out with LOCK_TIMEOUT and exit code 2."""
        lock_file = tmp_path / ".lock"
        with store_lock(lock_file, timeout=1):
            with pytest.raises(TasqueError) as exc_info:
                with write_lock(lock_file, timeout=0.05):
                    pass
        err = exc_info.value
        assert err.code == LOCK_TIMEOUT
        assert err.exit_code == 2
        assert err.details == {"lock_file": str(lock_file), "timeout_seconds": 0.05}

    def test_leftover_lock_file_does_not_block(self, tmp_path):
        """A lock file left by a dead writer is not a held lock."""
        lock_file = tmp_path / ".lock"
        lock_file.write_text("left behind by a crashed writer\n", encoding="utf-8")
        with write_lock(lock_file, timeout=0.1) as lock:
            assert lock.is_locked

    def test_transaction_times_out_without_writing(self, paths):
        """A blocked transaction leaves the state file untouched."""
        before = paths.state_file.read_bytes()
        with store_lock(paths.lock_file, timeout=1):
            with pytest.raises(TasqueError) as exc_info:
                with TaskStore.transaction(paths, timeout=0.05) as store:
                    store.create("blocked")
        assert exc_info.value.code == LOCK_TIMEOUT
        assert paths.state_file.read_bytes() == before


# ═══════════════════════════════════════════════════════════════════
#  Concurrent Writers
# ═══════════════════════════════════════════════════════════════════


class TestConcurrentWriters:
    """Separate processes writing the same store."""

    def test_no_lost_updates(self, paths):
        """4 processes x 10 creates leave exactly 40 tasks."""
        workers, per_worker = 4, 10
        ctx = multiprocessing.get_context("spawn")
        procs = [
            ctx.Process(target=_create_many, args=(str(paths.root), per_worker))
            for _ in range(workers)
        ]
        for proc in procs:
            proc.start()
        for proc in procs:
            proc.join(timeout=120)
        assert [proc.exitcode for proc in procs] == [0] * workers

        store = TaskStore.load(paths)
        assert len(store) == workers * per_worker
        assert len({t.id for t in store.all()}) == workers * per_worker
