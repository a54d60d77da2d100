"""Shared fixtures for tasque tests.

File handling in tests:
- Use tmp_path for any directory or file creation so tests are isolated and cleaned up.
- Use tasque.io_utils read_text/write_text for consistent UTF-8 I/O.
"""

from __future__ import annotations

import itertools
from pathlib import Path

import pytest

from tasque import log
from tasque.config import StorePaths
from tasque.store import TaskStore
from tasque.tasks.model import StoreState, Task, TaskStatus


def _make_clock(start: int = 0):
    """Deterministic clock: each call returns a later timestamp."""
    counter = itertools.count(start)

    def _clock() -> str:
        n = next(counter)
        return f"2026-01-01T00:{n // 60:02d}:{n % 60:02d}.000Z"

    return _clock


def _make_task(
    id: str,
    title: str = "",
    status: TaskStatus = TaskStatus.OPEN,
    parent_id: str | None = None,
    **kwargs,
) -> Task:
    closed_at = kwargs.pop("closed_at", None)
    if status == TaskStatus.CLOSED and closed_at is None:
        closed_at = "2026-01-01T00:00:00.000Z"
    return Task(
        id=id,
        title=title or f"Task {id}",
        status=status,
        parent_id=parent_id,
        closed_at=closed_at,
        created_at="2026-01-01T00:00:00.000Z",
        updated_at="2026-01-01T00:00:00.000Z",
        **kwargs,
    )


def _make_state(tasks: list[Task], deps: dict[str, list[str]] | None = None) -> StoreState:
    return StoreState(tasks={t.id: t for t in tasks}, deps=dict(deps or {}))


@pytest.fixture(autouse=True)
def _reset_log_flags():
    """The CLI flips module-level log flags; restore them between tests."""
    yield
    log.set_verbose(False)
    log.set_quiet(False)


@pytest.fixture(autouse=True)
def _actor(monkeypatch: pytest.MonkeyPatch) -> str:
    """Pin the claim identity so no test depends on git or the OS user."""
    monkeypatch.setenv("TSQ_ACTOR", "tester")
    monkeypatch.delenv("TSQ_LOCK_TIMEOUT", raising=False)
    return "tester"


@pytest.fixture
def make_clock():
    """Factory fixture that creates deterministic clocks."""
    return _make_clock


@pytest.fixture
def make_task():
    """Factory fixture that creates Task instances."""
    return _make_task


@pytest.fixture
def make_state():
    """Factory fixture that creates StoreState instances."""
    return _make_state


@pytest.fixture
def store() -> TaskStore:
    """Unbound in-memory store with a deterministic clock."""
    return TaskStore(clock=_make_clock())


@pytest.fixture
def repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Initialized project directory, also the current working directory."""
    TaskStore.init(StorePaths(tmp_path))
    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def paths(repo: Path) -> StorePaths:
    return StorePaths(repo)


@pytest.fixture
def cli_runner():
    """Click CliRunner for invoking the CLI in-process."""
    from click.testing import CliRunner
    return CliRunner()
