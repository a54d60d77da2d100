"""Task Store: the authoritative task collection and its persistence boundary.

Each invocation loads the whole ``state.json``, mutates the in-memory
:class:`StoreState`, and writes the whole file back atomically. Writers
hold the cross-process lock from load until persist, so two racing
invocations are serialised instead of losing an update.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from tasque import log
from tasque.config import DEFAULT_LOCK_TIMEOUT, StorePaths
from tasque.errors import IO_ERROR, NOT_INITIALIZED, TASK_NOT_FOUND, TasqueError, validation_error
from tasque.io_utils import atomic_write_text, read_text, write_text
from tasque.lock import write_lock
from tasque.tasks.codec import dump_state, empty_state, load_state
from tasque.tasks.ids import new_task_id
from tasque.tasks.model import StoreState, Task, TaskStatus
from tasque.tasks.resolve import resolve_task_id
from tasque.tasks.validate import task_errors, validate

Clock = Callable[[], str]

UPDATABLE_FIELDS = frozenset(
    {"title", "status", "assignee", "parent_id", "superseded_by", "closed_at", "close_reason"}
)

GITIGNORE_LINES = ("state.json.tmp-*", ".lock")


def now_iso() -> str:
    """UTC timestamp with millisecond precision, e.g. ``2026-01-02T03:04:05.678Z``."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _optional_text(field: str, value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise validation_error(f"{field} must be a string", field=field)
    return value.strip() or None


def _not_initialized(paths: StorePaths) -> TasqueError:
    return TasqueError(
        NOT_INITIALIZED,
        f"No {paths.tasque_dir.name}/ directory found. Run 'tsq init' first.",
        {"root": str(paths.root)},
        exit_code=2,
    )


class TaskStore:
    """In-memory task collection bound (optionally) to a state file.

    Usage::

        with TaskStore.transaction(paths) as store:
            task = store.create("Write docs")
            store.update(task.id, {"assignee": "ana"})
        # persisted and unlocked here
    """

    def __init__(
        self,
        state: StoreState | None = None,
        *,
        paths: StorePaths | None = None,
        clock: Clock = now_iso,
    ) -> None:
        self._state = state if state is not None else empty_state()
        self._paths = paths
        self._clock = clock

    # ── persistence ──────────────────────────────────────────────

    @staticmethod
    def is_initialized(paths: StorePaths) -> bool:
        return paths.tasque_dir.is_dir()

    @classmethod
    def init(cls, paths: StorePaths) -> bool:
        """Create ``.tasque/`` with an empty state. Returns ``False`` if it already existed."""
        paths.tasque_dir.mkdir(parents=True, exist_ok=True)
        if not paths.gitignore_file.exists():
            write_text(paths.gitignore_file, "\n".join(GITIGNORE_LINES) + "\n")
        if paths.state_file.exists():
            return False
        atomic_write_text(paths.state_file, dump_state(empty_state()))
        return True

    @classmethod
    def load(cls, paths: StorePaths, *, clock: Clock = now_iso) -> TaskStore:
        if not cls.is_initialized(paths):
            raise _not_initialized(paths)
        text = read_text(paths.state_file) if paths.state_file.exists() else ""
        log.debug(f"Loaded {paths.state_file}")
        return cls(load_state(text), paths=paths, clock=clock)

    def dumps(self) -> str:
        return dump_state(self._state)

    def persist(self) -> None:
        if self._paths is None:
            raise TasqueError(IO_ERROR, "Store is not bound to a file", exit_code=2)
        try:
            atomic_write_text(self._paths.state_file, self.dumps())
        except OSError as exc:
            raise TasqueError(
                IO_ERROR,
                f"Failed writing {self._paths.state_file}: {exc}",
                exit_code=2,
            )
        log.debug(f"Persisted {len(self._state.tasks)} tasks to {self._paths.state_file}")

    @classmethod
    @contextmanager
    def transaction(
        cls,
        paths: StorePaths,
        *,
        timeout: float = DEFAULT_LOCK_TIMEOUT,
        clock: Clock = now_iso,
    ) -> Iterator[TaskStore]:
        """Lock, load, yield, and persist only if the block completes."""
        if not cls.is_initialized(paths):
            raise _not_initialized(paths)
        with write_lock(paths.lock_file, timeout):
            store = cls.load(paths, clock=clock)
            yield store
            store.persist()

    # ── reads ────────────────────────────────────────────────────

    @property
    def state(self) -> StoreState:
        return self._state

    def now(self) -> str:
        return self._clock()

    def all(self) -> list[Task]:
        return list(self._state.tasks.values())

    def get(self, task_id: str) -> Task:
        task = self._state.get_task(task_id)
        if task is None:
            raise TasqueError(TASK_NOT_FOUND, f"Task not found: {task_id}", {"input": task_id})
        return task

    def resolve(self, raw: str, exact: bool = False) -> str:
        return resolve_task_id(self._state.tasks, raw, exact=exact)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._state.tasks

    def __len__(self) -> int:
        return len(self._state.tasks)

    # ── writes ───────────────────────────────────────────────────

    def create(self, title: str, parent_id: str | None = None) -> Task:
        clean_title = (title or "").strip()
        if not clean_title:
            raise validation_error("Title must not be empty")
        if parent_id is not None and parent_id not in self._state.tasks:
            raise validation_error(f"Unknown parent task {parent_id}", parent_id=parent_id)

        ts = self._clock()
        task = Task(
            id=new_task_id(self._state, parent_id),
            title=clean_title,
            parent_id=parent_id,
            created_at=ts,
            updated_at=ts,
        )
        self._state.tasks[task.id] = task
        log.debug(f"Created {task.id}")
        return task

    def update(self, task_id: str, patch: Mapping[str, Any]) -> Task:
        """Apply the provided fields of *patch* to one task, all or nothing."""
        current = self.get(task_id)
        unknown = sorted(set(patch) - UPDATABLE_FIELDS)
        if unknown:
            raise validation_error(f"Unknown field(s): {', '.join(unknown)}", fields=unknown)

        changes: dict[str, Any] = {}
        for key, value in patch.items():
            if key == "title":
                if not isinstance(value, str) or not value.strip():
                    raise validation_error("Title must not be empty")
                changes["title"] = value.strip()
            elif key == "status":
                try:
                    changes["status"] = TaskStatus.parse(value)
                except (ValueError, AttributeError):
                    allowed = ", ".join(s.value for s in TaskStatus)
                    raise validation_error(
                        f"Invalid status {value!r}; expected one of: {allowed}",
                        status=str(value),
                    )
            else:
                changes[key] = _optional_text(key, value)

        candidate = replace(current, **changes)
        problems = task_errors(self._state, candidate)
        if problems:
            raise validation_error(problems[0], task_id=task_id, problems=problems)

        if candidate == current:
            return current
        candidate.updated_at = self._clock()
        self._state.tasks[task_id] = candidate
        return candidate


# ── health report ────────────────────────────────────────────────


def diagnose(paths: StorePaths) -> dict[str, Any]:
    """Check the state file without refusing to load it.

    Returns task and dependency counts plus every invariant problem found.
    A file that cannot be parsed at all yields a single issue.
    """
    if not TaskStore.is_initialized(paths):
        raise _not_initialized(paths)

    issues: list[str] = []
    if not paths.state_file.exists():
        issues.append(f"{paths.state_file.name} is missing; run 'tsq init'")
    text = read_text(paths.state_file) if paths.state_file.exists() else ""
    try:
        state = load_state(text, check=False)
    except TasqueError as err:
        return {"tasks": 0, "deps": 0, "issues": [*issues, err.message]}

    issues.extend(validate(state))
    log.debug(f"Checked {len(state.tasks)} tasks, {len(issues)} issue(s)")
    return {
        "tasks": len(state.tasks),
        "deps": sum(len(blockers) for blockers in state.deps.values()),
        "issues": issues,
    }
