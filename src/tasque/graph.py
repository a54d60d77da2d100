"""Dependency graph over the store's depends-on edges: cycles and readiness."""

from __future__ import annotations

from tasque import log
from tasque.errors import validation_error
from tasque.store import TaskStore
from tasque.tasks.model import Task, TaskStatus
from tasque.tasks.validate import reaches


class DependencyGraph:
    """Queries and edits the ``child -> [blocker]`` edge set of a store.

    Usage::

        graph = DependencyGraph(store)
        graph.add_edge(child, blocker)   # child waits on blocker
        graph.ready_set()                 # open tasks with every blocker closed
        graph.remove_edge(child, blocker)
    """

    def __init__(self, store: TaskStore) -> None:
        self._store = store

    @property
    def _deps(self) -> dict[str, list[str]]:
        return self._store.state.deps

    # ── edges ────────────────────────────────────────────────────

    def blockers(self, task_id: str) -> list[str]:
        return list(self._deps.get(task_id, []))

    def dependents(self, task_id: str) -> list[str]:
        """Tasks that depend on *task_id*, in creation order."""
        return [
            child
            for child in self._store.state.tasks
            if task_id in self._deps.get(child, ())
        ]

    def dependents_index(self) -> dict[str, list[str]]:
        """Reverse index ``blocker -> [dependent]`` built in one pass."""
        index: dict[str, list[str]] = {}
        for child in self._store.state.tasks:
            for blocker in self._deps.get(child, ()):
                index.setdefault(blocker, []).append(child)
        return index

    def would_cycle(self, child: str, blocker: str) -> bool:
        """``True`` if adding ``child -> blocker`` closes a cycle."""
        return child == blocker or reaches(self._deps, blocker, child)

    def add_edge(self, child: str, blocker: str) -> bool:
        """Record that *child* depends on *blocker*. Returns ``False`` if already present."""
        if child == blocker:
            raise validation_error("A task cannot depend on itself", child=child, blocker=blocker)
        for task_id in (child, blocker):
            if task_id not in self._store:
                raise validation_error(f"Unknown task {task_id}", task_id=task_id)
        if blocker in self._deps.get(child, ()):
            return False
        if self.would_cycle(child, blocker):
            raise validation_error(
                f"Dependency cycle: {blocker} already depends on {child}",
                child=child,
                blocker=blocker,
            )
        self._deps.setdefault(child, []).append(blocker)
        log.debug(f"Dependency added: {child} -> {blocker}")
        return True

    def remove_edge(self, child: str, blocker: str) -> bool:
        """Drop ``child -> blocker``. Returns ``False`` when there was no such edge."""
        current = self._deps.get(child)
        if not current or blocker not in current:
            return False
        current.remove(blocker)
        if not current:
            del self._deps[child]
        log.debug(f"Dependency removed: {child} -> {blocker}")
        return True

    # ── readiness ────────────────────────────────────────────────

    def _status(self, task_id: str) -> TaskStatus | None:
        task = self._store.state.get_task(task_id)
        return task.status if task else None

    def open_blockers(self, task_id: str) -> list[str]:
        """Dependencies of *task_id* that are not closed."""
        return [b for b in self._deps.get(task_id, []) if self._status(b) != TaskStatus.CLOSED]

    def is_blocked(self, task_id: str) -> bool:
        return bool(self.open_blockers(task_id))

    def is_ready(self, task_id: str) -> bool:
        return self._status(task_id) == TaskStatus.OPEN and not self.is_blocked(task_id)

    def ready_set(self) -> list[str]:
        """Ids of open, unblocked tasks in creation order."""
        return [tid for tid in self._store.state.tasks if self.is_ready(tid)]

    def ready_tasks(self) -> list[Task]:
        return [self._store.get(tid) for tid in self.ready_set()]

    def explain_block(self, task_id: str) -> str:
        """Human-readable explanation of why *task_id* is not ready."""
        status = self._status(task_id)
        if status is None:
            return ""
        reasons: list[str] = []
        if status != TaskStatus.OPEN:
            reasons.append(f"status: {status.value}")
        pending = [f"{b} ({self._status(b).value})" for b in self.open_blockers(task_id)]
        if pending:
            reasons.append(f"blocked by: {' '.join(pending)}")
        return " ".join(reasons)
