"""Lifecycle Engine: status transitions for claim, close, supersede and update."""

from __future__ import annotations

from typing import Any

from tasque import log
from tasque.errors import validation_error
from tasque.store import TaskStore
from tasque.tasks.model import Task, TaskStatus

# open -> in_progress -> closed, open -> closed; closed is terminal.
ALLOWED_TRANSITIONS: dict[TaskStatus, frozenset[TaskStatus]] = {
    TaskStatus.OPEN: frozenset({TaskStatus.IN_PROGRESS, TaskStatus.CLOSED}),
    TaskStatus.IN_PROGRESS: frozenset({TaskStatus.CLOSED}),
    TaskStatus.CLOSED: frozenset(),
}

_UNSET: Any = object()


def check_transition(task: Task, target: TaskStatus) -> None:
    """Raise ``VALIDATION_ERROR`` unless *task* may move to *target*."""
    if target == task.status:
        return
    if target not in ALLOWED_TRANSITIONS[task.status]:
        raise validation_error(
            f"Cannot change status of {task.id} from {task.status.value} to {target.value}",
            task_id=task.id,
            from_status=task.status.value,
            to_status=target.value,
        )


class LifecycleEngine:
    """Applies the task state machine on top of a :class:`TaskStore`.

    ``actor`` is the default assignee used when a claim names nobody.
    """

    def __init__(self, store: TaskStore, actor: str) -> None:
        self._store = store
        self._actor = actor

    def claim(self, task_id: str, assignee: str | None = None) -> Task:
        task = self._store.get(task_id)
        if task.status == TaskStatus.CLOSED:
            raise validation_error(f"Cannot claim closed task {task_id}", task_id=task_id)

        if task.status == TaskStatus.IN_PROGRESS:
            if assignee is None:
                return task
            return self._store.update(task_id, {"assignee": assignee})

        updated = self._store.update(
            task_id,
            {"status": TaskStatus.IN_PROGRESS, "assignee": assignee or self._actor},
        )
        log.debug(f"Task {task_id}: open -> in_progress ({updated.assignee})")
        return updated

    def close(self, task_id: str, reason: str | None = None) -> Task:
        task = self._store.get(task_id)
        if task.status == TaskStatus.CLOSED:
            raise validation_error(f"Task {task_id} is already closed", task_id=task_id)
        updated = self._store.update(
            task_id,
            {"status": TaskStatus.CLOSED, "closed_at": self._store.now(), "close_reason": reason},
        )
        log.debug(f"Task {task_id}: {task.status.value} -> closed")
        return updated

    def supersede(self, task_id: str, with_id: str, reason: str | None = None) -> Task:
        task = self._store.get(task_id)
        if with_id == task_id:
            raise validation_error("A task cannot supersede itself", task_id=task_id)
        if with_id not in self._store:
            raise validation_error(f"Unknown replacement task {with_id}", with_id=with_id)
        if task.status == TaskStatus.CLOSED:
            raise validation_error(f"Task {task_id} is already closed", task_id=task_id)
        updated = self._store.update(
            task_id,
            {
                "status": TaskStatus.CLOSED,
                "closed_at": self._store.now(),
                "superseded_by": with_id,
                "close_reason": reason,
            },
        )
        log.debug(f"Task {task_id} superseded by {with_id}")
        return updated

    def update(
        self,
        task_id: str,
        *,
        title: str | None = None,
        status: str | TaskStatus | None = None,
        assignee: str | None = _UNSET,
        parent_id: str | None = _UNSET,
    ) -> Task:
        """Generic field update that honours the same state machine.

        Only arguments that are passed are changed. ``assignee=None`` and
        ``parent_id=None`` clear the field.
        """
        task = self._store.get(task_id)
        patch: dict[str, Any] = {}
        if title is not None:
            patch["title"] = title
        if assignee is not _UNSET:
            patch["assignee"] = assignee
        if parent_id is not _UNSET:
            patch["parent_id"] = parent_id

        if status is not None:
            try:
                target = TaskStatus.parse(status)
            except ValueError:
                allowed = ", ".join(s.value for s in TaskStatus)
                raise validation_error(
                    f"Invalid status {status!r}; expected one of: {allowed}", status=str(status)
                )
            check_transition(task, target)
            if target != task.status:
                patch["status"] = target
                if target == TaskStatus.CLOSED:
                    patch["closed_at"] = self._store.now()

        if not patch:
            return task
        return self._store.update(task_id, patch)
