"""Task and StoreState data models shared by the store, graph and renderer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class TaskStatus(str, Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"

    @classmethod
    def parse(cls, value: str | TaskStatus) -> TaskStatus:
        """Return the member for *value*, raising ``ValueError`` when unknown."""
        if isinstance(value, TaskStatus):
            return value
        return cls(value.strip().lower())


@dataclass
class Task:
    id: str
    title: str
    status: TaskStatus = TaskStatus.OPEN
    assignee: str | None = None
    parent_id: str | None = None
    superseded_by: str | None = None
    close_reason: str | None = None
    created_at: str = ""
    updated_at: str = ""
    closed_at: str | None = None
    # Keys found on disk that this version does not know; written back unchanged.
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_closed(self) -> bool:
        return self.status == TaskStatus.CLOSED


@dataclass
class StoreState:
    """Everything persisted in ``state.json``.

    ``tasks`` keeps insertion (creation) order. ``deps`` maps a child id to
    the ids of the tasks it is blocked by.
    """

    tasks: dict[str, Task] = field(default_factory=dict)
    deps: dict[str, list[str]] = field(default_factory=dict)
    version: int = 1
    # Top-level keys of the state file that this version does not know.
    extra: dict[str, Any] = field(default_factory=dict)

    def get_task(self, task_id: str) -> Task | None:
        return self.tasks.get(task_id)

    def task_ids(self) -> list[str]:
        return list(self.tasks)

    def open_ids(self) -> list[str]:
        return [t.id for t in self.tasks.values() if not t.is_closed]
