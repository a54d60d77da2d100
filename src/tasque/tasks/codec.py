"""JSON codec for ``.tasque/state.json``.

Field order is fixed and every known field is always written, so a file
loaded and persisted again without changes is byte-for-byte identical.
"""

from __future__ import annotations

import json
from typing import Any

from tasque.config import SCHEMA_VERSION
from tasque.errors import STORE_CORRUPT, TasqueError
from tasque.tasks.model import StoreState, Task, TaskStatus
from tasque.tasks.validate import validate

TASK_FIELDS: tuple[str, ...] = (
    "id",
    "title",
    "status",
    "assignee",
    "parent_id",
    "superseded_by",
    "close_reason",
    "created_at",
    "updated_at",
    "closed_at",
)

STATE_KEYS: tuple[str, ...] = ("schema_version", "tasks", "deps")


def _corrupt(message: str, **details: Any) -> TasqueError:
    return TasqueError(STORE_CORRUPT, message, details or None, exit_code=2)


def task_to_record(task: Task) -> dict[str, Any]:
    record: dict[str, Any] = {
        "id": task.id,
        "title": task.title,
        "status": task.status.value,
        "assignee": task.assignee,
        "parent_id": task.parent_id,
        "superseded_by": task.superseded_by,
        "close_reason": task.close_reason,
        "created_at": task.created_at,
        "updated_at": task.updated_at,
        "closed_at": task.closed_at,
    }
    for key, value in task.extra.items():
        if key not in record:
            record[key] = value
    return record


def _optional_str(raw: dict[str, Any], key: str) -> str | None:
    value = raw.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise _corrupt(f"Field {key!r} must be a string", task=raw.get("id"))
    return value


def task_from_record(raw: Any) -> Task:
    if not isinstance(raw, dict):
        raise _corrupt("Task record must be an object")
    task_id = raw.get("id")
    title = raw.get("title")
    if not isinstance(task_id, str) or not task_id:
        raise _corrupt("Task record missing id")
    if not isinstance(title, str):
        raise _corrupt("Task record missing title", task=task_id)
    try:
        status = TaskStatus.parse(str(raw.get("status", "open")))
    except ValueError:
        raise _corrupt(f"Task {task_id}: invalid status {raw.get('status')!r}", task=task_id)

    return Task(
        id=task_id,
        title=title,
        status=status,
        assignee=_optional_str(raw, "assignee"),
        parent_id=_optional_str(raw, "parent_id"),
        superseded_by=_optional_str(raw, "superseded_by"),
        close_reason=_optional_str(raw, "close_reason"),
        created_at=_optional_str(raw, "created_at") or "",
        updated_at=_optional_str(raw, "updated_at") or "",
        closed_at=_optional_str(raw, "closed_at"),
        extra={k: v for k, v in raw.items() if k not in TASK_FIELDS},
    )


def state_to_dict(state: StoreState) -> dict[str, Any]:
    doc: dict[str, Any] = {
        "schema_version": state.version,
        "tasks": [task_to_record(t) for t in state.tasks.values()],
        "deps": {child: list(blockers) for child, blockers in state.deps.items() if blockers},
    }
    for key, value in state.extra.items():
        if key not in doc:
            doc[key] = value
    return doc


def dump_state(state: StoreState) -> str:
    return json.dumps(state_to_dict(state), indent=2, ensure_ascii=False) + "\n"


def empty_state() -> StoreState:
    return StoreState(version=SCHEMA_VERSION)


def load_state(text: str, *, check: bool = True) -> StoreState:
    """Parse and validate a state file. Raises ``STORE_CORRUPT`` on any problem.

    With *check* off only the file structure is verified; invariant
    violations are left for the caller to report.
    """
    if not text.strip():
        return empty_state()
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        raise _corrupt(f"State file is not valid JSON: {exc}")
    if not isinstance(raw, dict):
        raise _corrupt("State file must contain a JSON object")

    version = raw.get("schema_version", SCHEMA_VERSION)
    if version != SCHEMA_VERSION:
        raise _corrupt(f"Unsupported schema_version {version!r}", schema_version=version)

    records = raw.get("tasks", [])
    if not isinstance(records, list):
        raise _corrupt("'tasks' must be a list")
    tasks: dict[str, Task] = {}
    for record in records:
        task = task_from_record(record)
        if task.id in tasks:
            raise _corrupt(f"Duplicate task id {task.id}", task=task.id)
        tasks[task.id] = task

    raw_deps = raw.get("deps", {})
    if not isinstance(raw_deps, dict):
        raise _corrupt("'deps' must be an object")
    deps: dict[str, list[str]] = {}
    for child, blockers in raw_deps.items():
        if not isinstance(blockers, list) or not all(isinstance(b, str) for b in blockers):
            raise _corrupt(f"Dependencies of {child} must be a list of ids", task=child)
        if blockers:
            deps[child] = list(blockers)

    extra = {k: v for k, v in raw.items() if k not in STATE_KEYS}
    state = StoreState(tasks=tasks, deps=deps, version=version, extra=extra)
    problems = validate(state) if check else []
    if problems:
        raise _corrupt(problems[0], problems=problems)
    return state
