"""Invariant checks for task records, hierarchy and dependency edges."""

from __future__ import annotations

from collections.abc import Mapping, Sequence

from tasque.tasks.model import StoreState, Task, TaskStatus


def reaches(edges: Mapping[str, Sequence[str]], start: str, target: str) -> bool:
    """Return ``True`` if *target* is reachable from *start* following *edges*.

    Iterative depth-first walk with a visited set, so malformed or deep
    graphs cannot recurse or loop forever.
    """
    stack = [start]
    visited: set[str] = set()
    while stack:
        current = stack.pop()
        if current == target:
            return True
        if current in visited:
            continue
        visited.add(current)
        for nxt in edges.get(current, ()):
            if nxt not in visited:
                stack.append(nxt)
    return False


def parent_chain_contains(state: StoreState, start: str | None, target: str) -> bool:
    """Return ``True`` if *target* is *start* or one of its ancestors."""
    seen: set[str] = set()
    current = start
    while current and current not in seen:
        if current == target:
            return True
        seen.add(current)
        task = state.tasks.get(current)
        current = task.parent_id if task else None
    return False


# ── Whole-state cycle detection ──────────────────────────────────────


def detect_cycles(state: StoreState) -> str:
    """Return a description of a dependency cycle, or ``""`` if none.

    Three-colour iterative DFS over ``state.deps``.
    """
    white, grey, black = 0, 1, 2
    colour: dict[str, int] = {}

    for root in state.deps:
        if colour.get(root, white) != white:
            continue
        stack: list[tuple[str, int]] = [(root, 0)]
        path: list[str] = []
        while stack:
            node, idx = stack.pop()
            if idx == 0:
                colour[node] = grey
                path.append(node)
            blockers = state.deps.get(node, [])
            if idx < len(blockers):
                stack.append((node, idx + 1))
                nxt = blockers[idx]
                state_of_next = colour.get(nxt, white)
                if state_of_next == grey:
                    loop = path[path.index(nxt):] + [nxt]
                    return "Dependency cycle: " + " -> ".join(loop)
                if state_of_next == white:
                    stack.append((nxt, 0))
            else:
                colour[node] = black
                path.pop()
    return ""


# ── Record validation ────────────────────────────────────────────────


def task_errors(state: StoreState, task: Task) -> list[str]:
    """Return invariant violations for a single task record in *state*."""
    errors: list[str] = []
    tid = task.id or "<no id>"

    if not task.id:
        errors.append("Task missing id")
    if not task.title or not task.title.strip():
        errors.append(f"Task {tid}: title must not be empty")
    if not isinstance(task.status, TaskStatus):
        errors.append(f"Task {tid}: invalid status {task.status!r}")
        return errors

    if task.is_closed and not task.closed_at:
        errors.append(f"Task {tid}: closed task must have closed_at")
    if not task.is_closed and task.closed_at:
        errors.append(f"Task {tid}: closed_at set on {task.status.value} task")
    if task.superseded_by and not task.is_closed:
        errors.append(f"Task {tid}: superseded_by requires status closed")

    if task.parent_id:
        if task.parent_id == task.id:
            errors.append(f"Task {tid}: cannot be its own parent")
        elif task.parent_id not in state.tasks:
            errors.append(f"Task {tid}: unknown parent {task.parent_id}")
        elif parent_chain_contains(state, task.parent_id, task.id):
            errors.append(f"Task {tid}: parent {task.parent_id} would create a cycle")

    if task.superseded_by:
        if task.superseded_by == task.id:
            errors.append(f"Task {tid}: cannot supersede itself")
        elif task.superseded_by not in state.tasks:
            errors.append(f"Task {tid}: unknown replacement {task.superseded_by}")

    return errors


def validate(state: StoreState) -> list[str]:
    """Check every invariant of a loaded state. Returns a list of problems."""
    errors: list[str] = []

    for task_id, task in state.tasks.items():
        if task.id != task_id:
            errors.append(f"Task key {task_id} does not match id {task.id}")
        errors.extend(task_errors(state, task))

    for child, blockers in state.deps.items():
        if child not in state.tasks:
            errors.append(f"Dependency from unknown task {child}")
        for blocker in blockers:
            if blocker == child:
                errors.append(f"Task {child} depends on itself")
            elif blocker not in state.tasks:
                errors.append(f"Task {child}: unknown dependency {blocker}")
        if len(set(blockers)) != len(blockers):
            errors.append(f"Task {child}: duplicate dependency entries")

    cycle = detect_cycles(state)
    if cycle:
        errors.append(cycle)

    return errors
