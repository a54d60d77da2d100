"""Tree Renderer: parent/child forest annotated with blocking context.

One derivation (:func:`build_tree`) feeds both presentations: nested dicts
for JSON output and a :class:`rich.tree.Tree` for the terminal. The same
module builds dependency trees rooted at one task (:func:`build_dep_tree`).

Every walk uses an explicit stack, so hierarchy depth is not bounded by the
interpreter's recursion limit.
"""

from __future__ import annotations

from collections.abc import Collection, Iterator
from dataclasses import dataclass, field
from typing import Any

from rich.markup import escape
from rich.tree import Tree

from tasque.errors import validation_error
from tasque.graph import DependencyGraph
from tasque.store import TaskStore
from tasque.tasks.codec import task_to_record
from tasque.tasks.model import Task, TaskStatus

STATUS_ICONS = {
    TaskStatus.OPEN: "○",
    TaskStatus.IN_PROGRESS: "◐",
    TaskStatus.CLOSED: "●",
}

STATUS_STYLES = {
    TaskStatus.OPEN: "cyan",
    TaskStatus.IN_PROGRESS: "yellow",
    TaskStatus.CLOSED: "dim",
}

# up: what blocks the task; down: what the task blocks.
DEP_DIRECTIONS = ("up", "down", "both")
DIRECTION_ARROWS = {"up": "↑", "down": "↓", "both": ""}
DEFAULT_DEP_DEPTH = 10


@dataclass
class TreeNode:
    task: Task
    blockers: list[str] = field(default_factory=list)
    dependents: list[str] = field(default_factory=list)
    children: list[TreeNode] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.task.id


def build_tree(
    store: TaskStore,
    graph: DependencyGraph,
    statuses: Collection[TaskStatus] | None = None,
) -> list[TreeNode]:
    """Return the forest of tasks whose status is in *statuses* (all if ``None``).

    Roots are tasks without a parent, or whose parent was filtered out.
    Children keep creation order.
    """
    tasks = [t for t in store.all() if statuses is None or t.status in statuses]
    included = {t.id for t in tasks}
    dependents_of = graph.dependents_index()

    nodes = {
        t.id: TreeNode(
            task=t,
            blockers=sorted(graph.blockers(t.id)),
            dependents=sorted(dependents_of.get(t.id, [])),
        )
        for t in tasks
    }

    roots: list[TreeNode] = []
    for task in tasks:
        node = nodes[task.id]
        if task.parent_id and task.parent_id in included:
            nodes[task.parent_id].children.append(node)
        else:
            roots.append(node)
    return roots


def flatten(nodes: list[TreeNode]) -> Iterator[tuple[int, TreeNode]]:
    """Yield ``(depth, node)`` in pre-order: every parent before its descendants."""
    stack = [(0, node) for node in reversed(nodes)]
    while stack:
        depth, node = stack.pop()
        yield depth, node
        stack.extend((depth + 1, child) for child in reversed(node.children))


def tree_to_dict(nodes: list[TreeNode]) -> list[dict[str, Any]]:
    """Nested ``{task, blockers, dependents, children}`` dicts, in pre-order."""
    result: list[dict[str, Any]] = []
    stack: list[tuple[TreeNode, list[dict[str, Any]]]] = [(n, result) for n in reversed(nodes)]
    while stack:
        node, siblings = stack.pop()
        entry = {
            "task": task_to_record(node.task),
            "blockers": list(node.blockers),
            "dependents": list(node.dependents),
            "children": [],
        }
        siblings.append(entry)
        stack.extend((child, entry["children"]) for child in reversed(node.children))
    return result


def format_node_line(node: TreeNode) -> str:
    """Plain one-line summary: ``id status [@assignee] title [blockers=..] [dependents=..]``."""
    task = node.task
    parts = [task.id, task.status.value]
    if task.assignee:
        parts.append(f"@{task.assignee}")
    parts.append(task.title)
    if node.blockers:
        parts.append(f"blockers={','.join(node.blockers)}")
    if node.dependents:
        parts.append(f"dependents={','.join(node.dependents)}")
    return " ".join(parts)


def _status_prefix(task: Task) -> str:
    style = STATUS_STYLES[task.status]
    return f"[{style}]{STATUS_ICONS[task.status]}[/{style}]"


def _node_label(node: TreeNode) -> str:
    return f"{_status_prefix(node.task)} {escape(format_node_line(node))}"


def to_rich_tree(nodes: list[TreeNode], label: str = "tasks") -> Tree:
    """Build a rich Tree (branch glyphs convey depth and siblinghood)."""
    root = Tree(label, guide_style="dim", hide_root=True)
    stack: list[tuple[TreeNode, Tree]] = [(n, root) for n in reversed(nodes)]
    while stack:
        node, parent = stack.pop()
        branch = parent.add(_node_label(node))
        stack.extend((child, branch) for child in reversed(node.children))
    return root


# ── dependency trees ─────────────────────────────────────────────────


@dataclass
class DepNode:
    task: Task
    direction: str
    depth: int
    children: list[DepNode] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.task.id


def build_dep_tree(
    store: TaskStore,
    graph: DependencyGraph,
    root_id: str,
    direction: str = "both",
    max_depth: int = DEFAULT_DEP_DEPTH,
) -> DepNode:
    """Walk dependency edges out from *root_id*.

    ``up`` follows blockers transitively, ``down`` follows dependents, and
    ``both`` gives the root the up children followed by the down children.
    A task already placed in a walk is not expanded again. Levels deeper
    than *max_depth* are cut.
    """
    if direction not in DEP_DIRECTIONS:
        raise validation_error(
            f"Invalid direction {direction!r}; expected one of: {', '.join(DEP_DIRECTIONS)}",
            direction=direction,
        )
    if max_depth < 0:
        raise validation_error("max depth must not be negative", max_depth=max_depth)

    root = DepNode(task=store.get(root_id), direction=direction, depth=0)
    walks = ("up", "down") if direction == "both" else (direction,)
    dependents_of = graph.dependents_index()

    for walk in walks:
        visited = {root_id}
        # The root's children for this walk are appended after any earlier walk.
        stack: list[DepNode] = [root]
        while stack:
            node = stack.pop()
            if node.depth >= max_depth:
                continue
            neighbours = graph.blockers(node.id) if walk == "up" else dependents_of.get(node.id, [])
            added: list[DepNode] = []
            for neighbour in neighbours:
                if neighbour in visited:
                    continue
                visited.add(neighbour)
                child = DepNode(task=store.get(neighbour), direction=walk, depth=node.depth + 1)
                node.children.append(child)
                added.append(child)
            stack.extend(reversed(added))
    return root


def dep_tree_to_dict(root: DepNode) -> dict[str, Any]:
    """Nested ``{id, task, direction, depth, children}`` dicts."""
    holder: list[dict[str, Any]] = []
    stack: list[tuple[DepNode, list[dict[str, Any]]]] = [(root, holder)]
    while stack:
        node, siblings = stack.pop()
        entry = {
            "id": node.id,
            "task": task_to_record(node.task),
            "direction": node.direction,
            "depth": node.depth,
            "children": [],
        }
        siblings.append(entry)
        stack.extend((child, entry["children"]) for child in reversed(node.children))
    return holder[0]


def format_dep_line(node: DepNode) -> str:
    """``[arrow ]id status title``; the arrow shows the walk direction."""
    arrow = DIRECTION_ARROWS[node.direction]
    parts = [arrow] if arrow and node.depth else []
    parts += [node.id, node.task.status.value, node.task.title]
    return " ".join(parts)


def dep_tree_to_rich(root: DepNode) -> Tree:
    tree = Tree(f"{_status_prefix(root.task)} {escape(format_dep_line(root))}", guide_style="dim")
    stack: list[tuple[DepNode, Tree]] = [(child, tree) for child in reversed(root.children)]
    while stack:
        node, parent = stack.pop()
        branch = parent.add(f"{_status_prefix(node.task)} {escape(format_dep_line(node))}")
        stack.extend((child, branch) for child in reversed(node.children))
    return tree
