"""Tests for tasque.tree — forest derivation, dict form and rich rendering."""

from __future__ import annotations

from io import StringIO

import pytest
from rich.console import Console

from tasque.errors import TASK_NOT_FOUND, VALIDATION_ERROR, TasqueError
from tasque.graph import DependencyGraph
from tasque.lifecycle import LifecycleEngine
from tasque.store import TaskStore
from tasque.tasks.model import TaskStatus
from tasque.tree import (
    build_dep_tree,
    build_tree,
    dep_tree_to_dict,
    dep_tree_to_rich,
    flatten,
    format_dep_line,
    format_node_line,
    to_rich_tree,
    tree_to_dict,
)


def _render(tree) -> str:
    console = Console(file=StringIO(), width=200, color_system=None)
    console.print(tree)
    return console.file.getvalue()


def _build_sample(store):
    """root -> (c1 -> g1), c2; other root depends on c2."""
    root = store.create("root")
    c1 = store.create("c1", parent_id=root.id)
    g1 = store.create("g1", parent_id=c1.id)
    c2 = store.create("c2", parent_id=root.id)
    other = store.create("other")
    graph = DependencyGraph(store)
    graph.add_edge(other.id, c2.id)
    return graph, root, c1, g1, c2, other


class TestBuildTree:
    """Tests for build_tree() and flatten()."""

    def test_pre_order_with_depths(self, store):
        """flatten() yields parents before children, with depths."""
        graph, root, c1, g1, c2, other = _build_sample(store)
        nodes = build_tree(store, graph)
        assert [(d, n.id) for d, n in flatten(nodes)] == [
            (0, root.id),
            (1, c1.id),
            (2, g1.id),
            (1, c2.id),
            (0, other.id),
        ]

    def test_blockers_and_dependents(self, store):
        """Each node knows its blockers and dependents."""
        graph, root, c1, g1, c2, other = _build_sample(store)
        by_id = {n.id: n for _, n in flatten(build_tree(store, graph))}
        assert by_id[other.id].blockers == [c2.id]
        assert by_id[c2.id].dependents == [other.id]
        assert by_id[root.id].blockers == []

    def test_status_filter_promotes_orphans(self, store):
        """When a parent is filtered out, its children become roots."""
        graph, root, c1, g1, c2, other = _build_sample(store)
        LifecycleEngine(store, "tester").close(c1.id)
        nodes = build_tree(store, graph, (TaskStatus.OPEN, TaskStatus.IN_PROGRESS))
        assert [n.id for n in nodes] == [root.id, g1.id, other.id]
        assert [c.id for c in nodes[0].children] == [c2.id]

    def test_empty_store(self, store):
        """No tasks gives an empty forest."""
        assert build_tree(store, DependencyGraph(store)) == []


class TestPresentations:
    """Tests for the dict and text presentations."""

    def test_tree_to_dict_nests_children(self, store):
        """Children nest under their parent in the dict form."""
        graph, root, c1, g1, c2, other = _build_sample(store)
        data = tree_to_dict(build_tree(store, graph))
        assert [d["task"]["id"] for d in data] == [root.id, other.id]
        first = data[0]
        assert [c["task"]["id"] for c in first["children"]] == [c1.id, c2.id]
        assert first["children"][0]["children"][0]["task"]["title"] == "g1"
        assert data[1]["blockers"] == [c2.id]

    def test_format_node_line(self, store):
        """The line shows assignee, blockers and dependents."""
        graph, root, c1, g1, c2, other = _build_sample(store)
        LifecycleEngine(store, "tester").claim(other.id, "ana")
        by_id = {n.id: n for _, n in flatten(build_tree(store, graph))}
        assert format_node_line(by_id[other.id]) == f"{other.id} in_progress @ana other blockers={c2.id}"
        assert format_node_line(by_id[c2.id]) == f"{c2.id} open c2 dependents={other.id}"

    def test_rich_tree_lists_every_task_in_order(self, store):
        """The rich tree prints every task in pre-order."""
        graph, root, c1, g1, c2, other = _build_sample(store)
        text = _render(to_rich_tree(build_tree(store, graph)))
        positions = [text.index(t.id + " ") for t in (root, c1, g1, c2, other)]
        assert positions == sorted(positions)
        assert "tasks" not in text.splitlines()[0]

    def test_rich_tree_escapes_markup_in_titles(self, store):
        """Titles are printed literally, not as markup."""
        store.create("fix [bold]markup[/bold]")
        graph = DependencyGraph(store)
        text = _render(to_rich_tree(build_tree(store, graph)))
        assert "[bold]markup[/bold]" in text


class TestDeepHierarchy:
    """Walks over a parent chain deeper than the interpreter recursion limit."""

    DEPTH = 1100

    def _chain(self, make_task, make_state):
        tasks = [make_task("tsq-0")]
        for i in range(1, self.DEPTH):
            tasks.append(make_task(f"tsq-{i}", parent_id=f"tsq-{i - 1}"))
        return TaskStore(make_state(tasks))

    def test_build_and_flatten(self, make_task, make_state):
        """flatten() reaches the bottom of the chain."""
        store = self._chain(make_task, make_state)
        nodes = build_tree(store, DependencyGraph(store))
        depths = [d for d, _ in flatten(nodes)]
        assert depths == list(range(self.DEPTH))

    def test_tree_to_dict(self, make_task, make_state):
        """The dict form nests every level without recursing."""
        store = self._chain(make_task, make_state)
        entry = tree_to_dict(build_tree(store, DependencyGraph(store)))[0]
        levels = 1
        while entry["children"]:
            entry = entry["children"][0]
            levels += 1
        assert levels == self.DEPTH
        assert entry["task"]["id"] == f"tsq-{self.DEPTH - 1}"

    def test_to_rich_tree(self, make_task, make_state):
        """The rich tree has one branch per level."""
        store = self._chain(make_task, make_state)
        node = to_rich_tree(build_tree(store, DependencyGraph(store)))
        levels = 0
        while node.children:
            node = node.children[0]
            levels += 1
        assert levels == self.DEPTH


# ═══════════════════════════════════════════════════════════════════
#  Dependency trees
# ═══════════════════════════════════════════════════════════════════


def _diamond(store):
    """top blocks left and right; both block bottom."""
    top = store.create("top")
    left = store.create("left")
    right = store.create("right")
    bottom = store.create("bottom")
    graph = DependencyGraph(store)
    graph.add_edge(left.id, top.id)
    graph.add_edge(right.id, top.id)
    graph.add_edge(bottom.id, left.id)
    graph.add_edge(bottom.id, right.id)
    return graph, top, left, right, bottom


class TestDepTree:
    """Tests for build_dep_tree() and its presentations."""

    def test_up_follows_blockers(self, store):
        """up walks blockers of blockers."""
        graph, top, left, right, bottom = _diamond(store)
        root = build_dep_tree(store, graph, bottom.id, "up")
        assert [c.id for c in root.children] == [left.id, right.id]
        assert [c.id for c in root.children[0].children] == [top.id]
        assert root.children[0].children[0].depth == 2

    def test_shared_ancestor_appears_once(self, store):
        """In a diamond the common blocker is expanded under its first path only."""
        graph, top, left, right, bottom = _diamond(store)
        root = build_dep_tree(store, graph, bottom.id, "up")
        assert root.children[1].children == []

    def test_down_follows_dependents(self, store):
        """down walks dependents of dependents."""
        graph, top, left, right, bottom = _diamond(store)
        root = build_dep_tree(store, graph, top.id, "down")
        assert [c.id for c in root.children] == [left.id, right.id]
        assert all(c.direction == "down" for c in root.children)
        assert [c.id for c in root.children[0].children] == [bottom.id]

    def test_both_lists_up_then_down(self, store):
        """both puts up children before down children."""
        graph, top, left, right, bottom = _diamond(store)
        root = build_dep_tree(store, graph, left.id)
        assert [(c.id, c.direction) for c in root.children] == [(top.id, "up"), (bottom.id, "down")]

    def test_max_depth(self, store):
        """Nothing below max_depth is expanded."""
        graph, top, left, right, bottom = _diamond(store)
        assert build_dep_tree(store, graph, bottom.id, "up", max_depth=0).children == []
        root = build_dep_tree(store, graph, bottom.id, "up", max_depth=1)
        assert all(c.children == [] for c in root.children)

    def test_invalid_arguments(self, store):
        """Bad direction, negative depth and unknown ids are rejected."""
        graph, top, *_ = _diamond(store)
        with pytest.raises(TasqueError) as exc_info:
            build_dep_tree(store, graph, top.id, "sideways")
        assert exc_info.value.code == VALIDATION_ERROR
        with pytest.raises(TasqueError) as exc_info:
            build_dep_tree(store, graph, top.id, max_depth=-1)
        assert exc_info.value.code == VALIDATION_ERROR
        with pytest.raises(TasqueError) as exc_info:
            build_dep_tree(store, graph, "tsq-missing0")
        assert exc_info.value.code == TASK_NOT_FOUND

    def test_dict_and_text(self, store):
        """Dict and text forms carry direction arrows below the root."""
        graph, top, left, right, bottom = _diamond(store)
        root = build_dep_tree(store, graph, left.id)
        data = dep_tree_to_dict(root)
        assert data["id"] == left.id
        assert data["depth"] == 0
        assert data["children"][0]["task"]["title"] == "top"
        assert format_dep_line(root) == f"{left.id} open left"
        assert format_dep_line(root.children[0]) == f"↑ {top.id} open top"
        text = _render(dep_tree_to_rich(root))
        assert text.splitlines()[0].rstrip().endswith(f"{left.id} open left")
        assert f"↓ {bottom.id} open bottom" in text
