"""tasque CLI: one command per invocation against the local ``.tasque/`` store.

Installed as the ``tsq`` console_script.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import NoReturn

import click

from tasque import __version__
from tasque import log as glog
from tasque.config import Config
from tasque.errors import IO_ERROR, TasqueError, validation_error
from tasque.graph import DependencyGraph
from tasque.lifecycle import LifecycleEngine
from tasque.output import (
    emit,
    err_envelope,
    print_json,
    print_skill_summary,
    print_task,
    print_task_detail,
    print_task_list,
    print_dep_tree,
    print_doctor_report,
    print_tree,
    task_to_dict,
)
from tasque.skills import DEFAULT_SKILL_NAME, SKILL_TARGETS, apply_skill_operation
from tasque.store import TaskStore, diagnose
from tasque.tasks.model import TaskStatus
from tasque.tree import (
    DEFAULT_DEP_DEPTH,
    DEP_DIRECTIONS,
    build_dep_tree,
    build_tree,
    dep_tree_to_dict,
    tree_to_dict,
)

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])

STATUS_CHOICES = [s.value for s in TaskStatus]

# Statuses shown by ``list --tree`` unless --full or --status is given.
ACTIVE_STATUSES = (TaskStatus.OPEN, TaskStatus.IN_PROGRESS)


@dataclass
class Engine:
    store: TaskStore
    graph: DependencyGraph
    lifecycle: LifecycleEngine
    cfg: Config

    def resolve(self, raw: str) -> str:
        return self.store.resolve(raw, exact=self.cfg.exact_id)


def _command_name(ctx: click.Context) -> str:
    parts = ctx.command_path.split()[1:]
    return " ".join(["tsq", *parts])


def _fail(ctx: click.Context, err: TasqueError) -> NoReturn:
    """Report *err* once, as an envelope or a log line, and exit."""
    cfg: Config = ctx.obj
    if cfg.json_output:
        print_json(err_envelope(_command_name(ctx), err.code, err.message, err.details))
    else:
        glog.error(f"{err.code}: {err.message}")
        candidates = (err.details or {}).get("candidates")
        if candidates:
            glog.console.print("[dim]Candidates:[/dim]")
            for candidate in candidates:
                glog.console.print(f"  {candidate}")
    sys.exit(err.exit_code)


@contextmanager
def _reading(ctx: click.Context) -> Iterator[Engine]:
    """Load the store read-only; errors are reported and exit."""
    cfg: Config = ctx.obj
    try:
        store = TaskStore.load(cfg.paths)
        yield _engine(store, cfg)
    except TasqueError as err:
        _fail(ctx, err)


@contextmanager
def _writing(ctx: click.Context) -> Iterator[Engine]:
    """Lock, load, run the block, and persist; nothing is written on error."""
    cfg: Config = ctx.obj
    try:
        with TaskStore.transaction(cfg.paths, timeout=cfg.lock_timeout) as store:
            yield _engine(store, cfg)
    except TasqueError as err:
        _fail(ctx, err)


def _engine(store: TaskStore, cfg: Config) -> Engine:
    return Engine(
        store=store,
        graph=DependencyGraph(store),
        lifecycle=LifecycleEngine(store, cfg.actor),
        cfg=cfg,
    )


@click.group(name="tsq", context_settings=CONTEXT_SETTINGS)
@click.option("--json", "json_output", is_flag=True, help="Emit a JSON envelope")
@click.option("--exact-id", is_flag=True, help="Require exact task id matches (no prefixes)")
@click.option("-v", "--verbose", is_flag=True, help="Show debug output")
@click.version_option(__version__, prog_name="tsq")
@click.pass_context
def main(ctx: click.Context, json_output: bool, exact_id: bool, verbose: bool) -> None:
    """tasque: local task tracking with dependency-aware readiness.

    \b
    EXAMPLES:
      tsq init
      tsq create "Write parser"
      tsq create "Tokenizer" --parent tsq-1a2b3c4d
      tsq dep add <child> <blocker>
      tsq ready
      tsq claim <id>
      tsq close <id>
      tsq list --tree
      tsq dep tree <id> --direction up
      tsq doctor
    """
    glog.set_verbose(verbose)
    glog.set_quiet(json_output)
    ctx.obj = Config(json_output=json_output, exact_id=exact_id, verbose=verbose)


# ── Subcommand: init ─────────────────────────────────────────────


@main.command()
@click.option("--install-skill", is_flag=True, help="Install tsq skill files")
@click.option("--uninstall-skill", is_flag=True, help="Uninstall tsq skill files")
@click.option(
    "--skill-target",
    "skill_targets",
    type=click.Choice(SKILL_TARGETS),
    multiple=True,
    help="Skill target (repeatable, default: all)",
)
@click.option("--skill-name", default=DEFAULT_SKILL_NAME, show_default=True, help="Skill folder name")
@click.option("--force-skill-overwrite", is_flag=True, help="Overwrite or remove unmanaged skill files")
@click.option("--skill-dir-claude", default="", help="Override claude skills root dir")
@click.option("--skill-dir-codex", default="", help="Override codex skills root dir")
@click.option("--skill-dir-copilot", default="", help="Override copilot skills root dir")
@click.option("--skill-dir-opencode", default="", help="Override opencode skills root dir")
@click.pass_context
def init(
    ctx: click.Context,
    install_skill: bool,
    uninstall_skill: bool,
    skill_targets: tuple[str, ...],
    skill_name: str,
    force_skill_overwrite: bool,
    skill_dir_claude: str,
    skill_dir_codex: str,
    skill_dir_copilot: str,
    skill_dir_opencode: str,
) -> None:
    """Create .tasque/ in the current project and optionally manage skills."""
    cfg: Config = ctx.obj
    try:
        if install_skill and uninstall_skill:
            raise validation_error("--install-skill and --uninstall-skill are mutually exclusive")

        created = TaskStore.init(cfg.paths)
        if created:
            glog.success(f"Initialized {cfg.paths.tasque_dir}")
        else:
            glog.info(f"{cfg.paths.tasque_dir} already initialized")

        summary = None
        if install_skill or uninstall_skill:
            overrides = {
                "claude": skill_dir_claude,
                "codex": skill_dir_codex,
                "copilot": skill_dir_copilot,
                "opencode": skill_dir_opencode,
            }
            summary = apply_skill_operation(
                "install" if install_skill else "uninstall",
                list(skill_targets) or list(SKILL_TARGETS),
                skill_name=skill_name,
                force=force_skill_overwrite,
                overrides={k: v for k, v in overrides.items() if v},
            )
    except TasqueError as err:
        _fail(ctx, err)
    except OSError as err:
        _fail(ctx, TasqueError(IO_ERROR, str(err), exit_code=2))

    data = {
        "root": str(cfg.paths.root),
        "initialized": created,
        "skills": summary.to_dict() if summary else None,
    }

    def _print() -> None:
        if summary:
            print_skill_summary(summary)

    emit(_command_name(ctx), data, cfg.json_output, _print)


# ── Subcommand: create ───────────────────────────────────────────


@main.command()
@click.argument("title")
@click.option("--parent", "parent", default=None, help="Parent task id (full or prefix)")
@click.pass_context
def create(ctx: click.Context, title: str, parent: str | None) -> None:
    """Create a new open task."""
    with _writing(ctx) as eng:
        parent_id = eng.resolve(parent) if parent else None
        task = eng.store.create(title, parent_id=parent_id)

    emit(_command_name(ctx), task_to_dict(task), ctx.obj.json_output, lambda: print_task(task))


# ── Subcommand: show ─────────────────────────────────────────────


@main.command()
@click.argument("task_id")
@click.pass_context
def show(ctx: click.Context, task_id: str) -> None:
    """Show one task with its blockers and dependents."""
    with _reading(ctx) as eng:
        tid = eng.resolve(task_id)
        task = eng.store.get(tid)
        blockers = eng.graph.blockers(tid)
        dependents = eng.graph.dependents(tid)
        ready = eng.graph.is_ready(tid)

    data = {
        "task": task_to_dict(task),
        "blockers": blockers,
        "dependents": dependents,
        "ready": ready,
    }
    emit(
        _command_name(ctx),
        data,
        ctx.obj.json_output,
        lambda: print_task_detail(task, blockers, dependents, ready),
    )


# ── Subcommand: list / tree / ready ──────────────────────────────


@main.command(name="list")
@click.option("--status", type=click.Choice(STATUS_CHOICES), default=None, help="Filter by status")
@click.option("--assignee", default=None, help="Filter by assignee")
@click.option("--tree", "as_tree", is_flag=True, help="Render parent/child hierarchy")
@click.option("--full", is_flag=True, help="With --tree, include closed tasks")
@click.pass_context
def list_tasks(
    ctx: click.Context,
    status: str | None,
    assignee: str | None,
    as_tree: bool,
    full: bool,
) -> None:
    """List tasks in creation order."""
    if as_tree:
        if status:
            statuses = (TaskStatus(status),)
        elif full:
            statuses = None
        else:
            statuses = ACTIVE_STATUSES
        _emit_tree(ctx, statuses)
        return

    with _reading(ctx) as eng:
        tasks = eng.store.all()
    if status:
        tasks = [t for t in tasks if t.status.value == status]
    if assignee:
        tasks = [t for t in tasks if t.assignee == assignee]

    emit(
        _command_name(ctx),
        [task_to_dict(t) for t in tasks],
        ctx.obj.json_output,
        lambda: print_task_list(tasks),
    )


@main.command()
@click.pass_context
def tree(ctx: click.Context) -> None:
    """Render the full task hierarchy with blocking context."""
    _emit_tree(ctx, None)


def _emit_tree(ctx: click.Context, statuses: tuple[TaskStatus, ...] | None) -> None:
    with _reading(ctx) as eng:
        nodes = build_tree(eng.store, eng.graph, statuses)
    emit(_command_name(ctx), tree_to_dict(nodes), ctx.obj.json_output, lambda: print_tree(nodes))


@main.command()
@click.pass_context
def ready(ctx: click.Context) -> None:
    """List open tasks whose dependencies are all closed."""
    with _reading(ctx) as eng:
        tasks = eng.graph.ready_tasks()
    emit(
        _command_name(ctx),
        [task_to_dict(t) for t in tasks],
        ctx.obj.json_output,
        lambda: print_task_list(tasks),
    )


# ── Subcommand: update / claim / close / supersede ───────────────


@main.command()
@click.argument("task_id")
@click.option("--title", default=None, help="New title")
@click.option("--status", type=click.Choice(STATUS_CHOICES), default=None, help="New status")
@click.option("--assignee", default=None, help="Assignee (with --claim: the claimant)")
@click.option("--parent", default=None, help="New parent task id")
@click.option("--clear-parent", is_flag=True, help="Detach from the current parent")
@click.option("--claim", is_flag=True, help="Claim this task")
@click.pass_context
def update(
    ctx: click.Context,
    task_id: str,
    title: str | None,
    status: str | None,
    assignee: str | None,
    parent: str | None,
    clear_parent: bool,
    claim: bool,
) -> None:
    """Update fields of a task."""
    with _writing(ctx) as eng:
        if claim and status:
            raise validation_error("--claim cannot be combined with --status")
        if parent is not None and clear_parent:
            raise validation_error("--parent cannot be combined with --clear-parent")
        given = (title, status, assignee, parent)
        if all(value is None for value in given) and not (clear_parent or claim):
            raise validation_error("Nothing to update")

        tid = eng.resolve(task_id)
        kwargs: dict[str, object] = {}
        if parent is not None:
            kwargs["parent_id"] = eng.resolve(parent)
        elif clear_parent:
            kwargs["parent_id"] = None
        if assignee is not None and not claim:
            kwargs["assignee"] = assignee
        task = eng.lifecycle.update(tid, title=title, status=status, **kwargs)
        if claim:
            task = eng.lifecycle.claim(tid, assignee)

    emit(_command_name(ctx), task_to_dict(task), ctx.obj.json_output, lambda: print_task(task))


@main.command(name="claim")
@click.argument("task_id")
@click.option("--assignee", default=None, help="Claimant (default: current actor)")
@click.pass_context
def claim_task(ctx: click.Context, task_id: str, assignee: str | None) -> None:
    """Mark a task in progress and assign it."""
    with _writing(ctx) as eng:
        task = eng.lifecycle.claim(eng.resolve(task_id), assignee)
    emit(_command_name(ctx), task_to_dict(task), ctx.obj.json_output, lambda: print_task(task))


@main.command()
@click.argument("task_ids", nargs=-1, required=True)
@click.option("--reason", default=None, help="Close reason")
@click.pass_context
def close(ctx: click.Context, task_ids: tuple[str, ...], reason: str | None) -> None:
    """Close one or more tasks (all or none)."""
    with _writing(ctx) as eng:
        resolved = [eng.resolve(raw) for raw in task_ids]
        tasks = [eng.lifecycle.close(tid, reason) for tid in resolved]

    def _print() -> None:
        for task in tasks:
            glog.success(f"Closed {task.id} {task.title}")

    emit(_command_name(ctx), [task_to_dict(t) for t in tasks], ctx.obj.json_output, _print)


@main.command()
@click.argument("task_id")
@click.option("--with", "with_id", required=True, help="Replacement task id")
@click.option("--reason", default=None, help="Supersede reason")
@click.pass_context
def supersede(ctx: click.Context, task_id: str, with_id: str, reason: str | None) -> None:
    """Close a task, recording another task as its replacement."""
    with _writing(ctx) as eng:
        task = eng.lifecycle.supersede(eng.resolve(task_id), eng.resolve(with_id), reason)
    emit(_command_name(ctx), task_to_dict(task), ctx.obj.json_output, lambda: print_task(task))


# ── Subcommand group: dep ────────────────────────────────────────


@main.group()
def dep() -> None:
    """Dependency operations (child waits on blocker)."""


@dep.command(name="add")
@click.argument("child")
@click.argument("blocker")
@click.pass_context
def dep_add(ctx: click.Context, child: str, blocker: str) -> None:
    """Make CHILD depend on BLOCKER."""
    with _writing(ctx) as eng:
        child_id, blocker_id = eng.resolve(child), eng.resolve(blocker)
        added = eng.graph.add_edge(child_id, blocker_id)
    data = {"child": child_id, "blocker": blocker_id, "changed": added}

    def _print() -> None:
        if added:
            glog.success(f"{child_id} now depends on {blocker_id}")
        else:
            glog.info(f"{child_id} already depends on {blocker_id}")

    emit(_command_name(ctx), data, ctx.obj.json_output, _print)


@dep.command(name="remove")
@click.argument("child")
@click.argument("blocker")
@click.pass_context
def dep_remove(ctx: click.Context, child: str, blocker: str) -> None:
    """Remove the dependency of CHILD on BLOCKER (no-op if absent)."""
    with _writing(ctx) as eng:
        child_id, blocker_id = eng.resolve(child), eng.resolve(blocker)
        removed = eng.graph.remove_edge(child_id, blocker_id)
    data = {"child": child_id, "blocker": blocker_id, "changed": removed}

    def _print() -> None:
        if removed:
            glog.success(f"{child_id} no longer depends on {blocker_id}")
        else:
            glog.info(f"{child_id} did not depend on {blocker_id}")

    emit(_command_name(ctx), data, ctx.obj.json_output, _print)


@dep.command(name="tree")
@click.argument("task_id")
@click.option(
    "--direction",
    type=click.Choice(DEP_DIRECTIONS),
    default="both",
    show_default=True,
    help="up: what blocks the task, down: what it blocks",
)
@click.option("--max-depth", type=int, default=DEFAULT_DEP_DEPTH, show_default=True, help="Levels to walk")
@click.pass_context
def dep_tree(ctx: click.Context, task_id: str, direction: str, max_depth: int) -> None:
    """Show the dependency tree around one task."""
    with _reading(ctx) as eng:
        root = build_dep_tree(eng.store, eng.graph, eng.resolve(task_id), direction, max_depth)
    emit(_command_name(ctx), dep_tree_to_dict(root), ctx.obj.json_output, lambda: print_dep_tree(root))


# ── Subcommand: doctor ───────────────────────────────────────────


@main.command()
@click.pass_context
def doctor(ctx: click.Context) -> None:
    """Check the store for invariant violations without changing it."""
    cfg: Config = ctx.obj
    try:
        report = diagnose(cfg.paths)
    except TasqueError as err:
        _fail(ctx, err)
    except OSError as err:
        _fail(ctx, TasqueError(IO_ERROR, str(err), exit_code=2))

    emit(_command_name(ctx), report, cfg.json_output, lambda: print_doctor_report(report))


if __name__ == "__main__":
    main()
