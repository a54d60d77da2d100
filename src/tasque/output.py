"""Result formatting: versioned JSON envelopes and rich text views."""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

import click
from rich.markup import escape
from rich.table import Table

from tasque import log
from tasque.config import SCHEMA_VERSION
from tasque.skills import SkillOperationSummary
from tasque.tasks.codec import task_to_record
from tasque.tasks.model import Task
from tasque.tree import DepNode, TreeNode, dep_tree_to_rich, to_rich_tree


def ok_envelope(command: str, data: Any) -> dict[str, Any]:
    return {
        "schema_version": SCHEMA_VERSION,
        "command": command,
        "ok": True,
        "data": data,
    }


def err_envelope(
    command: str,
    code: str,
    message: str,
    details: Any = None,
) -> dict[str, Any]:
    error: dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    return {
        "schema_version": SCHEMA_VERSION,
        "command": command,
        "ok": False,
        "error": error,
    }


def task_to_dict(task: Task) -> dict[str, Any]:
    return task_to_record(task)


def print_json(payload: dict[str, Any]) -> None:
    click.echo(json.dumps(payload, indent=2, ensure_ascii=False))


def emit(command: str, data: Any, json_mode: bool, printer: Callable[[], None]) -> None:
    """Print *data* as an envelope in JSON mode, otherwise call *printer*."""
    if json_mode:
        print_json(ok_envelope(command, data))
    else:
        printer()


# ── text views ───────────────────────────────────────────────────────


def print_task(task: Task) -> None:
    console = log.console
    console.print(f"[bold]{escape(task.id)}[/bold] {escape(task.title)}")
    console.print(f"status={task.status.value}")
    if task.assignee:
        console.print(f"assignee={escape(task.assignee)}")
    if task.parent_id:
        console.print(f"parent={escape(task.parent_id)}")
    if task.superseded_by:
        console.print(f"superseded_by={escape(task.superseded_by)}")
    if task.closed_at:
        console.print(f"closed_at={task.closed_at}")
    if task.close_reason:
        console.print(f"reason={escape(task.close_reason)}")


def print_task_detail(task: Task, blockers: list[str], dependents: list[str], ready: bool) -> None:
    print_task(task)
    console = log.console
    console.print(f"ready={'yes' if ready else 'no'}")
    if blockers:
        console.print(f"blockers={','.join(blockers)}")
    if dependents:
        console.print(f"dependents={','.join(dependents)}")


def print_task_list(tasks: list[Task]) -> None:
    if not tasks:
        log.console.print("[dim]no tasks[/dim]")
        return

    table = Table(box=None, show_edge=False, pad_edge=False, header_style="bold")
    for column in ("ID", "STATUS", "ASSIGNEE", "TITLE"):
        table.add_column(column, no_wrap=column != "TITLE")
    for task in tasks:
        table.add_row(
            escape(task.id),
            task.status.value,
            escape(task.assignee or "-"),
            escape(task.title),
        )
    log.console.print(table)


def print_tree(nodes: list[TreeNode]) -> None:
    if not nodes:
        log.console.print("[dim]no tasks[/dim]")
        return
    log.console.print(to_rich_tree(nodes))


def print_skill_summary(summary: SkillOperationSummary) -> None:
    for result in summary.results:
        log.console.print(
            f"{result.target}: {result.status} {escape(result.path)}"
            + (f" [dim]({escape(result.message)})[/dim]" if result.message else "")
        )


def print_dep_tree(root: DepNode) -> None:
    log.console.print(dep_tree_to_rich(root))


def print_doctor_report(report: dict[str, Any]) -> None:
    console = log.console
    console.print(f"tasks={report['tasks']} deps={report['deps']}")
    if not report["issues"]:
        console.print("issues=none")
        return
    for issue in report["issues"]:
        console.print(f"[red]issue[/red]={escape(issue)}")
