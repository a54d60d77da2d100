"""Skill installation and removal for AI coding assistants.

A skill is a directory ``<skills root>/<skill name>/`` holding ``SKILL.md``
and ``README.md``. Files written by tasque carry :data:`MANAGED_MARKER`;
directories without it are left alone unless ``force`` is set.
"""

from __future__ import annotations

import os
import shutil
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from tasque import log
from tasque.errors import validation_error
from tasque.io_utils import read_text, write_text

SKILL_TARGETS = ("claude", "codex", "copilot", "opencode")

DEFAULT_SKILL_NAME = "tasque"

MANAGED_MARKER = "tsq-managed-skill:v1"

# installed | updated | skipped | removed | not_found
INSTALLED = "installed"
UPDATED = "updated"
SKIPPED = "skipped"
REMOVED = "removed"
NOT_FOUND = "not_found"


@dataclass
class SkillResult:
    target: str
    path: str
    status: str
    message: str = ""


@dataclass
class SkillOperationSummary:
    action: str
    skill_name: str
    results: list[SkillResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def render_skill_markdown(skill_name: str) -> str:
    return f"""---
name: {skill_name}
description: Operational guide for tasque (tsq) local task tracking
---

<!-- {MANAGED_MARKER} -->

# tasque skill

Use `tsq` for durable local task tracking.

## Core loop

1. `tsq ready`
2. `tsq show <id>`
3. `tsq claim <id>`
4. `tsq close <id>`

## Create and inspect

- `tsq create "Title" [--parent <id>]`
- `tsq list --status open`
- `tsq list --tree`

## Dependencies

- `tsq dep add <child> <blocker>` means child waits on blocker
- `tsq dep remove <child> <blocker>`
- `tsq supersede <old-id> --with <new-id> [--reason <text>]`

## JSON mode

Add `--json` to any command for stable automation output:
`{{"schema_version":1,"command":"tsq ...","ok":true,"data":{{}}}}`
"""


def render_readme_markdown(skill_name: str, target: str) -> str:
    return f"""<!-- {MANAGED_MARKER} -->
# {skill_name} skill

Managed skill package for `{target}`.

## Files

- `SKILL.md`: operational guide for `tsq`
- `README.md`: this file

Reinstall with `tsq init --install-skill`, remove with `tsq init --uninstall-skill`.
"""


def _expand_home(directory: str, home: Path) -> Path:
    if directory == "~":
        return home
    if directory.startswith(("~/", "~\\")):
        return home / directory[2:]
    return Path(directory).resolve()


def skill_root(target: str, home: Path | None = None, overrides: dict[str, str] | None = None) -> Path:
    """Return the skills root directory for *target*."""
    home = home or Path.home()
    override = (overrides or {}).get(target)
    if override:
        return _expand_home(override, home)

    match target:
        case "claude":
            return home / ".claude" / "skills"
        case "codex":
            codex_home = os.environ.get("CODEX_HOME", "").strip()
            base = _expand_home(codex_home, home) if codex_home else home / ".codex"
            return base / "skills"
        case "copilot":
            return home / ".copilot" / "skills"
        case "opencode":
            return home / ".opencode" / "skills"
        case _:
            raise validation_error(
                f"Unknown skill target {target!r}; expected one of: {', '.join(SKILL_TARGETS)}",
                target=target,
            )


def _has_marker(path: Path) -> bool:
    try:
        return MANAGED_MARKER in read_text(path)
    except FileNotFoundError:
        return False


def is_managed(skill_dir: Path) -> bool:
    return _has_marker(skill_dir / "SKILL.md") or _has_marker(skill_dir / "README.md")


def _write_skill_files(skill_dir: Path, skill_name: str, target: str) -> None:
    skill_dir.mkdir(parents=True, exist_ok=True)
    write_text(skill_dir / "SKILL.md", render_skill_markdown(skill_name))
    write_text(skill_dir / "README.md", render_readme_markdown(skill_name, target))


def install_skill(target: str, skill_dir: Path, skill_name: str, force: bool = False) -> SkillResult:
    """Install the managed skill into *skill_dir* unless an unmanaged one is there."""
    path = str(skill_dir)
    if not skill_dir.exists():
        _write_skill_files(skill_dir, skill_name, target)
        log.success(f"Installed '{skill_name}' for {target} at {skill_dir}")
        return SkillResult(target, path, INSTALLED, "installed new managed skill")

    if not skill_dir.is_dir():
        if not force:
            log.warn(f"{skill_dir} exists and is not a directory, skipping")
            return SkillResult(target, path, SKIPPED, "path exists as a non-directory and force is disabled")
        skill_dir.unlink()
        _write_skill_files(skill_dir, skill_name, target)
        return SkillResult(target, path, UPDATED, "replaced non-directory path with managed skill due to force")

    managed = is_managed(skill_dir)
    if not managed and not force:
        log.warn(f"Skill '{skill_name}' for {target} is not managed by tsq, skipping")
        return SkillResult(target, path, SKIPPED, "existing skill is not managed and force is disabled")

    _write_skill_files(skill_dir, skill_name, target)
    log.success(f"Updated '{skill_name}' for {target} at {skill_dir}")
    message = "updated managed skill" if managed else "overwrote non-managed skill due to force"
    return SkillResult(target, path, UPDATED, message)


def uninstall_skill(target: str, skill_dir: Path, force: bool = False) -> SkillResult:
    """Remove *skill_dir* if tsq manages it (or *force* is set)."""
    path = str(skill_dir)
    if not skill_dir.exists():
        return SkillResult(target, path, NOT_FOUND, "skill directory not found")

    if not skill_dir.is_dir():
        if not force:
            return SkillResult(target, path, SKIPPED, "path exists as a non-directory and force is disabled")
        skill_dir.unlink()
        return SkillResult(target, path, REMOVED, "removed non-directory path due to force")

    managed = is_managed(skill_dir)
    if not managed and not force:
        log.warn(f"Skill at {skill_dir} is not managed by tsq, skipping")
        return SkillResult(target, path, SKIPPED, "existing skill is not managed and force is disabled")

    shutil.rmtree(skill_dir)
    log.success(f"Removed skill for {target} at {skill_dir}")
    message = "removed managed skill" if managed else "removed non-managed skill due to force"
    return SkillResult(target, path, REMOVED, message)


def apply_skill_operation(
    action: str,
    targets: list[str] | tuple[str, ...] = SKILL_TARGETS,
    *,
    skill_name: str = DEFAULT_SKILL_NAME,
    force: bool = False,
    home: Path | None = None,
    overrides: dict[str, str] | None = None,
) -> SkillOperationSummary:
    """Install or uninstall the skill for every target in *targets*."""
    if action not in {"install", "uninstall"}:
        raise ValueError(f"Unsupported skill action: {action}")
    if not skill_name.strip() or any(sep in skill_name for sep in ("/", "\\")) or skill_name in {".", ".."}:
        raise validation_error(f"Invalid skill name {skill_name!r}", skill_name=skill_name)

    summary = SkillOperationSummary(action=action, skill_name=skill_name)
    for target in targets:
        skill_dir = skill_root(target, home, overrides) / skill_name
        if action == "install":
            summary.results.append(install_skill(target, skill_dir, skill_name, force))
        else:
            summary.results.append(uninstall_skill(target, skill_dir, force))
    return summary
