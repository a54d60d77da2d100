"""Configuration defaults, env vars, and runtime options for tasque."""

from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path


VERSION = "0.4.0"

SCHEMA_VERSION = 1

STORE_DIRNAME = ".tasque"

DEFAULT_LOCK_TIMEOUT = 3.0


@dataclass(frozen=True)
class StorePaths:
    """Locations of everything tasque keeps under ``.tasque/``."""

    root: Path

    @property
    def tasque_dir(self) -> Path:
        return self.root / STORE_DIRNAME

    @property
    def state_file(self) -> Path:
        return self.tasque_dir / "state.json"

    @property
    def lock_file(self) -> Path:
        return self.tasque_dir / ".lock"

    @property
    def gitignore_file(self) -> Path:
        return self.tasque_dir / ".gitignore"


@dataclass
class Config:
    """Runtime configuration resolved from flags and environment."""

    repo_root: Path | None = None
    actor: str = ""
    lock_timeout: float = 0.0

    # Output
    json_output: bool = False
    exact_id: bool = False
    verbose: bool = False

    def __post_init__(self) -> None:
        if self.repo_root is None:
            self.repo_root = find_tasque_root() or Path.cwd()
        if not self.actor:
            self.actor = resolve_actor(self.repo_root)
        if not self.lock_timeout:
            raw = os.environ.get("TSQ_LOCK_TIMEOUT", "").strip()
            try:
                self.lock_timeout = float(raw) if raw else DEFAULT_LOCK_TIMEOUT
            except ValueError:
                self.lock_timeout = DEFAULT_LOCK_TIMEOUT

    @property
    def paths(self) -> StorePaths:
        if self.repo_root is None:
            raise ValueError("Config.repo_root is not set")
        return StorePaths(self.repo_root)


def find_tasque_root(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default cwd) to the nearest dir holding ``.tasque/``."""
    current = (start or Path.cwd()).resolve()
    for candidate in (current, *current.parents):
        if (candidate / STORE_DIRNAME).is_dir():
            return candidate
    return None


def _git_user_name(repo_root: Path) -> str:
    try:
        result = subprocess.run(
            ["git", "config", "user.name"],
            cwd=repo_root,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout.strip()
    except (subprocess.CalledProcessError, FileNotFoundError, NotADirectoryError):
        return ""


def resolve_actor(repo_root: Path) -> str:
    """Return the identity recorded as default assignee for claims."""
    from_env = os.environ.get("TSQ_ACTOR", "").strip()
    if from_env:
        return from_env

    git_name = _git_user_name(repo_root)
    if git_name:
        return git_name

    os_user = (os.environ.get("USERNAME") or os.environ.get("USER") or "").strip()
    if os_user:
        return os_user

    return "unknown"
