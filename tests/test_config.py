"""Tests for tasque.config — store discovery, actor and lock timeout resolution."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import patch

import pytest

from tasque.config import DEFAULT_LOCK_TIMEOUT, Config, StorePaths, find_tasque_root, resolve_actor


def test_store_paths_layout(tmp_path):
    """Everything lives under .tasque/."""
    paths = StorePaths(tmp_path)
    assert paths.tasque_dir == tmp_path / ".tasque"
    assert paths.state_file == tmp_path / ".tasque" / "state.json"
    assert paths.lock_file == tmp_path / ".tasque" / ".lock"


def test_find_root_walks_up(tmp_path):
    """The store is found from a nested directory."""
    (tmp_path / ".tasque").mkdir()
    nested = tmp_path / "a" / "b"
    nested.mkdir(parents=True)
    assert find_tasque_root(nested) == tmp_path.resolve()


def test_find_root_none_without_store(tmp_path):
    """No .tasque/ anywhere up the tree gives None."""
    nested = tmp_path / "x"
    nested.mkdir()
    with patch.object(Path, "is_dir", return_value=False):
        assert find_tasque_root(nested) is None


def test_config_defaults_to_cwd_without_store(tmp_path, monkeypatch):
    """Without a store the root is the working directory."""
    monkeypatch.chdir(tmp_path)
    with patch("tasque.config.find_tasque_root", return_value=None):
        cfg = Config()
    assert cfg.repo_root == tmp_path
    assert cfg.paths.root == tmp_path


def test_actor_from_env(tmp_path, monkeypatch):
    """TSQ_ACTOR wins over everything else."""
    monkeypatch.setenv("TSQ_ACTOR", "ana")
    assert resolve_actor(tmp_path) == "ana"


def test_actor_falls_back_to_git_then_os_user(tmp_path, monkeypatch):
    """git user.name comes before the OS user."""
    monkeypatch.delenv("TSQ_ACTOR", raising=False)
    with patch("tasque.config._git_user_name", return_value="Git Name"):
        assert resolve_actor(tmp_path) == "Git Name"

    monkeypatch.delenv("USERNAME", raising=False)
    monkeypatch.setenv("USER", "osuser")
    with patch("tasque.config._git_user_name", return_value=""):
        assert resolve_actor(tmp_path) == "osuser"


def test_actor_unknown_when_nothing_available(tmp_path, monkeypatch):
    """The last resort actor is 'unknown'."""
    for var in ("TSQ_ACTOR", "USERNAME", "USER"):
        monkeypatch.delenv(var, raising=False)
    with patch("tasque.config._git_user_name", return_value=""):
        assert resolve_actor(tmp_path) == "unknown"


def test_lock_timeout_default(tmp_path):
    """Lock timeout defaults to three seconds."""
    assert Config(repo_root=tmp_path).lock_timeout == DEFAULT_LOCK_TIMEOUT


def test_lock_timeout_from_env(tmp_path, monkeypatch):
    """TSQ_LOCK_TIMEOUT sets the timeout."""
    monkeypatch.setenv("TSQ_LOCK_TIMEOUT", "0.5")
    assert Config(repo_root=tmp_path).lock_timeout == 0.5


def test_lock_timeout_invalid_env_uses_default(tmp_path, monkeypatch):
    """A non-numeric TSQ_LOCK_TIMEOUT falls back to the default."""
    monkeypatch.setenv("TSQ_LOCK_TIMEOUT", "soon")
    assert Config(repo_root=tmp_path).lock_timeout == DEFAULT_LOCK_TIMEOUT


def test_explicit_actor_is_kept(tmp_path):
    """An actor passed in is not resolved again."""
    assert Config(repo_root=tmp_path, actor="bob").actor == "bob"


def test_paths_without_root_raises(tmp_path):
    """paths on a config whose root was cleared raises ValueError."""
    cfg = Config(repo_root=tmp_path, actor="bob")
    cfg.repo_root = None
    with pytest.raises(ValueError):
        _ = cfg.paths
