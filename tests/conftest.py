"""Shared pytest configuration: markers, ordering, and throwaway git repositories."""

from __future__ import annotations

import subprocess
from collections.abc import Callable
from pathlib import Path

import pytest

from gitstate.config import Settings
from gitstate.service import GitStateService

GitCall = Callable[..., str]


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "unit: fast isolated unit tests")
    config.addinivalue_line("markers", "integration: filesystem/subprocess integration tests")
    config.addinivalue_line("markers", "slow: expensive tests")


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    """Run fast unit tests first, integration tests second, slow tests last."""

    def sort_key(item: pytest.Item) -> tuple[int, str]:
        if item.get_closest_marker("slow"):
            return (2, item.nodeid)
        if item.get_closest_marker("integration"):
            return (1, item.nodeid)
        return (0, item.nodeid)

    items.sort(key=sort_key)


def _git(*args: str, cwd: Path) -> str:
    result = subprocess.run(
        ["git", *args],
        cwd=str(cwd),
        capture_output=True,
        text=True,
        check=True,
    )
    return result.stdout.strip()


def _configure_identity(repo: Path) -> None:
    _git("config", "user.name", "Test User", cwd=repo)
    _git("config", "user.email", "test@example.com", cwd=repo)
    _git("config", "commit.gpgsign", "false", cwd=repo)


@pytest.fixture()
def repo(tmp_path: Path) -> Path:
    """A git repository on ``main`` with one commit and a clean tree."""
    path = tmp_path / "repo"
    path.mkdir()
    _git("init", "-b", "main", cwd=path)
    _configure_identity(path)
    (path / "README.md").write_text("# Repo\n", encoding="utf-8")
    _git("add", "README.md", cwd=path)
    _git("commit", "-m", "initial", cwd=path)
    return path


@pytest.fixture()
def git(repo: Path) -> GitCall:
    """Run raw git commands inside the ``repo`` fixture."""

    def _call(*args: str) -> str:
        return _git(*args, cwd=repo)

    return _call


@pytest.fixture()
def bare_remote(tmp_path: Path, repo: Path) -> Path:
    """A bare repository registered as ``origin`` of ``repo``."""
    remote = tmp_path / "remote.git"
    _git("init", "--bare", str(remote), cwd=tmp_path)
    _git("remote", "add", "origin", str(remote), cwd=repo)
    _git("push", "-u", "origin", "main", cwd=repo)
    return remote


@pytest.fixture()
def settings(repo: Path) -> Settings:
    return Settings(repo_root=repo, pr_binary="gitstate-test-missing-gh")


@pytest.fixture()
def service(settings: Settings) -> GitStateService:
    return GitStateService(settings)
