"""Subprocess runner for git and other external tools.

Every side-effecting call in gitstate goes through :func:`run_command`, so
timeout and failure policy are applied in one place.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path

from gitstate.errors import ExternalToolError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30


def _subprocess_isolation_kwargs() -> dict[str, object]:
    """Return kwargs that prevent child console events from reaching the parent on Windows."""
    if os.name != "nt":
        return {}
    new_pg = int(getattr(subprocess, "CREATE_NEW_PROCESS_GROUP", 0))
    no_win = int(getattr(subprocess, "CREATE_NO_WINDOW", 0))
    flags = new_pg | no_win
    return {"creationflags": flags} if flags else {}


def _run(
    cmd: Sequence[str],
    *,
    cwd: Path,
    timeout: int,
) -> subprocess.CompletedProcess[str]:
    """Run *cmd*, folding timeouts and missing executables into a failed result."""
    logger.debug("%s (cwd=%s)", " ".join(cmd), cwd)
    try:
        return subprocess.run(
            list(cmd),
            cwd=cwd,
            capture_output=True,
            text=True,
            encoding="utf-8",
            errors="replace",
            timeout=timeout,
            **_subprocess_isolation_kwargs(),
        )
    except subprocess.TimeoutExpired:
        return subprocess.CompletedProcess(list(cmd), -1, "", f"timed out after {timeout}s")
    except OSError as exc:
        return subprocess.CompletedProcess(list(cmd), -1, "", str(exc))


def run_command(
    cmd: Sequence[str],
    *,
    cwd: str | Path,
    allow_failure: bool = False,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
) -> str:
    """Run an external command and return its trimmed stdout.

    A non-zero exit returns ``""`` when *allow_failure* is set and raises
    :class:`ExternalToolError` carrying the tool's stderr otherwise.
    """
    result = _run(cmd, cwd=Path(cwd), timeout=timeout)
    if result.returncode != 0:
        diagnostic = (result.stderr or result.stdout or "").strip()
        if allow_failure:
            logger.debug("tolerated failure of %s: %s", " ".join(cmd), diagnostic)
            return ""
        raise ExternalToolError(" ".join(cmd), diagnostic, result.returncode)
    return (result.stdout or "").strip()


def command_succeeds(
    cmd: Sequence[str],
    *,
    cwd: str | Path,
    timeout: int = DEFAULT_TIMEOUT_SECONDS,
) -> bool:
    """Return True when *cmd* exits zero."""
    return _run(cmd, cwd=Path(cwd), timeout=timeout).returncode == 0


@dataclass(frozen=True, slots=True)
class GitRunner:
    """Runs git commands against one repository root."""

    repo: Path
    timeout: int = DEFAULT_TIMEOUT_SECONDS

    def __call__(self, *args: str, allow_failure: bool = False) -> str:
        return run_command(
            ["git", *args],
            cwd=self.repo,
            allow_failure=allow_failure,
            timeout=self.timeout,
        )

    def succeeds(self, *args: str) -> bool:
        return command_succeeds(["git", *args], cwd=self.repo, timeout=self.timeout)

    # -- Query helpers -------------------------------------------------------

    def current_branch(self) -> str:
        """Return the checked-out branch, or ``HEAD`` when detached."""
        return self("rev-parse", "--abbrev-ref", "HEAD")

    def current_ref(self) -> str:
        """Return a ref that checks out the current position: branch name or detached SHA."""
        branch = self.current_branch()
        if branch == "HEAD":
            return self.head_sha()
        return branch

    def head_sha(self, ref: str = "HEAD") -> str:
        return self("rev-parse", ref)

    def status_porcelain(self) -> str:
        return self("status", "--porcelain")

    def is_clean(self) -> bool:
        return self.status_porcelain() == ""

    def user_name(self) -> str:
        """Return ``user.name`` from git config, or ``unknown``."""
        return self("config", "user.name", allow_failure=True) or "unknown"

    def resolve_commit(self, ref: str) -> str | None:
        """Return the full SHA *ref* points at, or ``None`` when it is not a commit."""
        sha = self("rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}", allow_failure=True)
        return sha or None

    def rebase_in_progress(self) -> bool:
        """Return True when git has a stopped rebase waiting for resolution."""
        for marker in ("rebase-merge", "rebase-apply"):
            raw = self("rev-parse", "--git-path", marker, allow_failure=True)
            if not raw:
                continue
            path = Path(raw)
            if not path.is_absolute():
                path = self.repo / path
            if path.exists():
                return True
        return False
