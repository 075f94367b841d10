"""Read-only queries over managed branches.

Nothing here switches branches, so no working-tree guard is needed. Results
may be stale relative to a mutation running concurrently.
"""

from __future__ import annotations

import logging

from gitstate.config import Settings
from gitstate.git_tools import GitRunner
from gitstate.naming import MANAGED_PREFIXES, decode_branch_name, parse_stage_tag
from gitstate.pipeline.stages import completed_stages, next_stage
from gitstate.schemas import Branch, Commit, MainLineCommit

logger = logging.getLogger(__name__)

# git log fields are separated by ASCII unit separators; ref formats use a tab.
_LOG_SEP = "\x1f"
_COMMIT_FORMAT = "%H%x1f%s%x1f%aI%x1f%an"
_MAIN_LINE_FORMAT = "%H%x1f%h%x1f%s%x1f%aI%x1f%an"
_BRANCH_FORMAT = "%(refname:short)%09%(upstream:short)"

DEFAULT_MAIN_LINE_LIMIT = 30
MAX_MAIN_LINE_LIMIT = 100


class BranchRepository:
    """Reconstructs pipeline state for managed branches from git history."""

    def __init__(self, settings: Settings, git: GitRunner | None = None) -> None:
        self.settings = settings
        self.git = git or GitRunner(settings.repo_root, settings.command_timeout)

    def current_branch(self) -> str:
        return self.git.current_branch()

    def _list_refs(self, prefix: str) -> list[tuple[str, str]]:
        """Return ``(branch, upstream)`` pairs for local branches under *prefix*."""
        out = self.git(
            "branch", "--list", f"{prefix}/*", f"--format={_BRANCH_FORMAT}", allow_failure=True
        )
        refs: list[tuple[str, str]] = []
        for line in out.splitlines():
            name, _, upstream = line.partition("\t")
            name = name.strip()
            if name:
                refs.append((name, upstream.strip()))
        return refs

    def commits_for_branch(self, branch: str) -> list[Commit]:
        """Return commits on *branch* since the base branch, oldest first."""
        out = self.git(
            "log",
            f"{self.settings.base_branch}..{branch}",
            f"--format={_COMMIT_FORMAT}",
            "--reverse",
            allow_failure=True,
        )
        commits: list[Commit] = []
        for line in out.splitlines():
            parts = line.split(_LOG_SEP, 3)
            if len(parts) < 4:
                continue
            sha, message, timestamp, author = parts
            commits.append(
                Commit(
                    hash=sha,
                    message=message,
                    stage=parse_stage_tag(message),
                    timestamp=timestamp,
                    author=author,
                )
            )
        return commits

    def list_branches(self) -> list[Branch]:
        """Return every managed branch, sorted by numeric id."""
        current = self.current_branch()
        branches: list[Branch] = []
        for prefix in MANAGED_PREFIXES:
            for name, upstream in self._list_refs(prefix):
                meta = decode_branch_name(name)
                if meta is None:
                    logger.debug("Skipping unmanaged branch %s", name)
                    continue
                commits = self.commits_for_branch(name)
                completed = completed_stages(commits)
                branches.append(
                    Branch(
                        name=name,
                        display_name=meta.slug,
                        meta=meta,
                        commits=commits,
                        completed_stages=completed,
                        next_stage=next_stage(completed),
                        is_current_branch=name == current,
                        has_remote=bool(upstream),
                    )
                )
        # Stable sort keeps prefix order for equal ids.
        branches.sort(key=lambda branch: branch.meta.id)
        return branches

    def next_id(self) -> int:
        """Return one more than the highest id used under any managed prefix."""
        highest = 0
        for prefix in MANAGED_PREFIXES:
            for name, _ in self._list_refs(prefix):
                meta = decode_branch_name(name)
                if meta is not None and meta.id > highest:
                    highest = meta.id
        return highest + 1

    def branch_exists(self, name: str) -> bool:
        return self.git.succeeds("show-ref", "--verify", "--quiet", f"refs/heads/{name}")

    def list_main_line_commits(self, limit: int = DEFAULT_MAIN_LINE_LIMIT) -> list[MainLineCommit]:
        """Return the newest commits on the base branch, at most 100."""
        limit = max(1, min(int(limit), MAX_MAIN_LINE_LIMIT))
        out = self.git(
            "log",
            self.settings.base_branch,
            f"--max-count={limit}",
            f"--format={_MAIN_LINE_FORMAT}",
        )
        commits: list[MainLineCommit] = []
        for line in out.splitlines():
            parts = line.split(_LOG_SEP, 4)
            if len(parts) < 5:
                continue
            sha, short_sha, message, timestamp, author = parts
            commits.append(
                MainLineCommit(
                    hash=sha,
                    short_hash=short_sha,
                    message=message,
                    timestamp=timestamp,
                    author=author,
                )
            )
        return commits
