"""Working-tree guard: switch branches without losing uncommitted work.

The checked-out branch is shared by everything in the process, so each
switch-away/switch-back unit runs under a per-repository lock.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from gitstate.errors import ExternalToolError
from gitstate.git_tools import GitRunner

logger = logging.getLogger(__name__)

STASH_MESSAGE = "gitstate-auto-stash"

_REPO_LOCKS_GUARD = threading.Lock()
_REPO_LOCKS: dict[str, threading.RLock] = {}


def repo_lock(repo: Path) -> threading.RLock:
    """Return the process-wide lock that owns *repo*'s working tree."""
    key = str(Path(repo).resolve())
    with _REPO_LOCKS_GUARD:
        lock = _REPO_LOCKS.get(key)
        if lock is None:
            lock = threading.RLock()
            _REPO_LOCKS[key] = lock
    return lock


@dataclass
class GuardState:
    """What the guard did on entry; undone on exit."""

    previous: str
    target: str
    switched: bool = False
    stashed: bool = False


class WorkingTreeGuard:
    """Scoped checkout of a branch with stash protection and guaranteed restore."""

    def __init__(self, git: GitRunner) -> None:
        self.git = git

    @contextmanager
    def checked_out(self, branch: str, *, keep_changes: bool = False) -> Iterator[GuardState]:
        """Check out *branch* for the duration of the block.

        A dirty tree is stashed (untracked files included) before switching.
        With *keep_changes*, a dirty tree is left in place when *branch* is
        already checked out. On exit the previous branch is restored and the
        stash popped, whether or not the block raised.
        """
        with repo_lock(self.git.repo):
            state = GuardState(previous=self.git.current_ref(), target=branch)
            already_there = state.previous == branch
            try:
                if not (already_there and keep_changes) and not self.git.is_clean():
                    state.stashed = self._stash()
                if not already_there:
                    self.git("checkout", branch)
                    state.switched = True
                yield state
            finally:
                self._restore(state)

    def _stash(self) -> bool:
        out = self.git("stash", "push", "--include-untracked", "-m", STASH_MESSAGE)
        if not out or "No local changes" in out:
            return False
        logger.info("Stashed local changes before switching branches")
        return True

    def _restore(self, state: GuardState) -> None:
        if state.switched:
            try:
                self.git("checkout", state.previous)
            except ExternalToolError as exc:
                logger.error("Could not switch back to %s: %s", state.previous, exc)
        if state.stashed:
            try:
                self.git("stash", "pop")
            except ExternalToolError as exc:
                logger.error("Could not restore stashed changes (kept in `git stash list`): %s", exc)
