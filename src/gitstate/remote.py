"""Push, sync, rebase, and pull-request delegation."""

from __future__ import annotations

import logging
import os
import re
import shutil
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from gitstate.config import Settings
from gitstate.errors import ExternalToolError, RebaseConflict
from gitstate.git_tools import GitRunner, command_succeeds, run_command
from gitstate.schemas import PullRequestResult, RebaseResult
from gitstate.worktree import WorkingTreeGuard

logger = logging.getLogger(__name__)

PLACEHOLDER_WEB_URL = "https://github.com/your-org/your-repo"
_SCP_REMOTE_RE = re.compile(r"^[\w.-]+@(?P<host>[^:]+):(?P<path>.+)$")
# Characters encodeURIComponent leaves alone.
_URI_COMPONENT_SAFE = "-_.!~*'()"


def binary_exists(binary: str) -> bool:
    """Return ``True`` when an executable exists for *binary*."""
    binary = os.path.expandvars(os.path.expanduser(str(binary or "").strip()))
    if not binary:
        return False
    try:
        candidate = Path(binary)
        if candidate.is_file():
            return os.access(candidate, os.X_OK)
    except OSError:
        pass
    return shutil.which(binary) is not None


def remote_web_url(remote_url: str) -> str | None:
    """Turn a git remote URL (ssh, scp-style, or https) into a browsable https URL."""
    url = str(remote_url or "").strip()
    if not url:
        return None
    match = _SCP_REMOTE_RE.match(url)
    if match:
        url = f"https://{match.group('host')}/{match.group('path')}"
    elif url.startswith("ssh://"):
        rest = url[len("ssh://") :]
        host, _, path = rest.partition("/")
        url = f"https://{host.rpartition('@')[2].split(':')[0]}/{path}"
    elif url.startswith(("http://", "https://")):
        scheme, _, rest = url.partition("://")
        url = f"{scheme}://{rest.rpartition('@')[2]}"
    else:
        return None
    url = url.rstrip("/")
    if url.endswith(".git"):
        url = url[: -len(".git")]
    return url


# ---------------------------------------------------------------------------
# Pull-request capability
# ---------------------------------------------------------------------------


class PullRequestCapability(Protocol):
    def create(self, branch: str, title: str, body: str | None) -> PullRequestResult: ...


class IntegratedPullRequests:
    """Creates real pull requests through the ``gh`` CLI."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def create(self, branch: str, title: str, body: str | None) -> PullRequestResult:
        url = run_command(
            [
                self.settings.pr_binary,
                "pr",
                "create",
                "--base",
                self.settings.base_branch,
                "--head",
                branch,
                "--title",
                title,
                "--body",
                body or "",
            ],
            cwd=self.settings.repo_root,
            timeout=self.settings.command_timeout,
        )
        logger.info("Opened pull request for %s: %s", branch, url)
        return PullRequestResult(url=url, stubbed=False)


class StubPullRequests:
    """Returns a compare-page deep link instead of creating a pull request."""

    def __init__(self, settings: Settings, web_url: str) -> None:
        self.settings = settings
        self.web_url = web_url.rstrip("/")

    def create(self, branch: str, title: str, body: str | None) -> PullRequestResult:
        query = f"expand=1&title={quote(title, safe=_URI_COMPONENT_SAFE)}"
        if body:
            query += f"&body={quote(body, safe=_URI_COMPONENT_SAFE)}"
        base = quote(self.settings.base_branch, safe="/")
        head = quote(branch, safe="/")
        url = f"{self.web_url}/compare/{base}...{head}?{query}"
        return PullRequestResult(url=url, stubbed=True)


# ---------------------------------------------------------------------------
# Remote operations
# ---------------------------------------------------------------------------


class RemoteOperations:
    """Talks to the configured remote and rewrites branch history safely."""

    def __init__(self, settings: Settings, git: GitRunner | None = None) -> None:
        self.settings = settings
        self.git = git or GitRunner(settings.repo_root, settings.command_timeout)
        self.guard = WorkingTreeGuard(self.git)

    def push(self, branch: str) -> str:
        """Push *branch* and set its upstream; failures surface unchanged."""
        out = self.git("push", "-u", self.settings.remote, branch)
        logger.info("Pushed %s to %s", branch, self.settings.remote)
        return out

    def sync(self, branch: str) -> str:
        """Pull *branch* from the remote; a missing remote yields empty output."""
        with self.guard.checked_out(branch):
            return self.git("pull", self.settings.remote, branch, allow_failure=True)

    def rebase(self, branch: str, onto: str) -> RebaseResult:
        """Rebase *branch* onto commit *onto*; on conflict, abort and leave it untouched."""
        target = self.git.resolve_commit(onto)
        if target is None:
            raise ExternalToolError(f"git rev-parse {onto}", f"'{onto}' is not a known commit")

        with self.guard.checked_out(branch):
            try:
                self.git("rebase", target)
            except ExternalToolError:
                if not self.git.rebase_in_progress():
                    raise
                self.git("rebase", "--abort", allow_failure=True)
                logger.warning("Rebase of %s onto %s conflicted; aborted", branch, target[:7])
                raise RebaseConflict(branch, target) from None
            head = self.git.head_sha()

        logger.info("Rebased %s onto %s", branch, target[:7])
        return RebaseResult(
            branch=branch,
            onto=target,
            head=head,
            message=f"Successfully rebased '{branch}' onto {target[:7]}",
        )

    # -- Pull requests --------------------------------------------------

    def pull_request_capability(self) -> PullRequestCapability:
        """Probe for an authenticated ``gh`` and pick the matching capability."""
        binary = self.settings.pr_binary
        if binary_exists(binary) and command_succeeds(
            [binary, "auth", "status"],
            cwd=self.settings.repo_root,
            timeout=self.settings.command_timeout,
        ):
            return IntegratedPullRequests(self.settings)
        logger.info("%s unavailable or unauthenticated; pull requests will be stubbed", binary)
        return StubPullRequests(self.settings, self._web_url())

    def create_pull_request(self, branch: str, title: str, body: str | None = None) -> PullRequestResult:
        """Open a pull request, degrading to a stubbed deep link when ``gh`` cannot."""
        capability = self.pull_request_capability()
        try:
            return capability.create(branch, title, body)
        except ExternalToolError as exc:
            logger.warning("Pull request creation failed, returning stub link: %s", exc)
            return StubPullRequests(self.settings, self._web_url()).create(branch, title, body)

    def _web_url(self) -> str:
        if self.settings.remote_web_url:
            return self.settings.remote_web_url
        raw = self.git("remote", "get-url", self.settings.remote, allow_failure=True)
        return remote_web_url(raw) or PLACEHOLDER_WEB_URL
