"""Service facade exposing every branch and stage operation from one object."""

from __future__ import annotations

from gitstate.config import Settings
from gitstate.git_tools import GitRunner
from gitstate.pipeline.engine import PipelineEngine
from gitstate.remote import RemoteOperations
from gitstate.repository import DEFAULT_MAIN_LINE_LIMIT, BranchRepository
from gitstate.schemas import (
    Branch,
    Commit,
    MainLineCommit,
    PipelineStage,
    PrototypeType,
    PullRequestResult,
    RebaseResult,
)


class GitStateService:
    """Entry point for a request layer or the CLI.

    Mutating calls serialize on the repository lock held by the working-tree
    guard; listings run without it.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings.from_env()
        self.git = GitRunner(self.settings.repo_root, self.settings.command_timeout)
        self.repository = BranchRepository(self.settings, self.git)
        self.engine = PipelineEngine(self.settings, self.repository, self.git)
        self.remote = RemoteOperations(self.settings, self.git)

    def list_branches(self) -> list[Branch]:
        return self.repository.list_branches()

    def create_branch(self, name: str, kind: PrototypeType | str = PrototypeType.PROTOTYPE) -> Branch:
        return self.engine.create_branch(name, kind)

    def create_commit(
        self,
        branch: str,
        stage: PipelineStage | str,
        *,
        message: str | None = None,
        spec_content: str | None = None,
    ) -> Commit:
        return self.engine.create_commit(branch, stage, message=message, spec_content=spec_content)

    def push(self, branch: str) -> str:
        return self.remote.push(branch)

    def create_pull_request(self, branch: str, title: str, body: str | None = None) -> PullRequestResult:
        return self.remote.create_pull_request(branch, title, body)

    def sync(self, branch: str) -> str:
        return self.remote.sync(branch)

    def rebase(self, branch: str, onto: str) -> RebaseResult:
        return self.remote.rebase(branch, onto)

    def list_main_line_commits(self, limit: int = DEFAULT_MAIN_LINE_LIMIT) -> list[MainLineCommit]:
        return self.repository.list_main_line_commits(limit)
