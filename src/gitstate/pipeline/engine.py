"""Write path: branch creation and stage-gated commits."""

from __future__ import annotations

import datetime as dt
import logging

from gitstate.config import Settings
from gitstate.errors import (
    BranchExists,
    ExternalToolError,
    MissingMessage,
    ReservedStageTag,
    StageOutOfOrder,
    UnmanagedBranch,
)
from gitstate.git_tools import GitRunner
from gitstate.naming import (
    decode_branch_name,
    encode_branch_name,
    format_stage_message,
    normalize_commit_message,
    parse_stage_tag,
    prototype_dir_name,
    slugify,
)
from gitstate.pipeline.scaffold import run_side_effect
from gitstate.pipeline.stages import completed_stages, next_stage
from gitstate.repository import BranchRepository
from gitstate.schemas import Branch, BranchMetadata, Commit, PipelineStage, PrototypeType
from gitstate.worktree import WorkingTreeGuard, repo_lock

logger = logging.getLogger(__name__)


class PipelineEngine:
    """Creates prototype branches and advances them one stage at a time."""

    def __init__(
        self,
        settings: Settings,
        repository: BranchRepository | None = None,
        git: GitRunner | None = None,
    ) -> None:
        self.settings = settings
        self.git = git or GitRunner(settings.repo_root, settings.command_timeout)
        self.repository = repository or BranchRepository(settings, self.git)
        self.guard = WorkingTreeGuard(self.git)

    # ------------------------------------------------------------------
    # Branch creation
    # ------------------------------------------------------------------

    def create_branch(self, name: str, kind: PrototypeType | str = PrototypeType.PROTOTYPE) -> Branch:
        """Create ``{prefix}/{NNN}-{slug}`` from the base branch without checking it out."""
        kind = PrototypeType(kind)
        slug = slugify(name)
        # Validate before taking the lock so bad input never touches git.
        encode_branch_name(kind, 1, slug)

        # Held across allocation and creation so two in-process requests cannot
        # both claim the same id.
        with repo_lock(self.git.repo):
            branch_id = self.repository.next_id()
            branch_name = encode_branch_name(kind, branch_id, slug)
            if self.repository.branch_exists(branch_name):
                raise BranchExists(branch_name)
            self.git("branch", branch_name, self.settings.base_branch)

        logger.info("Created branch %s from %s", branch_name, self.settings.base_branch)
        return Branch(
            name=branch_name,
            display_name=slug,
            meta=BranchMetadata(type=kind, id=branch_id, slug=slug),
        )

    # ------------------------------------------------------------------
    # Stage commits
    # ------------------------------------------------------------------

    def create_commit(
        self,
        branch: str,
        stage: PipelineStage | str,
        *,
        message: str | None = None,
        spec_content: str | None = None,
    ) -> Commit:
        """Commit *stage* on *branch* if, and only if, it is the next required stage.

        Runs the stage's scaffolding, stages the prototype directory (or the
        whole tree for ``generic``) and commits. The previously checked-out
        branch and any stashed changes are restored on every exit path.
        """
        stage = PipelineStage(stage)
        meta = decode_branch_name(branch)
        if meta is None:
            raise UnmanagedBranch(branch)
        if stage is PipelineStage.GENERIC:
            message = self._check_generic_message(message)

        prototype_name = prototype_dir_name(meta)
        proto_rel = f"{self.settings.prototypes_dir}/{prototype_name}"

        with self.guard.checked_out(branch, keep_changes=stage is PipelineStage.GENERIC):
            required = next_stage(completed_stages(self.repository.commits_for_branch(branch)))
            if stage is not required:
                raise StageOutOfOrder(stage, required)

            commit_message = format_stage_message(stage, prototype_name, message)
            try:
                run_side_effect(
                    stage,
                    self.settings.prototypes_path / prototype_name,
                    spec_content=spec_content,
                )
                if stage is PipelineStage.GENERIC:
                    self.git("add", "-A")
                else:
                    self.git("add", "--", proto_rel)
                self.git("commit", "--allow-empty", "--cleanup=verbatim", "-m", commit_message)
            except (ExternalToolError, OSError):
                if stage is not PipelineStage.GENERIC:
                    self._discard_prototype_changes(proto_rel)
                raise

            sha = self.git.head_sha()
            subject = self.git("log", "-1", "--format=%s", sha)
            author = self.git.user_name()

        logger.info("Committed %s on %s (%s)", stage.value, branch, sha[:7])
        return Commit(
            hash=sha,
            message=subject,
            stage=stage,
            timestamp=dt.datetime.now(dt.timezone.utc).isoformat(),
            author=author,
        )

    @staticmethod
    def _check_generic_message(message: str | None) -> str:
        """Return *message* as git will store it, rejecting blank or stage-tagged text."""
        message = normalize_commit_message(message or "")
        if not message:
            raise MissingMessage("Commit message is required for generic stage")
        tagged = parse_stage_tag(message.lstrip())
        if tagged is not None and tagged is not PipelineStage.GENERIC:
            raise ReservedStageTag(
                f"Generic commit messages may not start with the '[{tagged.value}]' stage tag"
            )
        return message

    def _discard_prototype_changes(self, proto_rel: str) -> None:
        """Drop uncommitted scaffold output so it cannot follow us to another branch."""
        logger.warning("Discarding uncommitted changes under %s after a failed stage commit", proto_rel)
        self.git("reset", "-q", "--", proto_rel, allow_failure=True)
        self.git("checkout", "--", proto_rel, allow_failure=True)
        self.git("clean", "-fdq", "--", proto_rel, allow_failure=True)
