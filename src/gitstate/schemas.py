"""Pydantic models for branches, stages, and commits."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

# ---------------------------------------------------------------------------
# Branch types
# ---------------------------------------------------------------------------


class PrototypeType(str, Enum):
    """Kinds of managed branches, each with its own name prefix."""

    PROTOTYPE = "PRO"
    INTEGRATION = "INT"
    COMPLETION = "COM"

    @property
    def prefix(self) -> str:
        return TYPE_PREFIXES[self]

    @property
    def label(self) -> str:
        return TYPE_LABELS[self]


TYPE_PREFIXES: dict[PrototypeType, str] = {
    PrototypeType.PROTOTYPE: "prototype",
    PrototypeType.INTEGRATION: "integration",
    PrototypeType.COMPLETION: "completion",
}

TYPE_LABELS: dict[PrototypeType, str] = {
    PrototypeType.PROTOTYPE: "Prototype",
    PrototypeType.INTEGRATION: "Integration",
    PrototypeType.COMPLETION: "Completion",
}

PREFIX_TO_TYPE: dict[str, PrototypeType] = {prefix: kind for kind, prefix in TYPE_PREFIXES.items()}


# ---------------------------------------------------------------------------
# Pipeline stages
# ---------------------------------------------------------------------------


class PipelineStage(str, Enum):
    """The stages of the prototype pipeline, in the order they must be committed."""

    INIT_FOLDER = "init-folder"
    CLONE_REFERENCE = "clone-reference"
    INCLUDE_SPEC = "include-spec"
    IMPLEMENTATION_DONE = "implementation-done"
    GENERIC = "generic"

    @property
    def label(self) -> str:
        return STAGE_LABELS[self]

    @property
    def description(self) -> str:
        return STAGE_DESCRIPTIONS[self]


STAGE_LABELS: dict[PipelineStage, str] = {
    PipelineStage.INIT_FOLDER: "Init Folder",
    PipelineStage.CLONE_REFERENCE: "Clone Reference",
    PipelineStage.INCLUDE_SPEC: "Include Spec",
    PipelineStage.IMPLEMENTATION_DONE: "Impl Done",
    PipelineStage.GENERIC: "Custom Commit",
}

STAGE_DESCRIPTIONS: dict[PipelineStage, str] = {
    PipelineStage.INIT_FOLDER: "Create empty folder with blank page.tsx",
    PipelineStage.CLONE_REFERENCE: "Scaffold reference template into prototype folder",
    PipelineStage.INCLUDE_SPEC: "Add spec.md with prototype instructions",
    PipelineStage.IMPLEMENTATION_DONE: "Mark implementation as complete",
    PipelineStage.GENERIC: "Free-form commit (any message)",
}


# ---------------------------------------------------------------------------
# Repository projections
# ---------------------------------------------------------------------------


class BranchMetadata(BaseModel):
    """Fields encoded in a managed branch name."""

    type: PrototypeType
    id: int = Field(ge=1)
    slug: str


class Commit(BaseModel):
    """A commit on a managed branch, classified by its stage tag."""

    hash: str
    message: str
    stage: PipelineStage | None = None
    timestamp: str = ""
    author: str = ""


class Branch(BaseModel):
    """A managed branch with its replayed pipeline state."""

    name: str
    display_name: str
    meta: BranchMetadata
    commits: list[Commit] = Field(default_factory=list)
    completed_stages: list[PipelineStage] = Field(default_factory=list)
    next_stage: PipelineStage = PipelineStage.INIT_FOLDER
    is_current_branch: bool = False
    has_remote: bool = False


class MainLineCommit(BaseModel):
    """A commit on the base branch, offered as a rebase target."""

    hash: str
    short_hash: str
    message: str
    timestamp: str = ""
    author: str = ""


class PullRequestResult(BaseModel):
    """Outcome of a pull-request request; ``stubbed`` marks a non-authoritative deep link."""

    url: str
    stubbed: bool = False


class RebaseResult(BaseModel):
    """Outcome of a successful rebase."""

    branch: str
    onto: str
    head: str
    message: str = ""
