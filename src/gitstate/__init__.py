"""gitstate - git branches as prototype state machines."""

from importlib.metadata import PackageNotFoundError, version

from gitstate.config import Settings
from gitstate.errors import (
    BranchExists,
    ExternalToolError,
    GitStateError,
    InvalidName,
    MissingMessage,
    RebaseConflict,
    ReservedStageTag,
    StageOutOfOrder,
    UnmanagedBranch,
)
from gitstate.schemas import Branch, Commit, MainLineCommit, PipelineStage, PrototypeType
from gitstate.service import GitStateService

__all__ = [
    "Branch",
    "BranchExists",
    "Commit",
    "ExternalToolError",
    "GitStateError",
    "GitStateService",
    "InvalidName",
    "MainLineCommit",
    "MissingMessage",
    "PipelineStage",
    "PrototypeType",
    "RebaseConflict",
    "ReservedStageTag",
    "Settings",
    "StageOutOfOrder",
    "UnmanagedBranch",
]

try:
    __version__ = version("gitstate")
except PackageNotFoundError:
    __version__ = "0.0.0"
