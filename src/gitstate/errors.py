"""Typed error taxonomy for branch and stage operations.

Every class carries an ``http_status`` hint so a request layer can map an
exception to a response category without inspecting the message text:
400 for invalid input, 409 for user-actionable conflicts, 500 for
infrastructure failures.
"""

from __future__ import annotations

from typing import ClassVar


class GitStateError(RuntimeError):
    """Base class for every error raised by gitstate."""

    http_status: ClassVar[int] = 500


class InvalidName(GitStateError, ValueError):
    """Raised when a requested name normalizes to an empty slug."""

    http_status = 400


class UnmanagedBranch(GitStateError):
    """Raised when a branch does not follow the ``{prefix}/{NNN}-{slug}`` convention."""

    http_status = 400

    def __init__(self, branch: str) -> None:
        super().__init__(f"Branch '{branch}' does not match managed naming convention")
        self.branch = branch


class StageOutOfOrder(GitStateError):
    """Raised when a stage other than the next required one is requested."""

    http_status = 409

    def __init__(self, requested: object, required: object) -> None:
        requested_value = getattr(requested, "value", requested)
        required_value = getattr(required, "value", required)
        super().__init__(
            f"Stage '{requested_value}' not allowed. Next required stage: '{required_value}'. "
            "Complete previous stages first."
        )
        self.requested = requested
        self.required = required


class MissingMessage(GitStateError, ValueError):
    """Raised when a free-form commit is requested without a message."""

    http_status = 400


class ReservedStageTag(GitStateError, ValueError):
    """Raised when a free-form message starts with an ordered-stage tag."""

    http_status = 400


class BranchExists(GitStateError):
    """Raised when the allocated branch name is already taken."""

    http_status = 409

    def __init__(self, name: str) -> None:
        super().__init__(f"Branch '{name}' already exists")
        self.name = name


class ExternalToolError(GitStateError):
    """Raised when an external command exits non-zero and the caller did not tolerate it."""

    def __init__(self, command: str, diagnostic: str, returncode: int | None = None) -> None:
        detail = f" (rc={returncode})" if returncode is not None else ""
        super().__init__(f"`{command}` failed{detail}: {diagnostic}")
        self.command = command
        self.diagnostic = diagnostic
        self.returncode = returncode


class RebaseConflict(GitStateError):
    """Raised when a rebase stops on conflicts; the rebase has already been aborted."""

    http_status = 409

    def __init__(self, branch: str, onto: str) -> None:
        super().__init__(
            f"Rebase of '{branch}' onto {onto[:7]} hit conflicts and was aborted; "
            "the branch is unchanged. Resolve the conflicts manually or pick another commit."
        )
        self.branch = branch
        self.onto = onto
