"""Branch-name and commit-tag codec.

Managed branches are named ``{prefix}/{NNN}-{slug}``, e.g.
``prototype/001-auth-flow`` or ``integration/002-data-sync``. Pipeline state
is recorded by a leading ``[stage-name]`` tag in each stage commit's subject.
All parsing of those two encodings lives here.
"""

from __future__ import annotations

import re

from gitstate.errors import InvalidName
from gitstate.schemas import (
    PREFIX_TO_TYPE,
    BranchMetadata,
    PipelineStage,
    PrototypeType,
)

MANAGED_PREFIXES: tuple[str, ...] = tuple(PREFIX_TO_TYPE)
# Ids are always rendered with three digits.
MAX_BRANCH_ID = 999

_BRANCH_REMAINDER_RE = re.compile(r"^(\d{3})-(.+)$")
_STAGE_TAG_RE = re.compile(r"^\[([^\]]+)\]")
_SLUG_SEPARATOR_RE = re.compile(r"[^a-z0-9]+")

_STAGE_SUBJECTS: dict[PipelineStage, str] = {
    PipelineStage.INIT_FOLDER: "Initialize prototype",
    PipelineStage.CLONE_REFERENCE: "Clone reference template",
    PipelineStage.INCLUDE_SPEC: "Add specification",
    PipelineStage.IMPLEMENTATION_DONE: "Implementation complete",
}


def slugify(name: str) -> str:
    """Lowercase *name* and collapse every non-alphanumeric run into ``-``."""
    return _SLUG_SEPARATOR_RE.sub("-", str(name or "").lower()).strip("-")


def encode_branch_name(kind: PrototypeType, branch_id: int, slug: str) -> str:
    """Return the full branch name for ``(kind, branch_id, slug)``."""
    normalized = slugify(slug)
    if not normalized:
        raise InvalidName("Name must contain at least one alphanumeric character")
    if not 1 <= branch_id <= MAX_BRANCH_ID:
        raise InvalidName(f"Branch id must be between 1 and {MAX_BRANCH_ID}, got {branch_id}")
    return f"{PrototypeType(kind).prefix}/{branch_id:03d}-{normalized}"


def decode_branch_name(full_name: str) -> BranchMetadata | None:
    """Parse a branch name, returning ``None`` for unmanaged or malformed names."""
    for prefix, kind in PREFIX_TO_TYPE.items():
        if not full_name.startswith(f"{prefix}/"):
            continue
        match = _BRANCH_REMAINDER_RE.match(full_name[len(prefix) + 1 :])
        if match is None:
            return None
        branch_id = int(match.group(1))
        if branch_id < 1:
            return None
        return BranchMetadata(type=kind, id=branch_id, slug=match.group(2))
    return None


def prototype_dir_name(meta: BranchMetadata) -> str:
    """Directory name the ordered stages write into: ``NNN-slug``."""
    return f"{meta.id:03d}-{meta.slug}"


def parse_stage_tag(message: str) -> PipelineStage | None:
    """Return the stage named by *message*'s leading ``[...]`` tag, if any."""
    match = _STAGE_TAG_RE.match(message or "")
    if match is None:
        return None
    try:
        return PipelineStage(match.group(1))
    except ValueError:
        return None


def format_stage_message(
    stage: PipelineStage,
    prototype_name: str,
    message: str | None = None,
) -> str:
    """Build the commit message for *stage*.

    Ordered stages get a fixed tagged subject; ``generic`` uses *message*
    verbatim and falls back to an untagged update line.
    """
    if stage is PipelineStage.GENERIC:
        return message or f"Update prototype: {prototype_name}"
    return f"[{stage.value}] {_STAGE_SUBJECTS[stage]}: {prototype_name}"


def normalize_commit_message(message: str) -> str:
    """Apply git's ``whitespace`` cleanup to *message*.

    Trailing whitespace is removed from each line, runs of blank lines
    collapse to one, and leading and trailing blank lines are dropped.
    """
    lines: list[str] = []
    for line in str(message or "").splitlines():
        line = line.rstrip()
        if not line and (not lines or not lines[-1]):
            continue
        lines.append(line)
    while lines and not lines[-1]:
        lines.pop()
    return "\n".join(lines)
