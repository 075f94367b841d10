"""Stage ordering rules.

The four ordered stages may each be committed once, in sequence. After
``implementation-done`` only ``generic`` commits are accepted, without limit.
"""

from __future__ import annotations

from collections.abc import Iterable

from gitstate.schemas import Commit, PipelineStage

STAGE_ORDER: tuple[PipelineStage, ...] = tuple(PipelineStage)
ORDERED_STAGES: tuple[PipelineStage, ...] = tuple(
    stage for stage in STAGE_ORDER if stage is not PipelineStage.GENERIC
)


def completed_stages(commits: Iterable[Commit]) -> list[PipelineStage]:
    """Return the ordered stages recorded by *commits*, in encounter order."""
    return [
        commit.stage
        for commit in commits
        if commit.stage is not None and commit.stage is not PipelineStage.GENERIC
    ]


def next_stage(completed: Iterable[PipelineStage]) -> PipelineStage:
    """Return the only stage that may be committed after *completed*."""
    history = list(completed)
    if not history:
        return PipelineStage.INIT_FOLDER

    last = history[-1]
    if last is PipelineStage.IMPLEMENTATION_DONE:
        return PipelineStage.GENERIC

    last_index = STAGE_ORDER.index(last)
    # Past the ordered stages (corrupted history): fall back to free-form commits.
    if last_index >= len(STAGE_ORDER) - 2:
        return PipelineStage.GENERIC
    return STAGE_ORDER[last_index + 1]
