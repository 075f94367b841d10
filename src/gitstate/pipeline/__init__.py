"""Stage-gated commit pipeline for prototype branches.

Every managed branch advances through the same ordered stages::

    init-folder -> clone-reference -> include-spec -> implementation-done -> generic*

Each ordered stage is committed exactly once; ``generic`` repeats freely.
Stage rules live in :mod:`gitstate.pipeline.stages`, file scaffolding in
:mod:`gitstate.pipeline.scaffold`, and the commit engine in
:mod:`gitstate.pipeline.engine`.
"""

from gitstate.pipeline.stages import ORDERED_STAGES, STAGE_ORDER, completed_stages, next_stage

__all__ = ["ORDERED_STAGES", "STAGE_ORDER", "completed_stages", "next_stage"]
