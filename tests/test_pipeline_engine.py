"""Tests for branch creation and stage-gated commits."""

from __future__ import annotations

from pathlib import Path

import pytest

import gitstate.pipeline.engine as engine_module
from gitstate.errors import (
    BranchExists,
    InvalidName,
    MissingMessage,
    ReservedStageTag,
    StageOutOfOrder,
    UnmanagedBranch,
)
from gitstate.schemas import PipelineStage, PrototypeType
from gitstate.service import GitStateService

pytestmark = pytest.mark.integration

S = PipelineStage


def _branch_commit_count(git, branch: str) -> int:
    return int(git("rev-list", "--count", f"main..{branch}"))


def _advance_to_generic(service: GitStateService, branch: str) -> None:
    for stage in (S.INIT_FOLDER, S.CLONE_REFERENCE, S.INCLUDE_SPEC, S.IMPLEMENTATION_DONE):
        service.create_commit(branch, stage)


# ---------------------------------------------------------------------------
# create_branch
# ---------------------------------------------------------------------------


def test_create_branch_from_base_without_switching(service: GitStateService, git) -> None:
    branch = service.create_branch("Auth Flow", PrototypeType.PROTOTYPE)

    assert branch.name == "prototype/001-auth-flow"
    assert branch.display_name == "auth-flow"
    assert branch.meta.id == 1
    assert branch.next_stage is S.INIT_FOLDER
    assert branch.completed_stages == []
    assert branch.commits == []
    assert git("rev-parse", "--abbrev-ref", "HEAD") == "main"
    assert git("rev-parse", branch.name) == git("rev-parse", "main")


def test_create_branch_allocates_sequential_ids_across_types(service: GitStateService) -> None:
    first = service.create_branch("one", "PRO")
    second = service.create_branch("two", PrototypeType.INTEGRATION)
    third = service.create_branch("three", PrototypeType.COMPLETION)

    assert [first.name, second.name, third.name] == [
        "prototype/001-one",
        "integration/002-two",
        "completion/003-three",
    ]


def test_create_branch_rejects_empty_slug(service: GitStateService, git) -> None:
    with pytest.raises(InvalidName):
        service.create_branch("!!!", PrototypeType.PROTOTYPE)

    assert git("branch", "--list", "prototype/*") == ""


def test_create_branch_rejects_unknown_type(service: GitStateService) -> None:
    with pytest.raises(ValueError):
        service.create_branch("ok", "XYZ")


def test_create_branch_detects_collision(service: GitStateService, monkeypatch) -> None:
    service.create_branch("taken", PrototypeType.PROTOTYPE)
    monkeypatch.setattr(service.repository, "next_id", lambda: 1)

    with pytest.raises(BranchExists) as excinfo:
        service.create_branch("taken", PrototypeType.PROTOTYPE)
    assert excinfo.value.http_status == 409


# ---------------------------------------------------------------------------
# create_commit
# ---------------------------------------------------------------------------


def test_init_folder_then_repeat_is_out_of_order(service: GitStateService, repo: Path, git) -> None:
    branch = service.create_branch("auth flow", PrototypeType.PROTOTYPE).name

    commit = service.create_commit(branch, S.INIT_FOLDER)

    assert commit.message == "[init-folder] Initialize prototype: 001-auth-flow"
    assert commit.stage is S.INIT_FOLDER
    assert commit.hash == git("rev-parse", branch)
    assert commit.author == "Test User"
    assert _branch_commit_count(git, branch) == 1
    assert "Prototype001AuthFlowPage" in git("show", f"{branch}:prototypes/001-auth-flow/page.tsx")
    assert git("rev-parse", "--abbrev-ref", "HEAD") == "main"
    assert not (repo / "prototypes").exists()

    with pytest.raises(StageOutOfOrder) as excinfo:
        service.create_commit(branch, S.INIT_FOLDER)

    assert excinfo.value.requested is S.INIT_FOLDER
    assert excinfo.value.required is S.CLONE_REFERENCE
    assert "not allowed" in str(excinfo.value)
    assert _branch_commit_count(git, branch) == 1


def test_out_of_order_stage_makes_no_commit(service: GitStateService, repo: Path, git) -> None:
    branch = service.create_branch("skip ahead", PrototypeType.PROTOTYPE).name

    with pytest.raises(StageOutOfOrder) as excinfo:
        service.create_commit(branch, S.INCLUDE_SPEC)

    assert excinfo.value.required is S.INIT_FOLDER
    assert _branch_commit_count(git, branch) == 0
    assert git("rev-parse", "--abbrev-ref", "HEAD") == "main"
    assert git("status", "--porcelain") == ""


def test_full_pipeline_then_generic(service: GitStateService, repo: Path, git) -> None:
    branch = service.create_branch("checkout", PrototypeType.PROTOTYPE).name

    service.create_commit(branch, S.INIT_FOLDER)
    service.create_commit(branch, "clone-reference")
    service.create_commit(branch, S.INCLUDE_SPEC, spec_content="# Checkout spec\n")
    done = service.create_commit(branch, S.IMPLEMENTATION_DONE)
    extra = service.create_commit(branch, S.GENERIC, message="Polish copy")

    assert done.message == "[implementation-done] Implementation complete: 001-checkout"
    assert extra.message == "Polish copy"
    assert git("show", f"{branch}:prototypes/001-checkout/spec.md") == "# Checkout spec"
    files = git("ls-tree", "-r", "--name-only", branch, "prototypes/001-checkout").splitlines()
    assert sorted(files) == sorted(
        f"prototypes/001-checkout/{name}"
        for name in (
            ".complete",
            "layout.tsx",
            "next.config.ts",
            "package.json",
            "page.tsx",
            "spec.md",
            "tsconfig.json",
        )
    )

    (listed,) = service.list_branches()
    assert listed.completed_stages == [
        S.INIT_FOLDER,
        S.CLONE_REFERENCE,
        S.INCLUDE_SPEC,
        S.IMPLEMENTATION_DONE,
    ]
    assert listed.next_stage is S.GENERIC
    assert len(listed.commits) == 5

    service.create_commit(branch, S.GENERIC, message="Second tweak")
    assert _branch_commit_count(git, branch) == 6


def test_generic_requires_message(service: GitStateService, git) -> None:
    branch = service.create_branch("needs message", PrototypeType.PROTOTYPE).name
    _advance_to_generic(service, branch)

    with pytest.raises(MissingMessage):
        service.create_commit(branch, S.GENERIC)
    with pytest.raises(MissingMessage):
        service.create_commit(branch, S.GENERIC, message="   ")

    assert _branch_commit_count(git, branch) == 4


def test_generic_message_cannot_forge_stage_tag(service: GitStateService, git) -> None:
    branch = service.create_branch("forged", PrototypeType.PROTOTYPE).name
    _advance_to_generic(service, branch)

    with pytest.raises(ReservedStageTag):
        service.create_commit(branch, S.GENERIC, message="[init-folder] sneaky")

    assert _branch_commit_count(git, branch) == 4


@pytest.mark.parametrize(
    "message",
    [
        "\n[init-folder] sneaky",
        "   \n\t\n[clone-reference] sneaky",
        "  [include-spec] sneaky",
    ],
)
def test_generic_message_cannot_hide_stage_tag_behind_blank_lines(
    service: GitStateService, git, message: str
) -> None:
    branch = service.create_branch("hidden tag", PrototypeType.PROTOTYPE).name
    _advance_to_generic(service, branch)

    with pytest.raises(ReservedStageTag):
        service.create_commit(branch, S.GENERIC, message=message)

    assert _branch_commit_count(git, branch) == 4
    (listed,) = service.list_branches()
    assert listed.next_stage is S.GENERIC


def test_generic_commit_returns_message_as_stored(service: GitStateService, git) -> None:
    branch = service.create_branch("stored", PrototypeType.PROTOTYPE).name
    _advance_to_generic(service, branch)

    commit = service.create_commit(branch, S.GENERIC, message="\n\nTweak  \n")

    assert commit.message == "Tweak"
    assert git("log", "-1", "--format=%s", branch) == "Tweak"
    (listed,) = service.list_branches()
    assert listed.commits[-1].hash == commit.hash
    assert listed.commits[-1].message == commit.message


def test_generic_before_completion_is_out_of_order(service: GitStateService) -> None:
    branch = service.create_branch("early", PrototypeType.PROTOTYPE).name

    with pytest.raises(StageOutOfOrder):
        service.create_commit(branch, S.GENERIC, message="too soon")


def test_unmanaged_branch_is_rejected(service: GitStateService, git) -> None:
    git("branch", "feature/login", "main")

    with pytest.raises(UnmanagedBranch):
        service.create_commit("feature/login", S.INIT_FOLDER)


def test_commit_preserves_uncommitted_work_on_current_branch(
    service: GitStateService, repo: Path, git
) -> None:
    branch = service.create_branch("dirty tree", PrototypeType.PROTOTYPE).name
    (repo / "README.md").write_text("# Repo\nunsaved\n", encoding="utf-8")
    (repo / "scratch.txt").write_text("scratch\n", encoding="utf-8")

    service.create_commit(branch, S.INIT_FOLDER)

    assert git("rev-parse", "--abbrev-ref", "HEAD") == "main"
    assert (repo / "README.md").read_text(encoding="utf-8") == "# Repo\nunsaved\n"
    assert (repo / "scratch.txt").read_text(encoding="utf-8") == "scratch\n"
    assert git("stash", "list") == ""
    changed = git("show", "--name-only", "--format=", branch).splitlines()
    assert changed == ["prototypes/001-dirty-tree/page.tsx"]


def test_failed_commit_still_restores_previous_branch(service: GitStateService, git) -> None:
    branch = service.create_branch("restore me", PrototypeType.PROTOTYPE).name
    git("checkout", "-b", "scratch")

    with pytest.raises(StageOutOfOrder):
        service.create_commit(branch, S.CLONE_REFERENCE)

    assert git("rev-parse", "--abbrev-ref", "HEAD") == "scratch"


def test_failed_side_effect_leaves_no_files_behind(
    service: GitStateService, repo: Path, git, monkeypatch
) -> None:
    branch = service.create_branch("half written", PrototypeType.PROTOTYPE).name

    def _partial_side_effect(stage, proto_dir: Path, *, spec_content=None) -> None:
        proto_dir.mkdir(parents=True, exist_ok=True)
        (proto_dir / "page.tsx").write_text("partial\n", encoding="utf-8")
        raise OSError("disk full")

    monkeypatch.setattr(engine_module, "run_side_effect", _partial_side_effect)

    with pytest.raises(OSError, match="disk full"):
        service.create_commit(branch, S.INIT_FOLDER)

    assert _branch_commit_count(git, branch) == 0
    assert git("rev-parse", "--abbrev-ref", "HEAD") == "main"
    assert not (repo / "prototypes" / "001-half-written").exists()
    assert git("status", "--porcelain") == ""


def test_generic_on_checked_out_branch_commits_working_tree(
    service: GitStateService, repo: Path, git
) -> None:
    branch = service.create_branch("hands on", PrototypeType.PROTOTYPE).name
    _advance_to_generic(service, branch)
    git("checkout", branch)
    (repo / "prototypes" / "001-hands-on" / "extra.tsx").write_text("export {};\n", encoding="utf-8")

    service.create_commit(branch, S.GENERIC, message="Add extra component")

    assert git("rev-parse", "--abbrev-ref", "HEAD") == branch
    assert git("log", "-1", "--format=%s") == "Add extra component"
    assert git("show", "--name-only", "--format=", "HEAD") == "prototypes/001-hands-on/extra.tsx"
    assert git("status", "--porcelain") == ""
