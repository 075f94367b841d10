"""CLI entrypoint for gitstate."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Callable
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError

from gitstate.config import Settings
from gitstate.errors import GitStateError
from gitstate.repository import DEFAULT_MAIN_LINE_LIMIT, MAX_MAIN_LINE_LIMIT
from gitstate.schemas import Branch, PipelineStage, PrototypeType
from gitstate.service import GitStateService


def _load_dotenv() -> None:
    """Load .env from cwd or its parent so settings are found regardless of cwd."""
    for dir_ in (Path.cwd(), Path.cwd().parent):
        env_file = dir_ / ".env"
        if env_file.is_file():
            load_dotenv(env_file)
            return


def _build_parser() -> argparse.ArgumentParser:
    """Build and return the command-line parser for all sub-commands."""
    p = argparse.ArgumentParser(
        prog="gitstate",
        description="gitstate - drive prototype branches through an ordered commit pipeline.",
    )
    p.add_argument("--repo", type=str, default="", help="Repository root (default: $GITSTATE_REPO_ROOT or cwd).")
    p.add_argument("--base-branch", type=str, default="", help="Base branch (default: main).")
    p.add_argument("--json", action="store_true", help="Print results as JSON.")
    p.add_argument("-v", "--verbose", action="store_true", help="Enable verbose (DEBUG) logging.")

    sub = p.add_subparsers(dest="command")

    sub.add_parser("list", help="List managed branches and their pipeline state.")
    sub.add_parser("stages", help="List the pipeline stages in order.")

    create_p = sub.add_parser("create", help="Create a new managed branch from the base branch.")
    create_p.add_argument("name", help="Human-readable name; slugified into the branch name.")
    create_p.add_argument(
        "--type",
        dest="kind",
        choices=[kind.value for kind in PrototypeType],
        default=PrototypeType.PROTOTYPE.value,
        help="Branch type (default: PRO).",
    )

    commit_p = sub.add_parser("commit", help="Commit the next pipeline stage on a branch.")
    commit_p.add_argument("branch")
    commit_p.add_argument("stage", choices=[stage.value for stage in PipelineStage])
    commit_p.add_argument("-m", "--message", default=None, help="Commit message (required for generic).")
    commit_p.add_argument("--spec-file", default=None, help="File whose content becomes spec.md (include-spec).")

    push_p = sub.add_parser("push", help="Push a branch and set its upstream.")
    push_p.add_argument("branch")

    sync_p = sub.add_parser("sync", help="Pull a branch from its remote.")
    sync_p.add_argument("branch")

    rebase_p = sub.add_parser("rebase", help="Rebase a branch onto a base-branch commit.")
    rebase_p.add_argument("branch")
    rebase_p.add_argument("onto", help="Commit hash to rebase onto.")

    pr_p = sub.add_parser("pr", help="Open a pull request (stub link when gh is unavailable).")
    pr_p.add_argument("branch")
    pr_p.add_argument("--title", required=True)
    pr_p.add_argument("--body", default=None)

    main_p = sub.add_parser("main-commits", help="List recent base-branch commits (rebase targets).")
    main_p.add_argument(
        "--limit",
        type=int,
        default=DEFAULT_MAIN_LINE_LIMIT,
        help=f"Number of commits, at most {MAX_MAIN_LINE_LIMIT} (default: {DEFAULT_MAIN_LINE_LIMIT}).",
    )
    return p


def _emit(payload: object, *, as_json: bool, render: Callable[[object], str] | None = None) -> None:
    if as_json:
        if isinstance(payload, BaseModel):
            data: object = payload.model_dump(mode="json")
        elif isinstance(payload, list):
            data = [item.model_dump(mode="json") if isinstance(item, BaseModel) else item for item in payload]
        else:
            data = payload
        print(json.dumps(data, indent=2))
        return
    print(render(payload) if render else payload)


def _render_branches(branches: object) -> str:
    rows: list[str] = []
    for branch in branches if isinstance(branches, list) else []:
        if not isinstance(branch, Branch):
            continue
        marker = "*" if branch.is_current_branch else " "
        remote = "remote" if branch.has_remote else "local"
        done = ", ".join(stage.value for stage in branch.completed_stages) or "-"
        rows.append(
            f"{marker} {branch.name:<40} next={branch.next_stage.value:<20} "
            f"commits={len(branch.commits):<3} {remote:<6} done: {done}"
        )
    return "\n".join(rows) if rows else "(no managed branches)"


def _render_stages(_: object) -> str:
    return "\n".join(
        f"{index}. {stage.value:<20} {stage.label:<16} {stage.description}"
        for index, stage in enumerate(PipelineStage, start=1)
    )


def _dispatch(service: GitStateService, args: argparse.Namespace) -> int:
    as_json = bool(args.json)
    if args.command == "list":
        _emit(service.list_branches(), as_json=as_json, render=_render_branches)
    elif args.command == "stages":
        stages = [{"stage": s.value, "label": s.label, "description": s.description} for s in PipelineStage]
        _emit(stages, as_json=as_json, render=_render_stages)
    elif args.command == "create":
        branch = service.create_branch(args.name, args.kind)
        _emit(branch, as_json=as_json, render=lambda b: f"Created {b.name}")
    elif args.command == "commit":
        spec_content = None
        if args.spec_file:
            spec_content = Path(args.spec_file).read_text(encoding="utf-8")
        commit = service.create_commit(
            args.branch, args.stage, message=args.message, spec_content=spec_content
        )
        _emit(commit, as_json=as_json, render=lambda c: f"{c.hash[:7]} {c.message}")
    elif args.command == "push":
        _emit({"output": service.push(args.branch)}, as_json=as_json, render=lambda d: d["output"])
    elif args.command == "sync":
        _emit({"output": service.sync(args.branch)}, as_json=as_json, render=lambda d: d["output"])
    elif args.command == "rebase":
        result = service.rebase(args.branch, args.onto)
        _emit(result, as_json=as_json, render=lambda r: r.message)
    elif args.command == "pr":
        result = service.create_pull_request(args.branch, args.title, args.body)
        _emit(
            result,
            as_json=as_json,
            render=lambda r: f"{r.url} (stubbed: gh unavailable)" if r.stubbed else r.url,
        )
    elif args.command == "main-commits":
        commits = service.list_main_line_commits(args.limit)
        _emit(
            commits,
            as_json=as_json,
            render=lambda cs: "\n".join(f"{c.short_hash} {c.message}" for c in cs),
        )
    return 0


def main(argv: list[str] | None = None) -> int:
    """Parse arguments and dispatch to the requested sub-command."""
    parser = _build_parser()
    args = parser.parse_args(argv)
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%H:%M:%S",
    )
    if not args.command:
        parser.print_help()
        print("\nTip: run 'gitstate list' to see managed branches.", file=sys.stderr)
        return 1

    _load_dotenv()
    try:
        settings = Settings.from_env(
            repo_root=args.repo or None,
            base_branch=args.base_branch or None,
        )
    except ValidationError as exc:
        print(f"error: invalid configuration: {exc}", file=sys.stderr)
        return 1

    try:
        return _dispatch(GitStateService(settings), args)
    except GitStateError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2 if exc.http_status < 500 else 1
    except OSError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
