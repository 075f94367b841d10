"""File scaffolding performed by each ordered stage before it is committed.

Each stage overwrites its own fixed set of files inside the prototype
directory, so re-running a side effect yields the same tree.
"""

from __future__ import annotations

import datetime as dt
import json
import logging
import os
import re
import tempfile
from collections.abc import Callable
from contextlib import suppress
from pathlib import Path

from gitstate.schemas import PipelineStage

logger = logging.getLogger(__name__)

DEFAULT_SPEC_TEMPLATE = """\
# {name} - Specification

## Overview

Describe what this prototype does.

## Requirements

- [ ] Requirement 1
- [ ] Requirement 2

## Implementation Notes

Add implementation details.
"""


def _write_text(path: Path, content: str) -> None:
    """Write *content* to *path* via a temp file so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f"{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
            handle.write(content)
        tmp_path.replace(path)
    finally:
        with suppress(OSError):
            tmp_path.unlink(missing_ok=True)


def _json_text(payload: dict[str, object]) -> str:
    return json.dumps(payload, indent=2) + "\n"


def to_pascal_case(name: str) -> str:
    """``001-auth-flow`` -> ``001AuthFlow``."""
    return "".join(word[:1].upper() + word[1:].lower() for word in re.split(r"[-_\s]+", name) if word)


def _init_folder(proto_dir: Path, name: str, spec_content: str | None) -> None:
    component = to_pascal_case(name)
    if component[:1].isdigit():
        # JS identifiers cannot start with a digit.
        component = f"Prototype{component}"
    _write_text(
        proto_dir / "page.tsx",
        "\n".join(
            [
                f"export default function {component}Page() {{",
                "  return (",
                "    <div>",
                f"      <h1>Prototype: {name}</h1>",
                "      <p>This prototype is under construction.</p>",
                "    </div>",
                "  );",
                "}",
                "",
            ]
        ),
    )


def _clone_reference(proto_dir: Path, name: str, spec_content: str | None) -> None:
    # Minimal reference template rather than a full framework checkout.
    _write_text(
        proto_dir / "package.json",
        _json_text(
            {
                "name": name,
                "version": "0.1.0",
                "private": True,
                "scripts": {"dev": "next dev", "build": "next build", "start": "next start"},
                "dependencies": {"next": "latest", "react": "latest", "react-dom": "latest"},
            }
        ),
    )
    _write_text(
        proto_dir / "tsconfig.json",
        _json_text(
            {
                "compilerOptions": {
                    "target": "ES2017",
                    "lib": ["dom", "dom.iterable", "esnext"],
                    "jsx": "react-jsx",
                    "strict": True,
                    "module": "esnext",
                    "moduleResolution": "bundler",
                }
            }
        ),
    )
    _write_text(
        proto_dir / "next.config.ts",
        'import type { NextConfig } from "next";\n\n'
        "const nextConfig: NextConfig = {};\n\n"
        "export default nextConfig;\n",
    )
    _write_text(
        proto_dir / "layout.tsx",
        "\n".join(
            [
                "export const metadata = {",
                f'  title: "{name}",',
                "};",
                "",
                "export default function RootLayout({ children }: { children: React.ReactNode }) {",
                "  return (",
                '    <html lang="en">',
                "      <body>{children}</body>",
                "    </html>",
                "  );",
                "}",
                "",
            ]
        ),
    )


def _include_spec(proto_dir: Path, name: str, spec_content: str | None) -> None:
    _write_text(proto_dir / "spec.md", spec_content or DEFAULT_SPEC_TEMPLATE.format(name=name))


def _implementation_done(proto_dir: Path, name: str, spec_content: str | None) -> None:
    stamp = dt.datetime.now(dt.timezone.utc).isoformat()
    _write_text(proto_dir / ".complete", f"Implementation completed at {stamp}\n")


_SIDE_EFFECTS: dict[PipelineStage, Callable[[Path, str, str | None], None]] = {
    PipelineStage.INIT_FOLDER: _init_folder,
    PipelineStage.CLONE_REFERENCE: _clone_reference,
    PipelineStage.INCLUDE_SPEC: _include_spec,
    PipelineStage.IMPLEMENTATION_DONE: _implementation_done,
}


def run_side_effect(
    stage: PipelineStage,
    proto_dir: Path,
    *,
    spec_content: str | None = None,
) -> None:
    """Scaffold *stage*'s files into *proto_dir*; ``generic`` does nothing."""
    effect = _SIDE_EFFECTS.get(stage)
    if effect is None:
        return
    logger.debug("Running %s side effect in %s", stage.value, proto_dir)
    effect(proto_dir, proto_dir.name, spec_content)
