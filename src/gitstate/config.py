"""Runtime settings, read from ``GITSTATE_*`` environment variables."""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "GITSTATE_"

_ENV_FIELDS: dict[str, str] = {
    "repo_root": "REPO_ROOT",
    "base_branch": "BASE_BRANCH",
    "prototypes_dir": "PROTOTYPES_DIR",
    "remote": "REMOTE",
    "command_timeout": "COMMAND_TIMEOUT",
    "pr_binary": "PR_BINARY",
    "remote_web_url": "REMOTE_WEB_URL",
}


class Settings(BaseModel):
    """Where the repository lives and how gitstate talks to it."""

    repo_root: Path = Field(default_factory=Path.cwd)
    base_branch: str = "main"
    prototypes_dir: str = "prototypes"  # relative to repo_root
    remote: str = "origin"
    command_timeout: int = Field(default=30, ge=1)
    pr_binary: str = "gh"
    # Web URL used for stubbed pull-request links; derived from the remote when unset.
    remote_web_url: str | None = None

    @field_validator("base_branch", "prototypes_dir", "remote", "pr_binary")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = str(value or "").strip()
        if not value:
            raise ValueError("must not be empty")
        return value

    @field_validator("remote_web_url")
    @classmethod
    def _strip_url(cls, value: str | None) -> str | None:
        value = str(value or "").strip().rstrip("/")
        return value or None

    @property
    def prototypes_path(self) -> Path:
        return self.repo_root / self.prototypes_dir

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **overrides: Any,
    ) -> Settings:
        """Build settings from the environment; explicit *overrides* win over env values."""
        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}
        for field_name, suffix in _ENV_FIELDS.items():
            raw = env.get(ENV_PREFIX + suffix)
            if raw is not None and raw.strip():
                values[field_name] = raw.strip()
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls.model_validate(values)
