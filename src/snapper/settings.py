from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from snapper.config import CONFIG_FILE_NAME, DEFAULT_JOBS, DEFAULT_MAX_KB, TransformConfig
from snapper.exceptions import ConfigError

ENV_FILE = find_dotenv(usecwd=True)
ENV_PREFIX = "SNAPPER_"


class SnapSettings(BaseModel):
    """Configuration settings for the ``snap`` subcommand."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    root: Path = Field(default_factory=Path.cwd, description="Project root to scan.")
    output: Path = Field(..., description="Snapshot file to write.")
    patterns: list[str] = Field(default_factory=list, description="Include patterns.")
    exclude: list[str] = Field(default_factory=list, description="Exclude patterns.")
    max_kb: int = Field(default=DEFAULT_MAX_KB, ge=0, description="Max file size in KB (0 = no limit).")
    split: int = Field(default=0, ge=0, description="Files per artifact (0 = single artifact).")
    tree_only: bool = Field(default=False, description="Paths only, no contents.")
    remove_comments: bool = Field(default=False, description="Strip comments.")
    remove_blanks: bool = Field(default=False, description="Strip blank lines.")
    jobs: int = Field(default=DEFAULT_JOBS, ge=0, description="Worker threads (0 = serial).")
    use_default_ignores: bool = Field(default=True, description="Prune default ignore dirs.")
    no_git: bool = Field(default=False, description="Do not use git ls-files.")
    quiet: bool = Field(default=False, description="Silence progress and skips.")
    force: bool = Field(default=False, description="Overwrite an existing snapshot.")
    log_file: str = Field(default="", description="Log file path.")

    @property
    def transform(self) -> TransformConfig:
        return TransformConfig(
            strip_comments=self.remove_comments,
            strip_blank_lines=self.remove_blanks,
            max_file_bytes=self.max_kb * 1024,
            tree_only=self.tree_only,
        )


class BuildSettings(BaseModel):
    """Configuration settings for the ``build`` subcommand."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    inputs: list[str] = Field(default_factory=list, description="Snapshots to read ('-' = stdin).")
    root: Path = Field(default_factory=Path.cwd, description="Directory to build into.")
    force: bool = Field(default=False, description="Overwrite existing files.")
    mkdir: bool = Field(default=False, description="Create the build root if missing.")
    quiet: bool = Field(default=False, description="Silence progress events.")
    log_file: str = Field(default="", description="Log file path.")


class FileConfig(BaseModel):
    """Project defaults read from ``.snapper.yml`` at the project root."""

    model_config = ConfigDict(extra="forbid")

    exclude: list[str] = Field(default_factory=list)
    max_kb: int | None = Field(default=None, ge=0)
    jobs: int | None = Field(default=None, ge=0)
    remove_comments: bool | None = None
    remove_blanks: bool | None = None
    use_default_ignores: bool | None = None


def load_file_config(root: Path) -> dict[str, Any]:
    """Read project defaults from ``<root>/.snapper.yml``.

    Args:
        root (Path): the project root

    Raises:
        ConfigError: if the file is not valid YAML or has unknown/invalid keys.

    Returns:
        dict[str, Any]: the keys set in the file (empty when there is no file)
    """
    path = root / CONFIG_FILE_NAME
    if not path.is_file():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return FileConfig.model_validate(data).model_dump(exclude_none=True, exclude_defaults=True)
    except (yaml.YAMLError, ValidationError) as e:
        raise ConfigError(f"invalid {CONFIG_FILE_NAME}: {e}") from e


def load_env_config(env_file: str | None = None) -> dict[str, Any]:
    """Read ``SNAPPER_*`` defaults from the process environment and ``.env``.

    Process variables win over the ``.env`` file. Recognized keys are
    ``SNAPPER_MAX_KB``, ``SNAPPER_JOBS`` and ``SNAPPER_EXCLUDE`` (comma list).

    Args:
        env_file (str | None, optional): the dotenv file to read. Defaults to the one found from the cwd.

    Raises:
        ConfigError: if a numeric variable is not an integer.

    Returns:
        dict[str, Any]: the settings derived from the environment
    """
    path = ENV_FILE if env_file is None else env_file
    values: dict[str, str | None] = dict(dotenv_values(path)) if path else {}
    values.update({k: v for k, v in os.environ.items() if k.startswith(ENV_PREFIX)})

    out: dict[str, Any] = {}
    for key in ("max_kb", "jobs"):
        raw = values.get(ENV_PREFIX + key.upper())
        if raw is None or not raw.strip():
            continue
        try:
            out[key] = int(raw)
        except ValueError as e:
            raise ConfigError(f"{ENV_PREFIX}{key.upper()} must be an integer, got {raw!r}") from e
    raw_exclude = values.get(ENV_PREFIX + "EXCLUDE")
    if raw_exclude:
        out["exclude"] = [p.strip() for p in raw_exclude.split(",") if p.strip()]
    return out
