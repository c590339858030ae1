from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class SnapperError(Exception):
    """Base exception for errors in the snapper package."""

    message: str = "snapper failed."

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True)
class ConfigError(SnapperError):
    """Raised when the invocation is unusable (missing paths, no patterns, bad root)."""


@dataclass(frozen=True)
class OutputExistsError(SnapperError):
    """Raised when the snapshot output already exists and overwriting was not requested."""

    path: Path = Path()
    message: str = "output snapshot already exists (use -f to overwrite)"

    def __str__(self) -> str:
        return f"output snapshot already exists: {self.path} (use -f to overwrite)"


@dataclass(frozen=True)
class NotAGitRepositoryError(SnapperError):
    """Raised when the specified directory is not inside a Git work tree."""

    folder: Path = Path()
    message: str = "The specified directory is not a Git repository."


@dataclass(frozen=True)
class GitCommandError(SnapperError):
    """Raised when a git command fails."""

    command: str = ""
    returncode: int = 0
    stderr: str = ""
    message: str = "git command failed."

    def __str__(self) -> str:
        return f"{self.command} exited with {self.returncode}: {self.stderr.strip()}"
