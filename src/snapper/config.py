from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path, PurePosixPath

from pydantic import BaseModel, ConfigDict, Field, computed_field

NO_EXTENSION = "(noext)"

FENCE_LANGUAGE: dict[str, str] = {
    "go": "go",
    "js": "javascript",
    "ts": "typescript",
    "json": "json",
    "yml": "yaml",
    "yaml": "yaml",
    "md": "markdown",
    "sh": "bash",
    "zsh": "bash",
    "bash": "bash",
    "py": "python",
    "rb": "ruby",
    "rs": "rust",
    "c": "c",
    "h": "c",
    "cpp": "cpp",
    "cc": "cpp",
    "cxx": "cpp",
    "hpp": "cpp",
    "java": "java",
    "kt": "kotlin",
    "kts": "kotlin",
    "swift": "swift",
    "cs": "csharp",
    "html": "html",
    "css": "css",
    "scss": "scss",
    "sass": "scss",
    "xml": "xml",
    "sql": "sql",
    "lua": "lua",
    "vim": "vim",
    "m": "objectivec",
    "dart": "dart",
    "scala": "scala",
    "pl": "perl",
    "pm": "perl",
    "r": "r",
    "ex": "elixir",
    "exs": "elixir",
    "erl": "erlang",
    "hrl": "erlang",
    "clj": "clojure",
    "cljs": "clojure",
    "cljc": "clojure",
    "lisp": "lisp",
    "el": "lisp",
    "hs": "haskell",
    "lhs": "haskell",
    "ml": "ocaml",
    "mli": "ocaml",
    "fs": "fsharp",
    "fsi": "fsharp",
    "fsx": "fsharp",
    "nim": "nim",
    "v": "v",
    "zig": "zig",
}

# '#' starts a heading or plain text in these formats, not a comment.
DOCUMENT_EXTENSIONS = frozenset(
    {"md", "txt", "rst", "doc", "docx", "rtf", "pdf", "org", "adoc", "asciidoc"},
)

DEFAULT_IGNORE_DIRS = frozenset(
    {
        ".git",
        "node_modules",
        "vendor",
        "dist",
        "build",
        ".cache",
        ".idea",
        ".vscode",
        "target",
        "bin",
        "out",
        "coverage",
        ".hg",
        ".svn",
    },
)

DEFAULT_MAX_KB = 200
DEFAULT_JOBS = 4
CONFIG_FILE_NAME = ".snapper.yml"


class SkipReason(StrEnum):
    """Why a discovered candidate did not make it into the snapshot."""

    SIZE = "size"
    BINARY = "binary"
    EXCLUDED = "excluded"
    NO_MATCH = "no_match"


def extension_key(path: str | Path) -> str:
    """Return the lowercased extension of the basename, or ``(noext)``.

    ``.bashrc`` yields ``bashrc``; ``Makefile`` and ``notes.`` yield ``(noext)``.

    Args:
        path (str | Path): a relative or absolute file path

    Returns:
        str: the extension without its dot, lowercased
    """
    base = PurePosixPath(str(path).replace("\\", "/")).name
    if "." not in base:
        return NO_EXTENSION
    ext = base.rsplit(".", 1)[1]
    return ext.lower() if ext else NO_EXTENSION


def fence_tag(path: str | Path) -> str:
    """Get the code fence language for a file path.

    The lookup uses whatever follows the last dot of the path, so unknown
    extensions and extension-less files get an empty tag.

    Args:
        path (str | Path): the file path to tag

    Returns:
        str: the language name for the opening fence, or "" if unknown
    """
    text = str(path)
    if "." not in text:
        return ""
    return FENCE_LANGUAGE.get(text.rsplit(".", 1)[1].lower(), "")


class TransformConfig(BaseModel):
    """Per-file content handling for a snapshot run.

    Attributes:
        strip_comments: Remove //, /* */ and (outside documents) # comments.
        strip_blank_lines: Remove blank lines and trailing whitespace.
        max_file_bytes: Files above this size are skipped; 0 means no limit.
        tree_only: Emit paths only; contents are never read or transformed.
    """

    model_config = ConfigDict(frozen=True)

    strip_comments: bool = Field(default=False, description="Remove comments.")
    strip_blank_lines: bool = Field(default=False, description="Remove blank lines.")
    max_file_bytes: int = Field(default=0, ge=0, description="Size cap in bytes (0 = unlimited).")
    tree_only: bool = Field(default=False, description="Paths only, no contents.")

    @computed_field
    @property
    def transforms_content(self) -> bool:
        """Whether any content transform runs for accepted files."""
        return not self.tree_only and (self.strip_comments or self.strip_blank_lines)


@dataclass
class SnapMetrics:
    """Counters accumulated while selecting and writing snapshot entries."""

    included: int = 0
    by_extension: Counter[str] = field(default_factory=Counter)
    skipped: Counter[SkipReason] = field(default_factory=Counter)
    artifacts: list[Path] = field(default_factory=list)

    def record_included(self, rel: str) -> None:
        self.included += 1
        self.by_extension[extension_key(rel)] += 1

    def record_skip(self, reason: SkipReason) -> None:
        self.skipped[reason] += 1

    def extension_report(self) -> list[tuple[str, int]]:
        """Extension counts, most frequent first, ties broken by name."""
        return sorted(self.by_extension.items(), key=lambda item: (-item[1], item[0]))


@dataclass
class BuildMetrics:
    """Counters accumulated while rebuilding files from a snapshot."""

    created: int = 0
    overwritten: int = 0
    skipped_exists: int = 0
    parse_errors: int = 0
    write_errors: int = 0
