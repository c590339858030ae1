"""Include/exclude pattern matching for snapshot candidates.

Two pattern forms are supported:

* rooted patterns (``/docs/INSTALL.md``) select exactly one project-root
  relative path, and only when that file exists under the scan root;
* globs (``*.go``, ``src/**/*.go``). ``**`` is collapsed to ``*`` (single
  level glob semantics, ``*`` already spans separators). A glob without a
  ``/`` is matched against the basename, a glob with a ``/`` against the full
  relative path.
"""

from __future__ import annotations

import fnmatch
import re
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING

from snapper.config import SkipReason

if TYPE_CHECKING:
    from collections.abc import Sequence


def collapse_globstar(pattern: str) -> str:
    """Collapse every ``**`` run in ``pattern`` to a single ``*``.

    Args:
        pattern (str): the raw glob pattern

    Returns:
        str: the pattern with globstars collapsed
    """
    while "**" in pattern:
        pattern = pattern.replace("**", "*")
    return pattern


@lru_cache(maxsize=512)
def compile_glob(pattern: str) -> re.Pattern[str]:
    """Compile a shell-style glob into an anchored, case-sensitive regex.

    ``*`` matches any run of characters, ``?`` a single character and
    ``[...]`` a character class. Unbalanced brackets are taken literally.

    Args:
        pattern (str): the glob pattern, globstars already collapsed

    Returns:
        re.Pattern[str]: the compiled matcher
    """
    return re.compile(fnmatch.translate(pattern), re.DOTALL)


def normalize_patterns(patterns: Sequence[str]) -> list[str]:
    """Drop empty patterns and convert backslashes to forward slashes.

    Args:
        patterns (Sequence[str]): the raw patterns

    Returns:
        list[str]: the cleaned patterns, in their original order
    """
    out: list[str] = []
    for p in patterns:
        p2 = (p or "").strip()
        if not p2:
            continue
        out.append(p2.replace("\\", "/"))
    return out


def matches(pattern: str, path: str, root: Path) -> bool:
    """Check whether a candidate path satisfies a single pattern.

    Args:
        pattern (str): a rooted path (``/x/y``) or a glob
        path (str): the slash-separated path relative to ``root``
        root (Path): the scan root used for the rooted-pattern existence check

    Returns:
        bool: True if the pattern selects ``path``
    """
    if not pattern:
        return False
    if pattern.startswith("/"):
        target = pattern[1:]
        return bool(target) and path == target and (root / target).is_file()

    glob = collapse_globstar(pattern)
    if "/" in glob:
        return compile_glob(glob).match(path) is not None
    return compile_glob(glob).match(PurePosixPath(path).name) is not None


def match_any(patterns: Sequence[str], path: str, root: Path) -> bool:
    return any(matches(p, path, root) for p in patterns)


@dataclass(frozen=True)
class MatchPolicy:
    """Ordered include/exclude pattern sets.

    A path is selected iff it matches at least one include pattern and no
    exclude pattern. Excludes are only consulted after an include matched.
    """

    includes: tuple[str, ...]
    excludes: tuple[str, ...] = field(default=())

    @classmethod
    def from_patterns(cls, includes: Sequence[str], excludes: Sequence[str] = ()) -> MatchPolicy:
        return cls(tuple(normalize_patterns(includes)), tuple(normalize_patterns(excludes)))

    def evaluate(self, path: str, root: Path) -> SkipReason | None:
        """Decide whether ``path`` is selected.

        Args:
            path (str): the slash-separated relative path
            root (Path): the scan root

        Returns:
            SkipReason | None: ``NO_MATCH`` or ``EXCLUDED`` when rejected, None when selected
        """
        if not match_any(self.includes, path, root):
            return SkipReason.NO_MATCH
        if match_any(self.excludes, path, root):
            return SkipReason.EXCLUDED
        return None
