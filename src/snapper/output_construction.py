from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import TYPE_CHECKING

from snapper.config import SkipReason, SnapMetrics, TransformConfig, fence_tag
from snapper.exceptions import ConfigError, OutputExistsError
from snapper.file_manipulation import is_text_file, list_candidates
from snapper.logging import logger
from snapper.matching import MatchPolicy
from snapper.transform import transform_content

if TYPE_CHECKING:
    from collections.abc import Sequence

    from snapper.settings import SnapSettings

FENCE = b"```"


def split_artifact_path(base: Path, index: int) -> Path:
    """Name the `index`-th artifact of a split sequence.

    ``snapshot.txt`` becomes ``snapshot-2.txt``; ``snapshot`` becomes ``snapshot-2``.
    Index 1 is the base path itself.

    Args:
        base (Path): the first artifact's path
        index (int): the 1-based artifact index

    Returns:
        Path: the artifact path
    """
    if index <= 1:
        return base
    if base.suffix:
        return base.with_name(f"{base.stem}-{index}{base.suffix}")
    return base.with_name(f"{base.name}-{index}")


def render_entry(rel: str, content: bytes | None) -> bytes:
    """Serialize one snapshot entry.

    Args:
        rel (str): the project-relative path
        content (bytes | None): the (transformed) content, or None in tree-only mode

    Returns:
        bytes: the path line, followed for content entries by the fenced block and a blank line
    """
    path_line = rel.encode("utf-8", errors="surrogateescape") + b"\n"
    if content is None:
        return path_line
    if content and not content.endswith(b"\n"):
        content += b"\n"
    opening = FENCE + fence_tag(rel).encode("ascii") + b"\n"
    return path_line + opening + content + FENCE + b"\n\n"


def render_file(root: Path, rel: str, config: TransformConfig) -> bytes:
    """Read, transform and serialize one accepted file."""
    if config.tree_only:
        return render_entry(rel, None)
    content = (root / rel).read_bytes()
    if config.transforms_content:
        content = transform_content(content, rel, config)
    return render_entry(rel, content)


def select_files(
    root: Path,
    candidates: Sequence[str],
    policy: MatchPolicy,
    config: TransformConfig,
    metrics: SnapMetrics,
) -> list[str]:
    """Filter candidates in order, accounting every skip in `metrics`.

    Binary and size checks only apply in content mode.

    Args:
        root (Path): the project root
        candidates (Sequence[str]): sorted relative paths
        policy (MatchPolicy): include/exclude patterns
        config (TransformConfig): the content settings (size cap, tree-only)
        metrics (SnapMetrics): counters updated in place

    Returns:
        list[str]: the accepted paths, in candidate order
    """
    accepted: list[str] = []
    for rel in candidates:
        reason = policy.evaluate(rel, root)
        if reason is None and not config.tree_only:
            path = root / rel
            if not is_text_file(path):
                reason = SkipReason.BINARY
            elif config.max_file_bytes > 0 and path.stat().st_size > config.max_file_bytes:
                reason = SkipReason.SIZE
        if reason is not None:
            if reason is not SkipReason.NO_MATCH:
                logger.info("skip", reason=str(reason), path=rel)
            metrics.record_skip(reason)
            continue
        accepted.append(rel)
        metrics.record_included(rel)
    return accepted


def render_all(root: Path, files: Sequence[str], config: TransformConfig, jobs: int) -> list[bytes]:
    """Render every accepted file, in parallel when `jobs` > 0, keeping input order."""
    if jobs <= 0 or len(files) < 2:  # noqa: PLR2004
        return [render_file(root, rel, config) for rel in files]
    with ThreadPoolExecutor(max_workers=jobs) as pool:
        return list(pool.map(lambda rel: render_file(root, rel, config), files))


def previous_artifacts(base: Path) -> list[Path]:
    """Artifacts left at `base` by an earlier run.

    That is the base file if present, then the numbered siblings from
    ``-2`` upward for as long as the sequence is unbroken.

    Args:
        base (Path): the first artifact's path

    Returns:
        list[Path]: the existing artifacts, in index order
    """
    found = [base] if base.exists() else []
    index = 2
    sibling = split_artifact_path(base, index)
    while sibling.exists():
        found.append(sibling)
        index += 1
        sibling = split_artifact_path(base, index)
    return found


def remove_stale_artifacts(base: Path, keep: int) -> list[Path]:
    """Delete the numbered siblings that follow the first `keep` artifacts."""
    removed: list[Path] = []
    index = max(keep + 1, 2)
    sibling = split_artifact_path(base, index)
    while sibling.exists():
        sibling.unlink()
        logger.info("stale artifact removed", path=str(sibling))
        removed.append(sibling)
        index += 1
        sibling = split_artifact_path(base, index)
    return removed


def write_artifacts(base: Path, entries: Sequence[bytes], split: int) -> list[Path]:
    """Write rendered entries into the base artifact and, if splitting, its numbered siblings.

    The base artifact is always created, even when there are no entries.

    Args:
        base (Path): the first artifact's path
        entries (Sequence[bytes]): rendered entries, in snapshot order
        split (int): entries per artifact; 0 keeps everything in one artifact

    Returns:
        list[Path]: the artifacts written, in order
    """
    chunks: list[Sequence[bytes]]
    if split > 0 and entries:
        chunks = [entries[i : i + split] for i in range(0, len(entries), split)]
    else:
        chunks = [entries]

    written: list[Path] = []
    for index, chunk in enumerate(chunks, start=1):
        target = split_artifact_path(base, index)
        with target.open("wb") as fh:
            for entry in chunk:
                fh.write(entry)
        logger.info("artifact written", path=str(target), entries=len(chunk))
        written.append(target)
    return written


def resolve_output(root: Path, output: Path) -> Path:
    """Resolve the snapshot path; relative paths are taken from the project root."""
    return output if output.is_absolute() else root / output


def write_snapshot(settings: SnapSettings) -> SnapMetrics:
    """Discover, filter, transform and serialize a project into snapshot artifacts.

    Args:
        settings (SnapSettings): the validated ``snap`` settings

    Raises:
        ConfigError: if no pattern or output is given, or the root is not a readable directory.
        OutputExistsError: if the output or one of its numbered siblings exists and `force`
            is not set; nothing is written.

    Returns:
        SnapMetrics: inclusion and skip counters plus the artifacts written
    """
    policy = MatchPolicy.from_patterns(settings.patterns, settings.exclude)
    if not policy.includes:
        raise ConfigError("at least one pattern is required (e.g., '*.go')")
    if not str(settings.output).strip():
        raise ConfigError("output snapshot is required (-o <path>)")
    if not settings.root.is_dir():
        raise ConfigError(f"cannot read project root: {settings.root}")

    root = settings.root.resolve()
    base = resolve_output(root, settings.output)
    previous = previous_artifacts(base)
    if previous and not settings.force:
        raise OutputExistsError(path=previous[0])

    config = settings.transform
    metrics = SnapMetrics()
    candidates = list_candidates(
        root,
        use_git=not settings.no_git,
        use_default_ignores=settings.use_default_ignores,
    )
    own_outputs = {p.resolve() for p in [base, *previous]}
    candidates = [c for c in candidates if (root / c).resolve() not in own_outputs]
    logger.info("candidates listed", root=str(root), count=len(candidates))

    accepted = select_files(root, candidates, policy, config, metrics)
    entries = render_all(root, accepted, config, settings.jobs)
    metrics.artifacts = write_artifacts(base, entries, settings.split)
    remove_stale_artifacts(base, keep=len(metrics.artifacts))
    return metrics
